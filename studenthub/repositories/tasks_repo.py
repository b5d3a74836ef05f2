"""Firestore accessors for the student's local to-do ``tasks``."""

from .query_utils import where_uid


def list_unsynced_tasks(db, uid):
    """Tasks never pushed to Google Tasks (no ``google_task_id`` yet)."""
    tasks = []
    for doc in where_uid(db, 'tasks', uid).stream():
        data = doc.to_dict() or {}
        if not data.get('google_task_id'):
            tasks.append((doc.id, data))
    return tasks


def mark_task_synced(db, task_id, google_task_id, updated_at):
    return db.collection('tasks').document(task_id).update({
        'google_task_id': google_task_id,
        'updated_at': updated_at,
    })
