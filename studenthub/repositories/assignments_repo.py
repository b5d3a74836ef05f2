"""Firestore accessors for the ``assignments`` collection."""

from .query_utils import where_uid


def list_assignments(db, uid):
    return [(doc.id, doc.to_dict() or {}) for doc in where_uid(db, 'assignments', uid).stream()]


def create_assignment(db, uid, payload, created_at):
    doc_ref = db.collection('assignments').document()
    doc_ref.set({
        **payload,
        'uid': uid,
        'created_at': created_at,
        'updated_at': created_at,
    })
    return doc_ref.id


def update_assignment_status(db, assignment_id, status, updated_at):
    return db.collection('assignments').document(assignment_id).update({
        'status': status,
        'updated_at': updated_at,
    })
