"""Google Tasks: listing, creating, completing and deleting tasks, plus pushing local tasks."""

from datetime import datetime, timezone

from studenthub.repositories import tasks_repo
from studenthub.services.api_guard_service import authenticate, unauthorized_response
from studenthub.services.google_service import get_service_tokens, google_error_response

MAX_TASK_LISTS = 10
MAX_TASKS_PER_LIST = 100
NOT_CONNECTED_MESSAGE = 'Google not connected'
NO_TASK_LIST_MESSAGE = 'No task list found'


def to_google_due(value):
    """Normalize a date or date-time string to the RFC 3339 form Google Tasks stores.

    Raises ValueError for anything unparseable.
    """
    parsed = datetime.fromisoformat(str(value).strip().replace('Z', '+00:00'))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc).strftime('%Y-%m-%dT%H:%M:%S.000Z')


def serialize_task(task, task_list):
    return {
        'id': task.get('id'),
        'title': task.get('title'),
        'notes': task.get('notes'),
        'due': task.get('due'),
        'status': task.get('status'),
        'completed': task.get('status') == 'completed',
        'listName': task_list.get('title'),
        'listId': task_list.get('id'),
    }


def list_task_lists(tasks_client, max_results=MAX_TASK_LISTS):
    response = tasks_client.tasklists().list(maxResults=max_results).execute() or {}
    return [item for item in response.get('items') or [] if item.get('id')]


def default_task_list_id(tasks_client):
    task_lists = list_task_lists(tasks_client, max_results=1)
    return task_lists[0]['id'] if task_lists else None


def _json_payload(request):
    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) else {}


def _tasks_for(app_ctx, uid):
    tokens = get_service_tokens(app_ctx.db, uid, 'tasks')
    if not tokens:
        return None
    return app_ctx.google_factory('tasks', tokens)


def list_tasks(app_ctx, request):
    uid = authenticate(app_ctx, request)
    if not uid:
        return unauthorized_response(app_ctx)
    try:
        tasks_client = _tasks_for(app_ctx, uid)
        if tasks_client is None:
            return app_ctx.jsonify({'error': NOT_CONNECTED_MESSAGE}), 400
        task_lists = list_task_lists(tasks_client)
        if not task_lists:
            return app_ctx.jsonify({'tasks': [], 'message': 'No task lists found'})
        tasks = []
        for task_list in task_lists:
            response = tasks_client.tasks().list(
                tasklist=task_list['id'],
                maxResults=MAX_TASKS_PER_LIST,
                showCompleted=True,
            ).execute() or {}
            tasks.extend(serialize_task(task, task_list) for task in response.get('items') or [])
    except Exception as exc:
        app_ctx.logger.error(f"Tasks fetch error for user {uid}: {exc}")
        return google_error_response(app_ctx, exc, 'Tasks', 'Failed to fetch tasks')
    app_ctx.logger.info(f"Fetched {len(tasks)} Google tasks from {len(task_lists)} lists for user {uid}")
    return app_ctx.jsonify({
        'tasks': tasks,
        'taskLists': [{'id': item['id'], 'title': item.get('title')} for item in task_lists],
    })


def create_task(app_ctx, request):
    uid = authenticate(app_ctx, request)
    if not uid:
        return unauthorized_response(app_ctx)
    payload = _json_payload(request)
    title = str(payload.get('title') or '').strip()
    if not title:
        return app_ctx.jsonify({'error': 'Title is required'}), 400
    body = {'title': title}
    if payload.get('notes'):
        body['notes'] = str(payload['notes'])
    if payload.get('due'):
        try:
            body['due'] = to_google_due(payload['due'])
        except ValueError:
            return app_ctx.jsonify({'error': 'Due must be an ISO 8601 date or date-time'}), 400
    try:
        tasks_client = _tasks_for(app_ctx, uid)
        if tasks_client is None:
            return app_ctx.jsonify({'error': NOT_CONNECTED_MESSAGE}), 400
        list_id = payload.get('taskListId') or default_task_list_id(tasks_client)
        if not list_id:
            return app_ctx.jsonify({'error': NO_TASK_LIST_MESSAGE}), 400
        created = tasks_client.tasks().insert(tasklist=list_id, body=body).execute() or {}
    except Exception as exc:
        app_ctx.logger.error(f"Task create error for user {uid}: {exc}")
        return google_error_response(app_ctx, exc, 'Tasks', 'Failed to create task')
    return app_ctx.jsonify({'task': {'id': created.get('id'), 'title': created.get('title')}})


def update_task_status(app_ctx, request):
    uid = authenticate(app_ctx, request)
    if not uid:
        return unauthorized_response(app_ctx)
    payload = _json_payload(request)
    task_id = payload.get('taskId')
    list_id = payload.get('taskListId')
    if not task_id or not list_id:
        return app_ctx.jsonify({'error': 'taskId and taskListId are required'}), 400
    status = 'completed' if payload.get('completed') else 'needsAction'
    try:
        tasks_client = _tasks_for(app_ctx, uid)
        if tasks_client is None:
            return app_ctx.jsonify({'error': NOT_CONNECTED_MESSAGE}), 400
        updated = tasks_client.tasks().patch(tasklist=list_id, task=task_id, body={'status': status}).execute() or {}
    except Exception as exc:
        app_ctx.logger.error(f"Task update error for user {uid}: {exc}")
        return google_error_response(app_ctx, exc, 'Tasks', 'Failed to update task')
    return app_ctx.jsonify({'task': {'id': updated.get('id'), 'status': updated.get('status')}})


def delete_task(app_ctx, request):
    uid = authenticate(app_ctx, request)
    if not uid:
        return unauthorized_response(app_ctx)
    payload = _json_payload(request)
    task_id = payload.get('taskId')
    if not task_id:
        return app_ctx.jsonify({'error': 'Task ID required'}), 400
    try:
        tasks_client = _tasks_for(app_ctx, uid)
        if tasks_client is None:
            return app_ctx.jsonify({'error': NOT_CONNECTED_MESSAGE}), 400
        # Google needs the owning list; without one the task is assumed to live in the default list.
        list_id = payload.get('taskListId') or default_task_list_id(tasks_client)
        if not list_id:
            return app_ctx.jsonify({'error': NO_TASK_LIST_MESSAGE}), 404
        tasks_client.tasks().delete(tasklist=list_id, task=task_id).execute()
    except Exception as exc:
        app_ctx.logger.error(f"Task delete error for user {uid}: {exc}")
        return google_error_response(app_ctx, exc, 'Tasks', 'Failed to delete task')
    return app_ctx.jsonify({'success': True, 'message': 'Deleted from Google Tasks'})


def build_sync_body(task, logger=None):
    body = {
        'title': task.get('title') or 'Untitled task',
        'status': 'completed' if task.get('status') == 'done' else 'needsAction',
    }
    if task.get('description'):
        body['notes'] = task['description']
    if task.get('due_date'):
        try:
            body['due'] = to_google_due(task['due_date'])
        except ValueError:
            if logger is not None:
                logger.warning(f"⚠️ Ignoring unparseable due date {task['due_date']!r} on task {task.get('title')!r}")
    return body


def sync_tasks(app_ctx, request):
    """Push local tasks without a ``google_task_id`` to the default Google task list."""
    uid = authenticate(app_ctx, request)
    if not uid:
        return unauthorized_response(app_ctx)
    try:
        tasks_client = _tasks_for(app_ctx, uid)
        if tasks_client is None:
            return app_ctx.jsonify({'error': NOT_CONNECTED_MESSAGE}), 400
        local_tasks = tasks_repo.list_unsynced_tasks(app_ctx.db, uid)
        synced = 0
        list_id = default_task_list_id(tasks_client) if local_tasks else None
        if list_id:
            for task_id, task in local_tasks:
                try:
                    created = tasks_client.tasks().insert(tasklist=list_id, body=build_sync_body(task, app_ctx.logger)).execute() or {}
                    tasks_repo.mark_task_synced(app_ctx.db, task_id, created.get('id'), app_ctx.time.time())
                    synced += 1
                except Exception as exc:
                    app_ctx.logger.error(f"Failed to sync task {task_id}: {exc}")
    except Exception as exc:
        app_ctx.logger.error(f"Tasks sync error for user {uid}: {exc}")
        return google_error_response(app_ctx, exc, 'Tasks', 'Sync failed')
    return app_ctx.jsonify({
        'success': True,
        'synced': synced,
        'message': f"Synced {synced} tasks to Google",
    })
