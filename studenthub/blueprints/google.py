from flask import Blueprint, request

from studenthub.extensions import get_runtime
from studenthub.services import calendar_service, classroom_service, tasks_service

google_bp = Blueprint('google_api', __name__)


@google_bp.route('/api/google/calendar', methods=['GET'])
def list_calendar_events():
    return calendar_service.list_events(get_runtime(), request)


@google_bp.route('/api/google/calendar', methods=['POST'])
def create_calendar_event():
    return calendar_service.create_event(get_runtime(), request)


@google_bp.route('/api/google/tasks', methods=['GET'])
def list_google_tasks():
    return tasks_service.list_tasks(get_runtime(), request)


@google_bp.route('/api/google/tasks', methods=['POST'])
def create_google_task():
    return tasks_service.create_task(get_runtime(), request)


@google_bp.route('/api/google/tasks', methods=['PATCH'])
def update_google_task():
    return tasks_service.update_task_status(get_runtime(), request)


@google_bp.route('/api/google/tasks/delete', methods=['POST'])
def delete_google_task():
    return tasks_service.delete_task(get_runtime(), request)


@google_bp.route('/api/google/sync', methods=['POST'])
def sync_google_tasks():
    return tasks_service.sync_tasks(get_runtime(), request)


@google_bp.route('/api/google/classroom', methods=['GET'])
def list_classroom():
    return classroom_service.list_classroom(get_runtime(), request)


@google_bp.route('/api/google/classroom', methods=['POST'])
def import_classroom():
    return classroom_service.import_classroom(get_runtime(), request)


@google_bp.route('/api/google/classroom/resync', methods=['POST'])
def resync_classroom():
    return classroom_service.resync_classroom(get_runtime(), request)
