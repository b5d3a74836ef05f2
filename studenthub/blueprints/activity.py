from flask import Blueprint, request

from studenthub.extensions import get_runtime
from studenthub.services import activity_service

activity_bp = Blueprint('activity_api', __name__)


@activity_bp.route('/api/activity', methods=['POST'])
def log_activity():
    return activity_service.log_activity(get_runtime(), request)


@activity_bp.route('/api/activity', methods=['GET'])
def get_streak():
    return activity_service.get_streak(get_runtime(), request)
