from flask import Blueprint, request

from studenthub.extensions import get_runtime
from studenthub.services import exam_prep_service

exam_prep_bp = Blueprint('exam_prep_api', __name__)


@exam_prep_bp.route('/api/exam-prep/process', methods=['POST'])
def process_module():
    return exam_prep_service.process_module(get_runtime(), request)


@exam_prep_bp.route('/api/exam-prep/analyze-syllabus', methods=['POST'])
def analyze_syllabus():
    return exam_prep_service.analyze_syllabus(get_runtime(), request)


@exam_prep_bp.route('/api/exam-prep/shrink-summary', methods=['POST'])
def shrink_summary():
    return exam_prep_service.shrink_summary(get_runtime(), request)
