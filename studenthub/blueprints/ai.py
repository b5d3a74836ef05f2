from flask import Blueprint, request

from studenthub.extensions import get_runtime
from studenthub.services import ai_api_service

ai_bp = Blueprint('ai_api', __name__)


@ai_bp.route('/api/ai/chat', methods=['POST'])
def chat():
    return ai_api_service.chat(get_runtime(), request)


@ai_bp.route('/api/ai/explain', methods=['POST'])
def explain():
    return ai_api_service.explain(get_runtime(), request)


@ai_bp.route('/api/ai/quiz', methods=['POST'])
def quiz():
    return ai_api_service.quiz(get_runtime(), request)


@ai_bp.route('/api/ai/breakdown', methods=['POST'])
def breakdown():
    return ai_api_service.breakdown(get_runtime(), request)


@ai_bp.route('/api/ai/motivation', methods=['GET'])
def motivation():
    return ai_api_service.motivation(get_runtime(), request)


@ai_bp.route('/api/ai/extract', methods=['POST'])
def extract():
    return ai_api_service.extract(get_runtime(), request)


@ai_bp.route('/api/ai/parse-expense', methods=['POST'])
def parse_expense():
    return ai_api_service.parse_expense(get_runtime(), request)
