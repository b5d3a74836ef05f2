from flask import Blueprint, request

from studenthub.extensions import get_runtime
from studenthub.services import citation_service

citations_bp = Blueprint('citations_api', __name__)


@citations_bp.route('/api/citations/generate', methods=['POST'])
def generate_citation():
    return citation_service.generate_citation(get_runtime(), request)
