from .activity import activity_bp
from .ai import ai_bp
from .citations import citations_bp
from .exam_prep import exam_prep_bp
from .google import google_bp

__all__ = ['activity_bp', 'ai_bp', 'citations_bp', 'exam_prep_bp', 'google_bp']
