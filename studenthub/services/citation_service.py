"""Citation generation for web pages, books and journal articles."""

from datetime import datetime, timezone

from studenthub.services import prompt_registry
from studenthub.services.ai_errors import AIServiceError
from studenthub.services.api_guard_service import ai_error_response, guard_request, rate_limit_headers

CITATION_TYPES = {'url', 'book', 'article'}
MAX_FIELD_CHARS = 500


def format_access_date(moment):
    return f"{moment:%B} {moment.day}, {moment.year}"


def _field(payload, name, default=''):
    value = str(payload.get(name, '') or '').strip()[:MAX_FIELD_CHARS]
    return value or default


def build_citation_prompt(payload, now=None):
    """Return ``(prompt, source_url)`` for a citation request, or ``(None, '')`` when invalid."""
    citation_type = str(payload.get('type', '') or '').strip().lower()
    if citation_type == 'url':
        url = _field(payload, 'url')
        if not url:
            return None, ''
        moment = now or datetime.now(timezone.utc)
        return prompt_registry.render(
            'citation_url',
            url=url,
            access_date=format_access_date(moment),
            title_hint='Article/Page title (infer from URL if needed)',
        ), url
    if citation_type == 'book':
        title = _field(payload, 'title')
        if not title:
            return None, ''
        return prompt_registry.render(
            'citation_book',
            title=title,
            author=_field(payload, 'author', 'Unknown'),
            publisher=_field(payload, 'publisher', 'Unknown'),
            year=_field(payload, 'year', 'n.d.'),
            edition=_field(payload, 'edition', '1st'),
            title_hint=title,
        ), ''
    if citation_type == 'article':
        title = _field(payload, 'title')
        if not title:
            return None, ''
        return prompt_registry.render(
            'citation_article',
            title=title,
            author=_field(payload, 'author', 'Unknown'),
            journal=_field(payload, 'journal', 'Unknown Journal'),
            year=_field(payload, 'year', 'n.d.'),
            volume=_field(payload, 'volume'),
            pages=_field(payload, 'pages'),
            title_hint=title,
        ), ''
    return None, ''


def generate_citation(app_ctx, request):
    uid, decision, error_response = guard_request(app_ctx, request, 'citations', require_ai=True)
    if error_response:
        return error_response
    payload = request.get_json(silent=True) or {}
    if not isinstance(payload, dict):
        return app_ctx.jsonify({'error': 'Invalid payload'}), 400
    citation_type = str(payload.get('type', '') or '').strip().lower()
    if citation_type not in CITATION_TYPES:
        return app_ctx.jsonify({'error': 'Invalid type'}), 400
    prompt, source_url = build_citation_prompt(payload, now=app_ctx.utcnow())
    if prompt is None:
        missing = 'url' if citation_type == 'url' else 'title'
        return app_ctx.jsonify({'error': f"Missing {missing}"}), 400
    try:
        result = app_ctx.ai.generate_structured(prompt)
    except AIServiceError as exc:
        app_ctx.logger.error(f"Citation generation error for user {uid}: {exc}")
        return ai_error_response(app_ctx, exc, 'Failed to generate citation')
    if not isinstance(result, dict):
        return app_ctx.jsonify({'error': 'Failed to generate citation'}), 500
    citation = {
        'title': str(result.get('title', '') or ''),
        'citation_apa': str(result.get('citation_apa', '') or ''),
        'citation_mla': str(result.get('citation_mla', '') or ''),
        'citation_chicago': str(result.get('citation_chicago', '') or ''),
        'source_url': source_url or None,
    }
    return app_ctx.jsonify(citation), 200, rate_limit_headers(decision)
