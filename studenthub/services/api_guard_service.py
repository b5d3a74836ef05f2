"""Shared request guards: authentication, AI availability and per-user rate limits."""

from studenthub.services.ai_errors import (
    GENERIC_AI_ERROR_MESSAGE,
    AIQuotaError,
    AIUnavailableError,
)
from studenthub.services.rate_limit_service import log_rate_limit_hit

UNAUTHORIZED_MESSAGE = 'Unauthorized. Please log in.'


def unauthorized_response(app_ctx):
    return app_ctx.jsonify({'error': UNAUTHORIZED_MESSAGE}), 401


def rate_limit_headers(decision):
    return {'X-RateLimit-Remaining': str(max(0, int(decision.remaining)))}


def rate_limited_response(app_ctx, decision):
    retry_after = decision.retry_after_seconds
    response = app_ctx.jsonify({
        'error': f"Rate limit exceeded. Try again in {retry_after} seconds.",
        'retry_after_seconds': retry_after,
    })
    response.status_code = 429
    response.headers['Retry-After'] = str(retry_after)
    return response


def ai_unavailable_response(app_ctx):
    return app_ctx.jsonify({'error': AIUnavailableError().message}), 503


def ai_error_response(app_ctx, exc, message=GENERIC_AI_ERROR_MESSAGE):
    """Map a classified AI failure onto the HTTP contract.

    Provider quota exhaustion becomes 429 (with ``Retry-After`` when the
    provider supplied a hint); everything else is a generic 500.
    """
    if isinstance(exc, AIQuotaError):
        body = {'error': 'AI quota exceeded. Please try again later.'}
        headers = {}
        if exc.retry_after_seconds is not None:
            body['retry_after_seconds'] = exc.retry_after_seconds
            headers['Retry-After'] = str(exc.retry_after_seconds)
        return app_ctx.jsonify(body), 429, headers
    if isinstance(exc, AIUnavailableError):
        return ai_unavailable_response(app_ctx)
    return app_ctx.jsonify({'error': message}), 500


def authenticate(app_ctx, request):
    decoded_token = app_ctx.verify_firebase_token(request)
    if not decoded_token:
        return None
    return str(decoded_token.get('uid', '') or '') or None


def guard_request(app_ctx, request, endpoint, *, require_ai=False):
    """Return ``(uid, decision, None)`` or ``(None, None, error_response)``.

    The limiter is only consulted for authenticated callers, so anonymous
    traffic never consumes a user's quota.
    """
    uid = authenticate(app_ctx, request)
    if not uid:
        return None, None, unauthorized_response(app_ctx)
    if require_ai and app_ctx.ai is None:
        return None, None, ai_unavailable_response(app_ctx)
    if endpoint is None:
        return uid, None, None
    max_requests, window_ms = app_ctx.config.rate_limit_for(endpoint)
    decision = app_ctx.rate_limiter.check_rate_limit(uid, endpoint, max_requests, window_ms)
    if not decision.allowed:
        log_rate_limit_hit(
            endpoint,
            uid,
            decision,
            db=app_ctx.db,
            logger=app_ctx.logger,
            time_module=app_ctx.time,
        )
        return None, None, rate_limited_response(app_ctx, decision)
    return uid, decision, None
