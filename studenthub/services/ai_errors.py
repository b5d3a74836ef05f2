"""Classified failures of the generative-AI client boundary."""

import math
import re

GENERIC_AI_ERROR_MESSAGE = 'Failed to generate AI response. Please try again.'

_RETRY_DELAY_RE = re.compile(r'^\s*(\d+(?:\.\d+)?)\s*s?\s*$')


class AIServiceError(Exception):
    kind = 'transport'

    def __init__(self, message=GENERIC_AI_ERROR_MESSAGE, *, cause=None):
        super().__init__(message)
        self.message = message
        self.cause = cause


class AIQuotaError(AIServiceError):
    kind = 'quota'

    def __init__(self, message='AI quota exceeded. Please try again later.', *, retry_after_seconds=None, cause=None):
        super().__init__(message, cause=cause)
        self.retry_after_seconds = retry_after_seconds


class AITransportError(AIServiceError):
    kind = 'transport'


class AIInvalidResponseError(AIServiceError):
    kind = 'invalid_response'

    def __init__(self, message='Model did not return valid JSON after repair/retry.', *, raw_text='', cause=None):
        super().__init__(message, cause=cause)
        self.raw_text = raw_text


class AIUnavailableError(AIServiceError):
    kind = 'unavailable'

    def __init__(self, message='AI features are not configured on this server.'):
        super().__init__(message)


def _provider_status_code(exc):
    for attr in ('code', 'status_code'):
        value = getattr(exc, attr, None)
        if isinstance(value, int):
            return value
    return None


def is_quota_error(exc):
    if _provider_status_code(exc) == 429:
        return True
    message = str(exc) or ''
    status = str(getattr(exc, 'status', '') or '')
    return '429' in message or 'quota' in message.lower() or status == 'RESOURCE_EXHAUSTED'


def parse_retry_delay_seconds(raw_delay):
    if isinstance(raw_delay, (int, float)):
        return max(0, int(math.ceil(raw_delay)))
    if isinstance(raw_delay, dict):
        seconds = float(raw_delay.get('seconds', 0) or 0)
        nanos = float(raw_delay.get('nanos', 0) or 0)
        return max(0, int(math.ceil(seconds + nanos / 1e9)))
    match = _RETRY_DELAY_RE.match(str(raw_delay or ''))
    if not match:
        return None
    return max(0, int(math.ceil(float(match.group(1)))))


def extract_retry_after_seconds(exc):
    """Read the RetryInfo ``retryDelay`` from a provider error payload, if any."""
    details = getattr(exc, 'details', None)
    if isinstance(details, dict):
        error_body = details.get('error', details)
        details = error_body.get('details') if isinstance(error_body, dict) else None
    if not isinstance(details, list):
        return None
    for item in details:
        if not isinstance(item, dict):
            continue
        if 'retryDelay' in item:
            seconds = parse_retry_delay_seconds(item.get('retryDelay'))
            if seconds is not None:
                return seconds
    return None


def classify_provider_error(exc):
    if isinstance(exc, AIServiceError):
        return exc
    if is_quota_error(exc):
        return AIQuotaError(str(exc) or 'AI quota exceeded.', retry_after_seconds=extract_retry_after_seconds(exc), cause=exc)
    return AITransportError(cause=exc)
