"""Google API client construction from stored OAuth tokens."""

from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build

from studenthub.repositories import google_accounts_repo

TOKEN_URI = 'https://oauth2.googleapis.com/token'
CLASSROOM_SCOPES = [
    'https://www.googleapis.com/auth/classroom.courses.readonly',
    'https://www.googleapis.com/auth/classroom.coursework.me.readonly',
]
CALENDAR_SCOPES = [
    'https://www.googleapis.com/auth/calendar',
    'https://www.googleapis.com/auth/calendar.events',
]
TASKS_SCOPES = ['https://www.googleapis.com/auth/tasks']

# api name -> (discovery version, scopes)
GOOGLE_APIS = {
    'classroom': ('v1', CLASSROOM_SCOPES),
    'calendar': ('v3', CALENDAR_SCOPES),
    'tasks': ('v1', TASKS_SCOPES),
}

RECONNECT_MESSAGE = 'Please reconnect Google in Settings to enable {service} access'


def build_credentials(tokens, *, client_id='', client_secret='', scopes=None):
    """Wrap stored ``{access_token, refresh_token}`` tokens for google-auth.

    The refresh token only works when the OAuth client id/secret are set.
    """
    tokens = tokens if isinstance(tokens, dict) else {}
    return Credentials(
        token=tokens.get('access_token'),
        refresh_token=tokens.get('refresh_token') or None,
        token_uri=TOKEN_URI,
        client_id=client_id or None,
        client_secret=client_secret or None,
        scopes=list(scopes) if scopes else None,
    )


def build_google_client(api_name, tokens, config):
    version, scopes = GOOGLE_APIS[api_name]
    credentials = build_credentials(
        tokens,
        client_id=config.google_client_id,
        client_secret=config.google_client_secret,
        scopes=scopes,
    )
    return build(api_name, version, credentials=credentials, cache_discovery=False)


def get_service_tokens(db, uid, service):
    """Tokens of the linked account serving ``service``, else the legacy profile tokens."""
    account = google_accounts_repo.find_account_for_service(db, uid, service)
    if account and account.get('tokens'):
        return account['tokens']
    profile = google_accounts_repo.get_profile(db, uid) or {}
    if profile.get('google_connected') and profile.get('google_tokens'):
        return profile['google_tokens']
    return None


def http_status(exc):
    status = getattr(exc, 'status_code', None)
    if status is None:
        status = getattr(getattr(exc, 'resp', None), 'status', None)
    try:
        return int(status) if status is not None else None
    except (TypeError, ValueError):
        return None


def is_scope_error(exc):
    return http_status(exc) == 403 or 'scope' in str(exc).lower()


def google_error_response(app_ctx, exc, service_label, message):
    """403 asking the user to reconnect on missing scopes, otherwise a generic 500."""
    if is_scope_error(exc):
        return app_ctx.jsonify({
            'error': RECONNECT_MESSAGE.format(service=service_label),
            'needsReconnect': True,
        }), 403
    return app_ctx.jsonify({'error': message}), 500
