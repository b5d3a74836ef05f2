"""Google Calendar: upcoming events and event creation on the primary calendar."""

from datetime import datetime, timedelta

from studenthub.services.api_guard_service import authenticate, unauthorized_response
from studenthub.services.google_service import get_service_tokens, google_error_response

PRIMARY_CALENDAR = 'primary'
MAX_EVENTS = 50
DEFAULT_DAYS_AHEAD = 7
MAX_DAYS_AHEAD = 365
NOT_CONNECTED_MESSAGE = 'Google not connected'


def _rfc3339(moment):
    return moment.isoformat().replace('+00:00', 'Z')


def parse_days_ahead(raw):
    if raw in (None, ''):
        return DEFAULT_DAYS_AHEAD
    try:
        days = int(str(raw).strip())
    except ValueError:
        return None
    if days < 1 or days > MAX_DAYS_AHEAD:
        return None
    return days


def resolve_window(args, now):
    """Return ``(time_min, time_max)``; the window ends ``daysAhead`` days after now unless given."""
    days_ahead = parse_days_ahead(args.get('daysAhead'))
    if days_ahead is None:
        return None
    time_min = str(args.get('timeMin') or '').strip() or _rfc3339(now)
    time_max = str(args.get('timeMax') or '').strip() or _rfc3339(now + timedelta(days=days_ahead))
    return time_min, time_max


def serialize_event(event):
    start = event.get('start') or {}
    end = event.get('end') or {}
    return {
        'id': event.get('id'),
        'title': event.get('summary'),
        'description': event.get('description'),
        'start': start.get('dateTime') or start.get('date'),
        'end': end.get('dateTime') or end.get('date'),
        'location': event.get('location'),
        'meetLink': event.get('hangoutLink'),
    }


def build_event_body(payload, time_zone, request_id):
    body = {
        'summary': payload['title'],
        'description': payload.get('description'),
        'location': payload.get('location'),
        'start': {'dateTime': payload['start'], 'timeZone': time_zone},
        'end': {'dateTime': payload['end'], 'timeZone': time_zone},
    }
    if payload.get('addMeet'):
        body['conferenceData'] = {
            'createRequest': {
                'requestId': request_id,
                'conferenceSolutionKey': {'type': 'hangoutsMeet'},
            }
        }
    return body


def _is_datetime(value):
    try:
        datetime.fromisoformat(str(value).replace('Z', '+00:00'))
    except ValueError:
        return False
    return True


def _calendar_for(app_ctx, uid):
    tokens = get_service_tokens(app_ctx.db, uid, 'calendar')
    if not tokens:
        return None
    return app_ctx.google_factory('calendar', tokens)


def list_events(app_ctx, request):
    uid = authenticate(app_ctx, request)
    if not uid:
        return unauthorized_response(app_ctx)
    window = resolve_window(request.args, app_ctx.utcnow())
    if window is None:
        return app_ctx.jsonify({'error': f"daysAhead must be between 1 and {MAX_DAYS_AHEAD}"}), 400
    time_min, time_max = window
    try:
        calendar = _calendar_for(app_ctx, uid)
        if calendar is None:
            return app_ctx.jsonify({'error': NOT_CONNECTED_MESSAGE}), 400
        response = calendar.events().list(
            calendarId=PRIMARY_CALENDAR,
            timeMin=time_min,
            timeMax=time_max,
            singleEvents=True,
            orderBy='startTime',
            maxResults=MAX_EVENTS,
        ).execute() or {}
    except Exception as exc:
        app_ctx.logger.error(f"Calendar fetch error for user {uid}: {exc}")
        return google_error_response(app_ctx, exc, 'Calendar', 'Failed to fetch calendar')
    events = [serialize_event(event) for event in response.get('items') or []]
    return app_ctx.jsonify({'events': events})


def create_event(app_ctx, request):
    uid = authenticate(app_ctx, request)
    if not uid:
        return unauthorized_response(app_ctx)
    payload = request.get_json(silent=True)
    payload = payload if isinstance(payload, dict) else {}
    if not payload.get('title') or not payload.get('start') or not payload.get('end'):
        return app_ctx.jsonify({'error': 'Title, start, and end are required'}), 400
    if not _is_datetime(payload['start']) or not _is_datetime(payload['end']):
        return app_ctx.jsonify({'error': 'Start and end must be ISO 8601 date-times'}), 400
    add_meet = bool(payload.get('addMeet'))
    request_id = f"meet-{int(app_ctx.time.time() * 1000)}"
    body = build_event_body(payload, app_ctx.config.calendar_time_zone, request_id)
    try:
        calendar = _calendar_for(app_ctx, uid)
        if calendar is None:
            return app_ctx.jsonify({'error': NOT_CONNECTED_MESSAGE}), 400
        created = calendar.events().insert(
            calendarId=PRIMARY_CALENDAR,
            conferenceDataVersion=1 if add_meet else 0,
            body=body,
        ).execute() or {}
    except Exception as exc:
        app_ctx.logger.error(f"Calendar create error for user {uid}: {exc}")
        return google_error_response(app_ctx, exc, 'Calendar', 'Failed to create event')
    app_ctx.logger.info(f"Created calendar event {created.get('id')} for user {uid}")
    return app_ctx.jsonify({
        'event': {
            'id': created.get('id'),
            'title': created.get('summary'),
            'meetLink': created.get('hangoutLink'),
        }
    })
