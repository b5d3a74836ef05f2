"""Daily activity logging and streak calculation."""

from datetime import date, timedelta

from studenthub.repositories import activity_repo
from studenthub.services.api_guard_service import authenticate, unauthorized_response

MAX_STREAK_LOOKBACK_DAYS = 365


def _parse_day(value):
    try:
        return date.fromisoformat(str(value or '')[:10])
    except ValueError:
        return None


def compute_streak(activity_dates, today):
    """Count consecutive active days ending today or yesterday.

    ``activity_dates`` are ISO ``YYYY-MM-DD`` strings in any order; unparsable
    entries are ignored.
    """
    days = sorted({day for day in (_parse_day(value) for value in activity_dates) if day}, reverse=True)
    if not days:
        return {'streak': 0, 'last_active': None}
    last_active = days[0]
    yesterday = today - timedelta(days=1)
    is_active_today = last_active == today
    if not is_active_today and last_active != yesterday:
        return {
            'streak': 0,
            'last_active': last_active.isoformat(),
            'message': 'Streak broken! Log in to start a new one.',
        }
    streak = 0
    expected = last_active
    for day in days:
        if day == expected:
            streak += 1
            expected -= timedelta(days=1)
        elif day < expected:
            break
    return {
        'streak': streak,
        'last_active': last_active.isoformat(),
        'is_active_today': is_active_today,
    }


def log_activity(app_ctx, request):
    uid = authenticate(app_ctx, request)
    if not uid:
        return unauthorized_response(app_ctx)
    today = app_ctx.today_iso()
    try:
        activity_repo.activity_doc_ref(app_ctx.db, uid, today).set({
            'uid': uid,
            'activity_date': today,
            'activity_count': app_ctx.firestore.Increment(1),
            'updated_at': app_ctx.time.time(),
        }, merge=True)
    except Exception as exc:
        app_ctx.logger.error(f"Activity log error for user {uid}: {exc}")
        return app_ctx.jsonify({'error': 'Failed to log activity'}), 500
    return app_ctx.jsonify({'success': True, 'date': today})


def get_streak(app_ctx, request):
    uid = authenticate(app_ctx, request)
    if not uid:
        return unauthorized_response(app_ctx)
    try:
        dates = activity_repo.list_recent_activity_dates(app_ctx.db, uid, MAX_STREAK_LOOKBACK_DAYS)
    except Exception as exc:
        app_ctx.logger.error(f"Streak calculation error for user {uid}: {exc}")
        return app_ctx.jsonify({'error': 'Failed to get streak'}), 500
    today = date.fromisoformat(app_ctx.today_iso())
    return app_ctx.jsonify(compute_streak(dates, today))
