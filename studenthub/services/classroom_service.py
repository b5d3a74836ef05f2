"""Google Classroom coursework: listing, importing as assignments and status resync."""

from datetime import datetime, timezone

from studenthub.repositories import assignments_repo
from studenthub.services.api_guard_service import authenticate, unauthorized_response
from studenthub.services.google_service import get_service_tokens, google_error_response

STATUS_ASSIGNED = 'assigned'
STATUS_MISSING = 'missing'
STATUS_DONE = 'done'
DONE_STATES = {'TURNED_IN', 'RETURNED'}
COURSEWORK_PAGE_SIZE = 100
UNTITLED_ASSIGNMENT = 'Untitled Assignment'
NO_ACCOUNT_MESSAGE = 'No Google account connected for Classroom'


def due_datetime(coursework):
    """Return the coursework deadline in UTC, or None when it has no due date.

    Classroom omits ``dueTime`` for all-day work; that counts as 23:59.
    """
    due_date = coursework.get('dueDate') or {}
    try:
        year = int(due_date['year'])
        month = int(due_date['month'])
        day = int(due_date['day'])
    except (KeyError, TypeError, ValueError):
        return None
    due_time = coursework.get('dueTime')
    if due_time is None:
        hours, minutes = 23, 59
    else:
        hours = int(due_time.get('hours', 0) or 0)
        minutes = int(due_time.get('minutes', 0) or 0)
    try:
        return datetime(year, month, day, hours, minutes, tzinfo=timezone.utc)
    except ValueError:
        return None


def due_date_iso(coursework):
    deadline = due_datetime(coursework)
    return deadline.date().isoformat() if deadline else None


def derive_submission_status(coursework, submissions, now):
    if not submissions:
        return STATUS_ASSIGNED
    submission = submissions[0]
    if submission.get('assignedGrade') is not None:
        return STATUS_DONE
    if submission.get('state') in DONE_STATES:
        return STATUS_DONE
    deadline = due_datetime(coursework)
    if deadline is not None and now > deadline:
        return STATUS_MISSING
    return STATUS_ASSIGNED


def assignment_key(title, course_name):
    return f"{title or ''}|{course_name or ''}"


def _list_all(collection, result_key, **params):
    items = []
    page_token = None
    while True:
        if page_token:
            params['pageToken'] = page_token
        response = collection.list(**params).execute() or {}
        items.extend(response.get(result_key) or [])
        page_token = response.get('nextPageToken')
        if not page_token:
            return items


def list_active_courses(classroom):
    return _list_all(classroom.courses(), 'courses', studentId='me', courseStates=['ACTIVE'])


def iter_coursework(classroom, courses, logger=None):
    """Yield ``(course, work)`` pairs; a course whose coursework cannot be listed is skipped."""
    for course in courses:
        course_id = course.get('id')
        if not course_id:
            continue
        try:
            coursework = _list_all(
                classroom.courses().courseWork(),
                'courseWork',
                courseId=course_id,
                pageSize=COURSEWORK_PAGE_SIZE,
            )
        except Exception as exc:
            if logger is not None:
                logger.error(f"Failed to get coursework for {course.get('name', course_id)}: {exc}")
            continue
        for work in coursework:
            if work.get('id'):
                yield course, work


def list_submissions(classroom, course_id, work_id):
    response = classroom.courses().courseWork().studentSubmissions().list(
        courseId=course_id,
        courseWorkId=work_id,
        userId='me',
    ).execute() or {}
    return response.get('studentSubmissions') or []


def build_status_map(classroom, now, logger=None):
    """Map ``title|course name`` to the status derived from the student's submission."""
    status_map = {}
    for course, work in iter_coursework(classroom, list_active_courses(classroom), logger):
        if not work.get('title'):
            continue
        try:
            submissions = list_submissions(classroom, course['id'], work['id'])
        except Exception as exc:
            if logger is not None:
                logger.info(f"Skipping submissions for coursework {work['id']}: {exc}")
            continue
        key = assignment_key(work['title'], course.get('name', ''))
        status_map[key] = derive_submission_status(work, submissions, now)
    return status_map


def reconcile_assignments(assignments, status_map):
    """Return ``[(assignment_id, new_status)]`` for assignments whose status changed."""
    changes = []
    for assignment_id, data in assignments:
        new_status = status_map.get(assignment_key(data.get('title', ''), data.get('course', '')))
        if new_status and new_status != data.get('status'):
            changes.append((assignment_id, new_status))
    return changes


def serialize_coursework(course, work):
    return {
        'id': work.get('id'),
        'title': work.get('title'),
        'description': work.get('description'),
        'dueDate': due_date_iso(work),
        'courseName': course.get('name'),
        'courseId': course.get('id'),
        'alternateLink': work.get('alternateLink'),
        'state': work.get('state'),
        'maxPoints': work.get('maxPoints'),
    }


def _classroom_for(app_ctx, uid):
    tokens = get_service_tokens(app_ctx.db, uid, 'classroom')
    if not tokens:
        return None
    return app_ctx.classroom_factory(tokens)


def list_classroom(app_ctx, request):
    uid = authenticate(app_ctx, request)
    if not uid:
        return unauthorized_response(app_ctx)
    try:
        classroom = _classroom_for(app_ctx, uid)
        if classroom is None:
            return app_ctx.jsonify({'error': NO_ACCOUNT_MESSAGE}), 400
        courses = list_active_courses(classroom)
        assignments = [
            serialize_coursework(course, work)
            for course, work in iter_coursework(classroom, courses, app_ctx.logger)
        ]
    except Exception as exc:
        app_ctx.logger.error(f"Classroom fetch error for user {uid}: {exc}")
        return google_error_response(app_ctx, exc, 'Classroom', 'Failed to fetch from Classroom')
    app_ctx.logger.info(f"Fetched {len(assignments)} Classroom assignments for user {uid}")
    return app_ctx.jsonify({
        'courses': [{'id': course.get('id'), 'name': course.get('name')} for course in courses],
        'assignments': assignments,
    })


def import_classroom(app_ctx, request):
    """Create an assignment for every coursework item not imported before.

    Items are matched on title and course name, so re-running the import is a no-op.
    """
    uid = authenticate(app_ctx, request)
    if not uid:
        return unauthorized_response(app_ctx)
    try:
        classroom = _classroom_for(app_ctx, uid)
        if classroom is None:
            return app_ctx.jsonify({'error': NO_ACCOUNT_MESSAGE}), 400
        now = app_ctx.utcnow()
        existing = {
            assignment_key(data.get('title', ''), data.get('course', ''))
            for _assignment_id, data in assignments_repo.list_assignments(app_ctx.db, uid)
        }
        imported = 0
        for course, work in iter_coursework(classroom, list_active_courses(classroom), app_ctx.logger):
            title = work.get('title') or UNTITLED_ASSIGNMENT
            course_name = course.get('name') or None
            key = assignment_key(title, course_name)
            if key in existing:
                continue
            try:
                status = derive_submission_status(work, list_submissions(classroom, course['id'], work['id']), now)
            except Exception as exc:
                app_ctx.logger.info(f"Could not get submission state for {title}: {exc}")
                status = STATUS_ASSIGNED
            assignments_repo.create_assignment(app_ctx.db, uid, {
                'title': title,
                'course': course_name,
                'due_date': due_date_iso(work),
                'status': status,
                'notes': work.get('description') or None,
                'is_group': False,
            }, app_ctx.time.time())
            existing.add(key)
            imported += 1
    except Exception as exc:
        app_ctx.logger.error(f"Classroom import error for user {uid}: {exc}")
        return google_error_response(app_ctx, exc, 'Classroom', 'Failed to import from Classroom')
    return app_ctx.jsonify({
        'success': True,
        'imported': imported,
        'message': f"Imported {imported} new assignments from Google Classroom",
    })


def resync_classroom(app_ctx, request):
    uid = authenticate(app_ctx, request)
    if not uid:
        return unauthorized_response(app_ctx)
    try:
        classroom = _classroom_for(app_ctx, uid)
        if classroom is None:
            return app_ctx.jsonify({'error': NO_ACCOUNT_MESSAGE}), 400
        now = app_ctx.utcnow()
        status_map = build_status_map(classroom, now, logger=app_ctx.logger)
        changes = reconcile_assignments(assignments_repo.list_assignments(app_ctx.db, uid), status_map)
        updated = 0
        for assignment_id, status in changes:
            try:
                assignments_repo.update_assignment_status(app_ctx.db, assignment_id, status, app_ctx.time.time())
                updated += 1
            except Exception as exc:
                app_ctx.logger.error(f"Could not update assignment {assignment_id}: {exc}")
    except Exception as exc:
        app_ctx.logger.error(f"Classroom resync error for user {uid}: {exc}")
        return google_error_response(app_ctx, exc, 'Classroom', 'Failed to resync assignments')
    return app_ctx.jsonify({
        'success': True,
        'updated': updated,
        'message': f"Updated {updated} assignments with correct status",
    })
