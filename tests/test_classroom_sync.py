from datetime import datetime, timezone

from conftest import AUTH_HEADERS
from studenthub.services.classroom_service import (
    build_status_map,
    derive_submission_status,
    due_datetime,
    reconcile_assignments,
)
from studenthub.services.google_service import CLASSROOM_SCOPES, build_credentials

NOW = datetime(2026, 10, 17, 12, 0, tzinfo=timezone.utc)


class _Call:
    def __init__(self, response):
        self.response = response

    def execute(self):
        if isinstance(self.response, Exception):
            raise self.response
        return self.response


class _Pager:
    """Returns one page per ``pageToken`` from ``pages`` keyed by token (None for the first)."""

    def __init__(self, pages):
        self.pages = pages
        self.calls = []

    def list(self, **params):
        self.calls.append(params)
        return _Call(self.pages(params) if callable(self.pages) else self.pages[params.get("pageToken")])


class _FakeClassroom:
    def __init__(self, courses, coursework, submissions):
        self._courses = _Pager(courses)
        self._coursework = _Pager(lambda params: coursework[params["courseId"]])
        self._submissions = _Pager(lambda params: submissions[params["courseWorkId"]])

    def courses(self):
        return self

    def list(self, **params):
        return self._courses.list(**params)

    def courseWork(self):
        return _CourseWork(self)


class _CourseWork:
    def __init__(self, classroom):
        self.classroom = classroom

    def list(self, **params):
        return self.classroom._coursework.list(**params)

    def studentSubmissions(self):
        return self.classroom._submissions


def _classroom():
    return _FakeClassroom(
        courses={
            None: {"courses": [{"id": "c1", "name": "Algorithms"}], "nextPageToken": "p2"},
            "p2": {"courses": [{"id": "c2", "name": "Databases"}]},
        },
        coursework={
            "c1": {"courseWork": [
                {"id": "w1", "title": "Graph homework", "dueDate": {"year": 2026, "month": 10, "day": 10}},
                {"id": "w2", "title": "Sorting lab"},
            ]},
            "c2": RuntimeError("coursework forbidden"),
        },
        submissions={
            "w1": {"studentSubmissions": [{"state": "CREATED"}]},
            "w2": {"studentSubmissions": [{"state": "TURNED_IN"}]},
        },
    )


def test_missing_due_time_means_end_of_day():
    assert due_datetime({"dueDate": {"year": 2026, "month": 10, "day": 17}}) == datetime(
        2026, 10, 17, 23, 59, tzinfo=timezone.utc
    )
    assert due_datetime({"dueDate": {"year": 2026, "month": 10, "day": 17}, "dueTime": {"hours": 9}}) == datetime(
        2026, 10, 17, 9, 0, tzinfo=timezone.utc
    )
    assert due_datetime({}) is None


def test_submission_status_rules():
    due_today = {"dueDate": {"year": 2026, "month": 10, "day": 17}}
    overdue = {"dueDate": {"year": 2026, "month": 10, "day": 16}}

    assert derive_submission_status(overdue, [], NOW) == "assigned"
    assert derive_submission_status(overdue, [{"state": "CREATED", "assignedGrade": 8}], NOW) == "done"
    assert derive_submission_status(overdue, [{"state": "RETURNED"}], NOW) == "done"
    assert derive_submission_status(overdue, [{"state": "CREATED"}], NOW) == "missing"
    assert derive_submission_status(due_today, [{"state": "CREATED"}], NOW) == "assigned"


def test_status_map_pages_courses_and_skips_failing_coursework():
    classroom = _classroom()

    status_map = build_status_map(classroom, NOW)

    assert status_map == {
        "Graph homework|Algorithms": "missing",
        "Sorting lab|Algorithms": "done",
    }
    assert [call.get("pageToken") for call in classroom._courses.calls] == [None, "p2"]


def test_reconcile_only_reports_changed_statuses():
    assignments = [
        ("a1", {"title": "Graph homework", "course": "Algorithms", "status": "assigned"}),
        ("a2", {"title": "Sorting lab", "course": "Algorithms", "status": "done"}),
        ("a3", {"title": "Essay", "course": "History", "status": "assigned"}),
    ]

    changes = reconcile_assignments(assignments, {"Graph homework|Algorithms": "missing", "Sorting lab|Algorithms": "done"})

    assert changes == [("a1", "missing")]


def test_credentials_carry_refresh_details():
    credentials = build_credentials(
        {"access_token": "at", "refresh_token": "rt"},
        client_id="cid",
        client_secret="secret",
        scopes=CLASSROOM_SCOPES,
    )

    assert credentials.token == "at"
    assert credentials.refresh_token == "rt"
    assert credentials.client_id == "cid"
    assert list(credentials.scopes) == CLASSROOM_SCOPES


def test_resync_updates_changed_assignments(build_client, fake_db):
    fake_db.data["google_accounts"] = {
        "g1": {"uid": "u1", "services": ["classroom"], "tokens": {"access_token": "at"}},
    }
    fake_db.data["assignments"] = {
        "a1": {"uid": "u1", "title": "Graph homework", "course": "Algorithms", "status": "assigned"},
        "a2": {"uid": "u1", "title": "Sorting lab", "course": "Algorithms", "status": "assigned"},
        "a3": {"uid": "u2", "title": "Sorting lab", "course": "Algorithms", "status": "assigned"},
    }
    seen_tokens = []

    def factory(tokens):
        seen_tokens.append(tokens)
        return _classroom()

    client, _runtime = build_client(classroom_factory=factory)

    response = client.post("/api/google/classroom/resync", headers=AUTH_HEADERS)

    assert response.status_code == 200
    assert response.get_json() == {
        "success": True,
        "updated": 2,
        "message": "Updated 2 assignments with correct status",
    }
    assert seen_tokens == [{"access_token": "at"}]
    assignments = fake_db.docs("assignments")
    assert assignments["a1"]["status"] == "missing"
    assert assignments["a2"]["status"] == "done"
    assert assignments["a3"]["status"] == "assigned"


def test_resync_falls_back_to_profile_tokens(build_client, fake_db):
    fake_db.data["profiles"] = {"u1": {"google_connected": True, "google_tokens": {"access_token": "legacy"}}}
    seen_tokens = []
    client, _runtime = build_client(classroom_factory=lambda tokens: seen_tokens.append(tokens) or _classroom())

    response = client.post("/api/google/classroom/resync", headers=AUTH_HEADERS)

    assert response.status_code == 200
    assert seen_tokens == [{"access_token": "legacy"}]


def test_resync_without_linked_account_is_400(build_client):
    client, _runtime = build_client(classroom_factory=lambda tokens: _classroom())

    response = client.post("/api/google/classroom/resync", headers=AUTH_HEADERS)

    assert response.status_code == 400
    assert response.get_json() == {"error": "No Google account connected for Classroom"}


def test_resync_reports_classroom_failures_generically(build_client, fake_db):
    fake_db.data["google_accounts"] = {"g1": {"uid": "u1", "services": ["classroom"], "tokens": {"access_token": "at"}}}

    def factory(_tokens):
        raise RuntimeError("invalid_grant: token revoked")

    client, _runtime = build_client(classroom_factory=factory)

    response = client.post("/api/google/classroom/resync", headers=AUTH_HEADERS)

    assert response.status_code == 500
    assert response.get_json() == {"error": "Failed to resync assignments"}


def test_list_classroom_returns_courses_and_coursework(build_client, fake_db):
    fake_db.data["google_accounts"] = {"g1": {"uid": "u1", "services": ["classroom"], "tokens": {"access_token": "at"}}}
    client, _runtime = build_client(classroom_factory=lambda tokens: _classroom())

    response = client.get("/api/google/classroom", headers=AUTH_HEADERS)

    body = response.get_json()
    assert response.status_code == 200
    assert body["courses"] == [{"id": "c1", "name": "Algorithms"}, {"id": "c2", "name": "Databases"}]
    assert [item["title"] for item in body["assignments"]] == ["Graph homework", "Sorting lab"]
    assert body["assignments"][0]["dueDate"] == "2026-10-10"
    assert body["assignments"][0]["courseName"] == "Algorithms"
    assert body["assignments"][1]["dueDate"] is None


def test_import_creates_only_new_assignments(build_client, fake_db):
    fake_db.data["google_accounts"] = {"g1": {"uid": "u1", "services": ["classroom"], "tokens": {"access_token": "at"}}}
    fake_db.data["assignments"] = {
        "a1": {"uid": "u1", "title": "Sorting lab", "course": "Algorithms", "status": "assigned"},
        "a2": {"uid": "u2", "title": "Graph homework", "course": "Algorithms", "status": "done"},
    }
    client, _runtime = build_client(classroom_factory=lambda tokens: _classroom())

    first = client.post("/api/google/classroom", headers=AUTH_HEADERS)
    second = client.post("/api/google/classroom", headers=AUTH_HEADERS)

    assert first.get_json() == {
        "success": True,
        "imported": 1,
        "message": "Imported 1 new assignments from Google Classroom",
    }
    assert second.get_json()["imported"] == 0
    created = [data for doc_id, data in fake_db.docs("assignments").items() if doc_id not in {"a1", "a2"}]
    assert created == [{
        "title": "Graph homework",
        "course": "Algorithms",
        "due_date": "2026-10-10",
        "status": "missing",
        "notes": None,
        "is_group": False,
        "uid": "u1",
        "created_at": 1_800_000_000.0,
        "updated_at": 1_800_000_000.0,
    }]


def test_import_defaults_to_assigned_when_submissions_fail(build_client, fake_db):
    fake_db.data["google_accounts"] = {"g1": {"uid": "u1", "services": ["classroom"], "tokens": {"access_token": "at"}}}
    classroom = _FakeClassroom(
        courses={None: {"courses": [{"id": "c1", "name": "Physics"}]}},
        coursework={"c1": {"courseWork": [{"id": "w1", "description": "Chapter 2"}]}},
        submissions={"w1": RuntimeError("submissions unavailable")},
    )
    client, _runtime = build_client(classroom_factory=lambda tokens: classroom)

    response = client.post("/api/google/classroom", headers=AUTH_HEADERS)

    assert response.get_json()["imported"] == 1
    created = list(fake_db.docs("assignments").values())[0]
    assert created["title"] == "Untitled Assignment"
    assert created["status"] == "assigned"
    assert created["notes"] == "Chapter 2"


def test_import_scope_error_asks_for_reconnect(build_client, fake_db):
    fake_db.data["google_accounts"] = {"g1": {"uid": "u1", "services": ["classroom"], "tokens": {"access_token": "at"}}}

    class _InsufficientScope(Exception):
        status_code = 403

    def factory(_tokens):
        raise _InsufficientScope("Request had insufficient authentication scopes.")

    client, _runtime = build_client(classroom_factory=factory)

    response = client.post("/api/google/classroom", headers=AUTH_HEADERS)

    assert response.status_code == 403
    assert response.get_json() == {
        "error": "Please reconnect Google in Settings to enable Classroom access",
        "needsReconnect": True,
    }
