from datetime import date

from conftest import AUTH_HEADERS
from studenthub.services.activity_service import compute_streak

TODAY = date(2026, 10, 17)


def test_no_activity_means_no_streak():
    assert compute_streak([], TODAY) == {"streak": 0, "last_active": None}


def test_consecutive_days_ending_today():
    result = compute_streak(["2026-10-17", "2026-10-16", "2026-10-15", "2026-10-13"], TODAY)

    assert result == {"streak": 3, "last_active": "2026-10-17", "is_active_today": True}


def test_streak_ending_yesterday_is_still_alive():
    result = compute_streak(["2026-10-15", "2026-10-16"], TODAY)

    assert result == {"streak": 2, "last_active": "2026-10-16", "is_active_today": False}


def test_gap_of_two_days_breaks_the_streak():
    result = compute_streak(["2026-10-15", "2026-10-14"], TODAY)

    assert result["streak"] == 0
    assert result["last_active"] == "2026-10-15"
    assert result["message"] == "Streak broken! Log in to start a new one."


def test_duplicate_and_malformed_dates_are_ignored():
    result = compute_streak(["2026-10-17", "2026-10-17", "not-a-date", "2026-10-16T08:00:00"], TODAY)

    assert result["streak"] == 2


def test_log_activity_counts_visits_per_day(build_client, fake_db):
    client, _runtime = build_client()

    first = client.post("/api/activity", headers=AUTH_HEADERS)
    client.post("/api/activity", headers=AUTH_HEADERS)

    assert first.get_json() == {"success": True, "date": "2026-10-17"}
    record = fake_db.docs("user_activity")["u1__2026-10-17"]
    assert record["activity_count"] == 2
    assert record["uid"] == "u1"


def test_get_streak_reads_recent_activity(build_client, fake_db):
    fake_db.data["user_activity"] = {
        "u1__2026-10-16": {"uid": "u1", "activity_date": "2026-10-16"},
        "u1__2026-10-15": {"uid": "u1", "activity_date": "2026-10-15"},
        "u2__2026-10-17": {"uid": "u2", "activity_date": "2026-10-17"},
    }
    client, _runtime = build_client()

    response = client.get("/api/activity", headers=AUTH_HEADERS)

    assert response.status_code == 200
    assert response.get_json() == {"streak": 2, "last_active": "2026-10-16", "is_active_today": False}


def test_activity_requires_login(build_client):
    client, _runtime = build_client()

    assert client.get("/api/activity").status_code == 401
    assert client.post("/api/activity").status_code == 401
