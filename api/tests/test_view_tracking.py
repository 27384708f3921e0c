from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from types import SimpleNamespace

import pytest
from sqlalchemy.exc import OperationalError

from app import models, settings
from app.utils.view_tracking import (
    REASON_ALREADY_COUNTED,
    REASON_BOT,
    ViewRecordingError,
    get_client_ip,
    hash_view_ip,
    record_view,
)

BROWSER = "Mozilla/5.0 (Macintosh; Intel Mac OS X 14_0)"
NOW = datetime(2024, 5, 20, 12, 0, tzinfo=timezone.utc)


def _request(headers: dict | None = None, host: str | None = "10.0.0.1"):
    return SimpleNamespace(
        headers=headers or {},
        client=SimpleNamespace(host=host) if host else None,
    )


def test_client_ip_prefers_first_forwarded_for():
    request = _request({"X-Forwarded-For": "203.0.113.7, 10.0.0.2", "X-Real-IP": "198.51.100.1"})
    assert get_client_ip(request) == "203.0.113.7"


def test_client_ip_falls_back_to_real_ip_then_peer():
    assert get_client_ip(_request({"X-Real-IP": "198.51.100.1"})) == "198.51.100.1"
    assert get_client_ip(_request()) == "10.0.0.1"
    assert get_client_ip(_request(host=None)) == "unknown"


def test_view_ip_hash_rotates_by_day_and_post():
    day = date(2024, 5, 20)
    base = hash_view_ip("203.0.113.7", "post-a", day)

    assert len(base) == 64
    assert base == hash_view_ip("203.0.113.7", "post-a", day)
    assert base != hash_view_ip("203.0.113.7", "post-b", day)
    assert base != hash_view_ip("203.0.113.7", "post-a", day + timedelta(days=1))
    assert "203.0.113.7" not in base


def test_record_view_counts_first_view(db):
    result = record_view(db, "post-a", BROWSER, "203.0.113.7", now=NOW)

    assert result.counted is True
    assert result.reason is None
    view = db.query(models.BlogPostView).one()
    assert view.post_id == "post-a"
    assert view.view_date == date(2024, 5, 20)
    assert view.user_agent == BROWSER
    assert view.ip_hash == hash_view_ip("203.0.113.7", "post-a", date(2024, 5, 20))


def test_record_view_rejects_bots_without_writing(db):
    result = record_view(db, "post-a", "Googlebot/2.1", "203.0.113.7", now=NOW)

    assert result.counted is False
    assert result.reason == REASON_BOT
    assert db.query(models.BlogPostView).count() == 0


def test_record_view_dedups_same_visitor_same_day(db):
    first = record_view(db, "post-a", BROWSER, "203.0.113.7", now=NOW)
    second = record_view(db, "post-a", BROWSER, "203.0.113.7", now=NOW + timedelta(hours=3))

    assert first.counted is True
    assert second.counted is False
    assert second.reason == REASON_ALREADY_COUNTED
    assert db.query(models.BlogPostView).count() == 1


def test_record_view_counts_again_next_day_and_other_posts(db):
    record_view(db, "post-a", BROWSER, "203.0.113.7", now=NOW)

    assert record_view(db, "post-b", BROWSER, "203.0.113.7", now=NOW).counted is True
    assert record_view(db, "post-a", BROWSER, "198.51.100.1", now=NOW).counted is True
    assert record_view(db, "post-a", BROWSER, "203.0.113.7", now=NOW + timedelta(days=1)).counted is True
    assert db.query(models.BlogPostView).count() == 4


def test_record_view_truncates_user_agent(db, monkeypatch):
    monkeypatch.setattr(settings, "VIEW_USER_AGENT_MAX_LENGTH", 20)
    record_view(db, "post-a", BROWSER + " x" * 400, "203.0.113.7", now=NOW)

    assert db.query(models.BlogPostView).one().user_agent == BROWSER[:20]


def test_record_view_dedup_day_is_local(db, monkeypatch):
    monkeypatch.setattr(settings, "ANALYTICS_TIMEZONE", "America/Los_Angeles")
    late_evening = datetime(2024, 5, 21, 6, 0, tzinfo=timezone.utc)  # 23:00 on the 20th locally
    next_morning = datetime(2024, 5, 21, 16, 0, tzinfo=timezone.utc)  # 09:00 on the 21st locally

    assert record_view(db, "post-a", BROWSER, "203.0.113.7", now=late_evening).counted is True
    assert record_view(db, "post-a", BROWSER, "203.0.113.7", now=next_morning).counted is True
    days = sorted(v.view_date for v in db.query(models.BlogPostView))
    assert days == [date(2024, 5, 20), date(2024, 5, 21)]


def test_record_view_wraps_database_errors(db, monkeypatch):
    def broken_commit():
        raise OperationalError("INSERT", {}, Exception("database is locked"))

    monkeypatch.setattr(db, "commit", broken_commit)

    with pytest.raises(ViewRecordingError) as exc_info:
        record_view(db, "post-a", BROWSER, "203.0.113.7", now=NOW)
    assert "locked" not in str(exc_info.value)
