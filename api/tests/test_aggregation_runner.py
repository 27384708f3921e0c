from __future__ import annotations

from datetime import date, datetime, timezone

import pytest

from app import models
from app.services import aggregation_runner
from app.services.aggregation_runner import (
    GENERIC_ERROR,
    AggregationRequestError,
    plan_aggregation,
    run_aggregation,
)

from conftest import add_daily, add_raw_view

NOW = datetime(2024, 3, 1, 0, 15, tzinfo=timezone.utc)


def test_plan_defaults():
    daily = plan_aggregation("daily", None, NOW)
    assert daily.daily_date == date(2024, 2, 29)
    assert daily.year_month is None
    assert not daily.cleanup

    monthly = plan_aggregation("monthly", None, NOW)
    assert monthly.year_month == "2024-02"
    assert monthly.daily_date is None

    assert plan_aggregation("cleanup", None, NOW).cleanup


def test_plan_all_ignores_date():
    plan = plan_aggregation("all", "2020-01-01", NOW)
    assert plan.daily_date == date(2024, 2, 29)
    assert plan.year_month == "2024-02"
    assert plan.cleanup


@pytest.mark.parametrize(
    "job_type, date_str",
    [
        ("weekly", None),
        (None, None),
        ("daily", "2024-02"),
        ("daily", "2024-02-30"),
        ("monthly", "2024-02-01"),
        ("monthly", "2024-13"),
        ("monthly", "9999-12"),
        ("monthly", "0000-05"),
        ("daily", "9999-12-31"),
        ("daily", "0000-01-01"),
    ],
)
def test_plan_rejects_invalid_requests(job_type, date_str):
    with pytest.raises(AggregationRequestError):
        plan_aggregation(job_type, date_str, NOW)


def test_run_daily_reports_result(db):
    add_raw_view(db, "post-a", "A", datetime(2024, 2, 29, 12, 0, tzinfo=timezone.utc))

    run = run_aggregation(db, "daily", "2024-02-29", NOW)

    assert run.success
    assert run.daily == {"aggregated": 1, "date": "2024-02-29"}
    assert run.monthly is None and run.cleanup is None
    assert db.query(models.BlogPostViewsDaily).count() == 1


def test_run_all_runs_every_step_in_order(db):
    add_raw_view(db, "post-a", "A", datetime(2024, 2, 29, 12, 0, tzinfo=timezone.utc))
    add_raw_view(db, "post-a", "B", datetime(2023, 10, 1, 12, 0, tzinfo=timezone.utc))

    run = run_aggregation(db, "all", None, NOW)

    assert run.success
    assert run.daily == {"aggregated": 1, "date": "2024-02-29"}
    # Monthly runs after daily, so it already sees the day just aggregated
    assert run.monthly == {"aggregated": 1, "yearMonth": "2024-02"}
    assert run.cleanup == {"deleted": 1, "daysKept": 90}
    assert db.query(models.BlogPostViewsMonthly).one().view_count == 1


def test_run_all_isolates_failing_step(db, monkeypatch):
    add_daily(db, "post-a", date(2024, 2, 10), 4)

    def broken_daily(db, target_date):
        raise RuntimeError("connection reset by peer")

    monkeypatch.setattr(aggregation_runner, "aggregate_daily", broken_daily)

    run = run_aggregation(db, "all", None, NOW)

    assert not run.success
    assert run.any_succeeded
    assert run.errors == {"daily": GENERIC_ERROR}
    assert run.daily is None
    assert run.monthly == {"aggregated": 1, "yearMonth": "2024-02"}
    assert run.cleanup is not None


def test_run_all_every_step_failing(db, monkeypatch):
    def broken(*args, **kwargs):
        raise RuntimeError("boom")

    for name in ("aggregate_daily", "aggregate_monthly", "cleanup_old_views"):
        monkeypatch.setattr(aggregation_runner, name, broken)

    run = run_aggregation(db, "all", None, NOW)

    assert not run.any_succeeded
    assert set(run.errors) == {"daily", "monthly", "cleanup"}
    assert "boom" not in run.errors.values()
