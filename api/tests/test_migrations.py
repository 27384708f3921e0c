from __future__ import annotations

import logging

import pytest
from sqlalchemy import create_engine, inspect

from app import db as db_module
from app import main


@pytest.fixture()
def migration_engine(tmp_path, monkeypatch):
    url = f"sqlite:///{tmp_path / 'migrations.db'}"
    engine = create_engine(url)
    monkeypatch.setenv("DB_ADMIN_URL", url)
    monkeypatch.setattr(db_module, "engine", engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def configured_root_logger():
    """Root logger as main.py leaves it: INFO with a handler attached."""
    root = logging.getLogger()
    previous_level = root.level
    handler = logging.NullHandler()
    root.addHandler(handler)
    root.setLevel(logging.INFO)
    yield root
    root.removeHandler(handler)
    root.setLevel(previous_level)


def test_migrations_create_analytics_tables(migration_engine, configured_root_logger):
    main.run_migrations()

    tables = set(inspect(migration_engine).get_table_names())
    assert {"blog_post_views", "blog_post_views_daily", "blog_post_views_monthly"} <= tables


def test_migrations_keep_application_log_level(migration_engine, configured_root_logger):
    main.run_migrations()

    assert configured_root_logger.level == logging.INFO
    assert logging.getLogger("app.utils.view_tracking").isEnabledFor(logging.INFO)
    assert logging.getLogger("app.services.view_aggregation").isEnabledFor(logging.INFO)


def test_migrations_skip_when_up_to_date(migration_engine, configured_root_logger, monkeypatch):
    main.run_migrations()

    calls = []
    monkeypatch.setattr(main.command, "upgrade", lambda cfg, revision: calls.append(revision))
    main.run_migrations()

    assert calls == []
