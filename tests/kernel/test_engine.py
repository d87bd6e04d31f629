"""Tests for salary_kernel.db.engine -- engine setup and session scope."""

import pytest
from sqlalchemy import inspect

from salary_kernel.db import engine as db_engine
from salary_kernel.services.sequence_service import SequenceService


@pytest.fixture
def sqlite_engine():
    eng = db_engine.init_engine_from_url("sqlite:///:memory:")
    db_engine.create_tables()
    yield eng
    db_engine.reset_engine()


class TestInitialization:
    def test_uninitialized_engine_raises(self):
        db_engine.reset_engine()
        with pytest.raises(RuntimeError):
            db_engine.get_engine()
        with pytest.raises(RuntimeError):
            db_engine.get_session()
        assert db_engine.is_postgres() is False

    def test_sqlite_engine(self, sqlite_engine):
        assert db_engine.get_engine() is sqlite_engine
        assert db_engine.is_postgres() is False

    def test_create_tables(self, sqlite_engine):
        tables = set(inspect(sqlite_engine).get_table_names())
        assert {
            "audit_events",
            "sequence_counters",
            "employees",
            "salary_components",
            "salary_change_logs",
            "bulk_operations",
            "bulk_operation_items",
            "operation_templates",
        } <= tables

    def test_reset_engine(self, sqlite_engine):
        db_engine.reset_engine()
        with pytest.raises(RuntimeError):
            db_engine.get_session_factory()


class TestSessionScope:
    def test_commits_on_success(self, sqlite_engine):
        with db_engine.session_scope() as session:
            SequenceService(session).next_value("scope_test")

        with db_engine.session_scope() as session:
            assert SequenceService(session).current_value("scope_test") == 1

    def test_rolls_back_on_error(self, sqlite_engine):
        with pytest.raises(RuntimeError, match="abort"):
            with db_engine.session_scope() as session:
                SequenceService(session).next_value("scope_test")
                raise RuntimeError("abort")

        with db_engine.session_scope() as session:
            assert SequenceService(session).current_value("scope_test") is None

    def test_savepoint_rollback_keeps_outer_work(self, sqlite_engine):
        with db_engine.session_scope() as session:
            sequences = SequenceService(session)
            sequences.next_value("outer")
            savepoint = session.begin_nested()
            sequences.next_value("inner")
            savepoint.rollback()

        with db_engine.session_scope() as session:
            sequences = SequenceService(session)
            assert sequences.current_value("outer") == 1
            assert sequences.current_value("inner") is None
