"""
Tests for database connection management.
"""

from unittest.mock import MagicMock, patch

import pytest
from sqlalchemy import text
from sqlalchemy.orm import Session

from worktrace.db.connection import (
    SCHEMA_VERSION,
    create_db_engine,
    db_session,
    get_db,
    init_db,
)
from worktrace.db.repositories import MetadataRepository


class TestCreateDbEngine:
    def test_sqlite_foreign_keys_enabled(self, test_engine):
        with test_engine.connect() as conn:
            assert conn.execute(text("PRAGMA foreign_keys")).scalar() == 1

    @pytest.mark.parametrize("environment,echo", [("development", True), ("production", False)])
    def test_echo_follows_environment(self, tmp_path, environment, echo):
        with patch("worktrace.db.connection.settings") as mock_settings:
            mock_settings.environment = environment
            engine = create_db_engine(f"sqlite:///{tmp_path / 'echo.db'}")

        assert engine.echo == echo
        engine.dispose()

    def test_savepoint_rollback(self, db_session: Session, sample_workspace):
        savepoint = db_session.begin_nested()
        sample_workspace.name = "renamed"
        db_session.flush()
        savepoint.rollback()
        db_session.commit()

        db_session.expire_all()
        assert sample_workspace.name == "billing"


class TestInitDb:
    def test_creates_schema_and_records_version(self, tmp_path):
        engine = create_db_engine(f"sqlite:///{tmp_path / 'nested' / 'init.db'}")

        init_db(bind=engine)

        with Session(engine) as session:
            assert MetadataRepository(session).get_value("schema_version") == SCHEMA_VERSION
        engine.dispose()

    def test_is_idempotent(self, test_engine):
        init_db(bind=test_engine)
        init_db(bind=test_engine)


class TestSessionScopes:
    def test_get_db_commits(self):
        mock_session = MagicMock(spec=Session)

        with patch("worktrace.db.connection.SessionLocal", return_value=mock_session):
            gen = get_db()
            assert next(gen) is mock_session
            with pytest.raises(StopIteration):
                next(gen)

        mock_session.commit.assert_called_once()
        mock_session.close.assert_called_once()

    def test_db_session_rolls_back_on_error(self):
        mock_session = MagicMock(spec=Session)

        with patch("worktrace.db.connection.SessionLocal", return_value=mock_session):
            with pytest.raises(RuntimeError):
                with db_session():
                    raise RuntimeError("boom")

        mock_session.rollback.assert_called_once()
        mock_session.commit.assert_not_called()
        mock_session.close.assert_called_once()
