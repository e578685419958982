from __future__ import annotations

import tempfile
from pathlib import Path
from unittest.mock import MagicMock, patch

import psycopg
import pytest

from spendcast.registry.db import MIGRATIONS_DIR, Database

DSN = "postgresql://u:p@localhost:5432/budget"


def _connected(cursor: MagicMock) -> tuple[Database, MagicMock]:
    cursor.__enter__ = MagicMock(return_value=cursor)
    cursor.__exit__ = MagicMock(return_value=False)
    conn = MagicMock()
    conn.cursor.return_value = cursor
    db = Database(DSN)
    db._conn = conn
    return db, conn


class TestDatabaseInit:
    def test_not_connected_by_default(self) -> None:
        db = Database(DSN)
        assert db._pool is None
        assert db._conn is None

    def test_bundled_migrations_exist(self) -> None:
        assert (MIGRATIONS_DIR / "001_forecasts.sql").exists()


class TestDatabaseExecute:
    def test_execute_returns_dicts_and_commits(self) -> None:
        cursor = MagicMock()
        cursor.description = [("id",), ("user_id",)]
        cursor.fetchall.return_value = [{"id": 1, "user_id": "u1"}]
        db, conn = _connected(cursor)

        result = db.execute("SELECT id, user_id FROM spendcast.forecasts")

        assert result == [{"id": 1, "user_id": "u1"}]
        conn.commit.assert_called_once()

    def test_execute_without_result_set(self) -> None:
        cursor = MagicMock()
        cursor.description = None
        db, _ = _connected(cursor)

        assert db.execute("UPDATE spendcast.forecasts SET status = %s", ("expired",)) == []

    def test_execute_rolls_back_on_error(self) -> None:
        cursor = MagicMock()
        cursor.execute.side_effect = psycopg.OperationalError("connection lost")
        db, conn = _connected(cursor)

        with pytest.raises(psycopg.Error):
            db.execute("INSERT INTO spendcast.forecast_accuracy VALUES (1)")
        conn.rollback.assert_called_once()
        conn.commit.assert_not_called()

    def test_execute_raises_when_not_connected(self) -> None:
        with pytest.raises(RuntimeError, match="not connected"):
            Database(DSN).execute("SELECT 1")


class TestMigrationRunner:
    def test_runs_pending_files_in_order(self) -> None:
        cursor = MagicMock()
        cursor.fetchall.return_value = []
        db, _ = _connected(cursor)

        with tempfile.TemporaryDirectory() as tmpdir:
            (Path(tmpdir) / "002_index.sql").write_text("CREATE INDEX i ON t (id);")
            (Path(tmpdir) / "001_table.sql").write_text("CREATE TABLE t (id INT);")

            applied = db.run_migrations(tmpdir)

        assert applied == ["001_table.sql", "002_index.sql"]
        calls = cursor.execute.call_args_list
        assert "_spendcast_migrations" in str(calls[0])
        # CREATE tracking table + SELECT applied + 2 * (SQL + INSERT)
        assert len(calls) == 6

    def test_skips_applied_migrations(self) -> None:
        cursor = MagicMock()
        cursor.fetchall.return_value = [{"filename": "001_table.sql"}]
        db, _ = _connected(cursor)

        with tempfile.TemporaryDirectory() as tmpdir:
            (Path(tmpdir) / "001_table.sql").write_text("CREATE TABLE t (id INT);")
            (Path(tmpdir) / "002_index.sql").write_text("CREATE INDEX i ON t (id);")

            applied = db.run_migrations(tmpdir)

        assert applied == ["002_index.sql"]
        assert len(cursor.execute.call_args_list) == 4


class TestHealthCheck:
    def test_healthy(self) -> None:
        cursor = MagicMock()
        cursor.description = [("ok",)]
        cursor.fetchall.return_value = [{"ok": 1}]
        db, _ = _connected(cursor)
        assert db.health_check() is True

    def test_unhealthy_when_not_connected(self) -> None:
        assert Database(DSN).health_check() is False


class TestContextManager:
    @patch("spendcast.registry.db.HAS_POOL", False)
    @patch("spendcast.registry.db.psycopg")
    def test_opens_and_closes_single_connection(self, mock_psycopg: MagicMock) -> None:
        mock_conn = MagicMock()
        mock_psycopg.connect.return_value = mock_conn

        with Database(DSN) as db:
            assert db._conn is mock_conn

        mock_conn.close.assert_called_once()
