from __future__ import annotations

import tempfile
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from prediction_resolver.registry.db import MIGRATIONS_DIR, Database

DSN = "postgresql://u:p@localhost:5432/testdb"


def _attach(db: Database, mock_cursor: MagicMock) -> MagicMock:
    """Wire a mocked pool handing out one connection with ``mock_cursor``."""
    mock_cursor.__enter__ = MagicMock(return_value=mock_cursor)
    mock_cursor.__exit__ = MagicMock(return_value=False)
    mock_conn = MagicMock()
    mock_conn.cursor.return_value = mock_cursor
    pool = MagicMock()
    pool.getconn.return_value = mock_conn
    db._pool = pool
    return mock_conn


class TestDatabaseInit:
    def test_stores_dsn(self) -> None:
        db = Database(DSN)
        assert db._dsn == DSN

    def test_not_connected_by_default(self) -> None:
        db = Database(DSN)
        assert db._pool is None
        assert db.is_connected is False

    def test_connect_requires_dsn(self) -> None:
        with pytest.raises(RuntimeError, match="DATABASE_URL"):
            Database("").connect()


class TestDatabaseExecute:
    def test_execute_returns_dicts(self) -> None:
        db = Database(DSN)
        mock_cursor = MagicMock()
        mock_cursor.description = [("id",), ("name",)]
        mock_cursor.fetchall.return_value = [
            {"id": 1, "name": "alpha"},
            {"id": 2, "name": "beta"},
        ]
        mock_conn = _attach(db, mock_cursor)

        result = db.execute("SELECT id, name FROM resolution_records")

        assert result == [{"id": 1, "name": "alpha"}, {"id": 2, "name": "beta"}]
        mock_conn.commit.assert_called_once()
        db._pool.putconn.assert_called_once_with(mock_conn)

    def test_execute_no_results(self) -> None:
        db = Database(DSN)
        mock_cursor = MagicMock()
        mock_cursor.description = None
        _attach(db, mock_cursor)

        assert db.execute("DELETE FROM resolution_records WHERE id = %s", ("x",)) == []

    def test_execute_rolls_back_on_error(self) -> None:
        db = Database(DSN)
        mock_cursor = MagicMock()
        mock_cursor.execute.side_effect = RuntimeError("syntax error")
        mock_conn = _attach(db, mock_cursor)

        with pytest.raises(RuntimeError):
            db.execute("SELEC 1")

        mock_conn.rollback.assert_called_once()
        db._pool.putconn.assert_called_once_with(mock_conn)

    def test_execute_raises_when_not_connected(self) -> None:
        db = Database(DSN)
        with pytest.raises(RuntimeError, match="not connected"):
            db.execute("SELECT 1")


class TestMigrationRunner:
    def test_finds_and_runs_sql_files(self) -> None:
        db = Database(DSN)
        with tempfile.TemporaryDirectory() as tmpdir:
            (Path(tmpdir) / "001_create_table.sql").write_text("CREATE TABLE test (id INT);")
            (Path(tmpdir) / "002_add_column.sql").write_text("ALTER TABLE test ADD COLUMN name TEXT;")

            mock_cursor = MagicMock()
            mock_cursor.fetchall.return_value = []
            _attach(db, mock_cursor)

            applied = db.run_migrations(tmpdir)

            assert applied == ["001_create_table.sql", "002_add_column.sql"]
            calls = mock_cursor.execute.call_args_list
            assert "_migrations" in str(calls[0])
            assert "SELECT filename" in str(calls[1])
            assert len(calls) == 6  # CREATE + SELECT + 2*(SQL + INSERT)

    def test_skips_applied_migrations(self) -> None:
        db = Database(DSN)
        with tempfile.TemporaryDirectory() as tmpdir:
            (Path(tmpdir) / "001_create_table.sql").write_text("CREATE TABLE test (id INT);")
            (Path(tmpdir) / "002_add_column.sql").write_text("ALTER TABLE test ADD COLUMN name TEXT;")

            mock_cursor = MagicMock()
            mock_cursor.fetchall.return_value = [{"filename": "001_create_table.sql"}]
            _attach(db, mock_cursor)

            assert db.run_migrations(tmpdir) == ["002_add_column.sql"]
            assert len(mock_cursor.execute.call_args_list) == 4

    def test_packaged_migrations_exist(self) -> None:
        names = sorted(p.name for p in MIGRATIONS_DIR.glob("*.sql"))
        assert names[0] == "001_create_resolution_records.sql"
        sql = (MIGRATIONS_DIR / names[0]).read_text()
        assert "resolution_records" in sql
        assert "UNIQUE" in sql.upper()


class TestHealthCheck:
    def test_healthy(self) -> None:
        db = Database(DSN)
        mock_cursor = MagicMock()
        mock_cursor.description = [("ok",)]
        mock_cursor.fetchall.return_value = [{"ok": 1}]
        _attach(db, mock_cursor)

        assert db.health_check() is True

    def test_unhealthy(self) -> None:
        assert Database(DSN).health_check() is False


class TestContextManager:
    @patch("prediction_resolver.registry.db.ConnectionPool")
    def test_context_manager(self, mock_pool_cls: MagicMock) -> None:
        pool = MagicMock()
        mock_pool_cls.return_value = pool

        with Database(DSN) as db:
            assert db._pool is pool
            pool.wait.assert_called_once()

        pool.close.assert_called_once()
        assert db._pool is None
