"""Tests for Database connection and schema."""

from __future__ import annotations

import sys
from typing import TYPE_CHECKING
from unittest.mock import patch

import pytest

from shared.db.connection import Database

if TYPE_CHECKING:
    from pathlib import Path


def _tables(db: Database) -> list[str]:
    rows = db.connection.execute("SELECT name FROM sqlite_master WHERE type='table' ORDER BY name").fetchall()
    return [row[0] for row in rows]


class TestConnect:
    def test_creates_records_table(self, tmp_path: Path) -> None:
        db = Database(tmp_path / "party.db")
        db.connect()

        assert _tables(db) == ["records"]
        db.close()

    def test_schema_creation_is_idempotent(self, tmp_path: Path) -> None:
        db = Database(tmp_path / "party.db")
        db.connect()
        db.connection.execute("INSERT INTO records VALUES ('sessions', '[\"ABC234\"]', '{}')")
        db.connection.commit()
        db.close()

        db.connect()
        assert db.connection.execute("SELECT COUNT(*) FROM records").fetchone()[0] == 1
        db.close()

    def test_in_memory_database(self) -> None:
        db = Database(":memory:")
        db.connect()

        assert _tables(db) == ["records"]
        db.close()

    def test_uses_wal_journal_for_files(self, tmp_path: Path) -> None:
        db = Database(tmp_path / "party.db")
        db.connect()

        assert db.connection.execute("PRAGMA journal_mode").fetchone()[0] == "wal"
        db.close()

    def test_connection_raises_when_disconnected(self, tmp_path: Path) -> None:
        db = Database(tmp_path / "party.db")
        with pytest.raises(RuntimeError, match="not connected"):
            _ = db.connection

    def test_connection_raises_after_close(self, tmp_path: Path) -> None:
        db = Database(tmp_path / "party.db")
        db.connect()
        db.close()
        with pytest.raises(RuntimeError, match="not connected"):
            _ = db.connection

    def test_creates_parent_directories(self, tmp_path: Path) -> None:
        db = Database(tmp_path / "nested" / "dir" / "party.db")
        db.connect()

        assert (tmp_path / "nested" / "dir" / "party.db").exists()
        db.close()


@pytest.mark.skipif(sys.platform == "win32", reason="POSIX permissions only")
class TestPermissions:
    def test_db_file_is_owner_only(self, tmp_path: Path) -> None:
        db_path = tmp_path / "party.db"
        db = Database(db_path)
        db.connect()

        assert db_path.stat().st_mode & 0o777 == 0o600
        db.close()

    def test_chmod_failure_does_not_block_connect(self, tmp_path: Path) -> None:
        db = Database(tmp_path / "party.db")
        with patch("pathlib.Path.chmod", side_effect=OSError("permission denied")):
            db.connect()

        assert db.connection is not None
        db.close()
