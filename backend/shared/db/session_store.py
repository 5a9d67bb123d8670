"""SQLite-backed SessionStore."""

from __future__ import annotations

import asyncio
import json
import sqlite3
from typing import TYPE_CHECKING

import structlog

from shared.dal.models import ChangeKind, Record, RecordKey, key_fields, matches, record_key
from shared.dal.session_store import SessionStore, StaleRecordError, WriteConflictError

if TYPE_CHECKING:
    from shared.db.connection import Database

logger = structlog.get_logger()


def _encode_key(key: RecordKey) -> str:
    return json.dumps(list(key), separators=(",", ":"))


class SqliteSessionStore(SessionStore):
    """SQLite implementation of SessionStore.

    Every table lives in one `records` table keyed by (table_name, record_key),
    with the record body stored as JSON. Filters are evaluated with
    json_extract. Change notifications fan out in-process only.
    """

    def __init__(self, db: Database) -> None:
        super().__init__()
        self._db = db
        self._lock = asyncio.Lock()

    @property
    def database(self) -> Database:
        return self._db

    async def get(self, table: str, key: RecordKey) -> Record | None:
        key_fields(table)
        async with self._lock:
            row = self._db.connection.execute(
                "SELECT data FROM records WHERE table_name = ? AND record_key = ?",
                (table, _encode_key(tuple(key))),
            ).fetchone()
        return json.loads(row[0]) if row else None

    async def select(self, table: str, filters: Record | None = None) -> list[Record]:
        key_fields(table)
        sql, params = self._where(table, filters)
        async with self._lock:
            rows = self._db.connection.execute(f"SELECT data FROM records {sql}", params).fetchall()  # noqa: S608
        return [json.loads(row[0]) for row in rows]

    async def insert(self, table: str, values: Record) -> Record:
        key = record_key(table, values)
        async with self._lock:
            try:
                self._db.connection.execute(
                    "INSERT INTO records (table_name, record_key, data) VALUES (?, ?, ?)",
                    (table, _encode_key(key), json.dumps(values)),
                )
                self._db.connection.commit()
            except sqlite3.IntegrityError:
                self._db.connection.rollback()
                raise WriteConflictError(table, key) from None
        self._publish(table, ChangeKind.INSERT, dict(values))
        return dict(values)

    async def update(
        self, table: str, key: RecordKey, patch: Record, *, expected: Record | None = None
    ) -> Record | None:
        fields = key_fields(table)
        if any(name in patch for name in fields):
            raise ValueError(f"Cannot change key fields of '{table}' records")
        encoded = _encode_key(tuple(key))
        async with self._lock:
            conn = self._db.connection
            row = conn.execute(
                "SELECT data FROM records WHERE table_name = ? AND record_key = ?",
                (table, encoded),
            ).fetchone()
            if row is None:
                return None
            current = json.loads(row[0])
            if expected is not None and not matches(current, expected):
                raise StaleRecordError(table, tuple(key))
            updated = {**current, **patch}
            conn.execute(
                "UPDATE records SET data = ? WHERE table_name = ? AND record_key = ?",
                (json.dumps(updated), table, encoded),
            )
            conn.commit()
        self._publish(table, ChangeKind.UPDATE, updated)
        return updated

    async def delete(self, table: str, filters: Record) -> int:
        key_fields(table)
        sql, params = self._where(table, filters)
        async with self._lock:
            conn = self._db.connection
            rows = conn.execute(f"SELECT record_key, data FROM records {sql}", params).fetchall()  # noqa: S608
            conn.executemany(
                "DELETE FROM records WHERE table_name = ? AND record_key = ?",
                [(table, row[0]) for row in rows],
            )
            conn.commit()
        for row in rows:
            self._publish(table, ChangeKind.DELETE, json.loads(row[1]))
        if rows:
            logger.debug("records deleted", table=table, count=len(rows))
        return len(rows)

    @staticmethod
    def _where(table: str, filters: Record | None) -> tuple[str, list[object]]:
        clauses = ["table_name = ?"]
        params: list[object] = [table]
        for name, value in (filters or {}).items():
            if not name.isidentifier():
                raise ValueError(f"Invalid filter field '{name}'")
            if value is None:
                clauses.append(f"json_extract(data, '$.{name}') IS NULL")
            else:
                clauses.append(f"json_extract(data, '$.{name}') = ?")
                params.append(value)
        return "WHERE " + " AND ".join(clauses), params
