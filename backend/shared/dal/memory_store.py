"""In-memory SessionStore for single-process deployments and tests."""

import asyncio
import copy
from collections import defaultdict

from shared.dal.models import ChangeKind, Record, RecordKey, key_fields, matches, record_key
from shared.dal.session_store import SessionStore, StaleRecordError, WriteConflictError


class InMemorySessionStore(SessionStore):
    """Dict-backed store. Every operation yields to the event loop once.

    The yield models the network round trip of a real store, so concurrent
    callers interleave between a read and the write that depends on it.
    An optional latency makes that window wider.
    """

    def __init__(self, latency: float = 0.0) -> None:
        super().__init__()
        self._latency = latency
        self._tables: dict[str, dict[RecordKey, Record]] = defaultdict(dict)

    async def _round_trip(self) -> None:
        await asyncio.sleep(self._latency)

    async def get(self, table: str, key: RecordKey) -> Record | None:
        key_fields(table)
        await self._round_trip()
        record = self._tables[table].get(tuple(key))
        return copy.deepcopy(record) if record is not None else None

    async def select(self, table: str, filters: Record | None = None) -> list[Record]:
        key_fields(table)
        await self._round_trip()
        return [copy.deepcopy(r) for r in self._tables[table].values() if matches(r, filters)]

    async def insert(self, table: str, values: Record) -> Record:
        key = record_key(table, values)
        await self._round_trip()
        rows = self._tables[table]
        if key in rows:
            raise WriteConflictError(table, key)
        rows[key] = copy.deepcopy(values)
        self._publish(table, ChangeKind.INSERT, copy.deepcopy(values))
        return copy.deepcopy(values)

    async def update(
        self, table: str, key: RecordKey, patch: Record, *, expected: Record | None = None
    ) -> Record | None:
        fields = key_fields(table)
        if any(name in patch for name in fields):
            raise ValueError(f"Cannot change key fields of '{table}' records")
        await self._round_trip()
        rows = self._tables[table]
        current = rows.get(tuple(key))
        if current is None:
            return None
        if expected is not None and not matches(current, expected):
            raise StaleRecordError(table, tuple(key))
        updated = {**current, **copy.deepcopy(patch)}
        rows[tuple(key)] = updated
        self._publish(table, ChangeKind.UPDATE, copy.deepcopy(updated))
        return copy.deepcopy(updated)

    async def delete(self, table: str, filters: Record) -> int:
        key_fields(table)
        await self._round_trip()
        rows = self._tables[table]
        doomed = [key for key, record in rows.items() if matches(record, filters)]
        for key in doomed:
            removed = rows.pop(key)
            self._publish(table, ChangeKind.DELETE, removed)
        return len(doomed)
