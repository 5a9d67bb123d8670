"""Behavior shared by every SessionStore implementation."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import pytest

from shared.dal import (
    OBSERVATIONS,
    SEATS,
    SESSIONS,
    ChangeKind,
    InMemorySessionStore,
    StaleRecordError,
    WriteConflictError,
)
from shared.db import Database, SqliteSessionStore

if TYPE_CHECKING:
    from shared.dal import ChangeEvent, SessionStore


@pytest.fixture(params=["memory", "sqlite"])
async def store(request, tmp_path):
    if request.param == "memory":
        memory = InMemorySessionStore()
        yield memory
        await memory.close()
        return
    db = Database(tmp_path / "party.db")
    db.connect()
    sqlite_store = SqliteSessionStore(db)
    yield sqlite_store
    await sqlite_store.close()
    db.close()


def _seat(code: str = "ABC234", seat: int = 0) -> dict:
    return {"code": code, "seat": seat, "claimed_at": "2026-01-01T00:00:00Z"}


class _Recorder:
    def __init__(self) -> None:
        self.events: list[ChangeEvent] = []

    async def __call__(self, event: ChangeEvent) -> None:
        self.events.append(event)


class TestReadWrite:
    async def test_insert_then_get(self, store: SessionStore) -> None:
        await store.insert(SESSIONS, {"code": "ABC234", "capacity": 4})

        assert await store.get(SESSIONS, ("ABC234",)) == {"code": "ABC234", "capacity": 4}

    async def test_get_missing_returns_none(self, store: SessionStore) -> None:
        assert await store.get(SEATS, ("ABC234", 0)) is None

    async def test_duplicate_key_raises_conflict(self, store: SessionStore) -> None:
        await store.insert(SEATS, _seat(seat=1))

        with pytest.raises(WriteConflictError) as exc_info:
            await store.insert(SEATS, _seat(seat=1))
        assert exc_info.value.table == SEATS
        assert exc_info.value.key == ("ABC234", 1)

    async def test_same_seat_in_other_session_is_not_a_conflict(self, store: SessionStore) -> None:
        await store.insert(SEATS, _seat(code="ABC234", seat=0))
        await store.insert(SEATS, _seat(code="XYZ789", seat=0))

        assert len(await store.select(SEATS)) == 2

    async def test_select_filters_by_fields(self, store: SessionStore) -> None:
        await store.insert(SEATS, _seat(seat=0))
        await store.insert(SEATS, _seat(seat=1))
        await store.insert(SEATS, _seat(code="XYZ789", seat=0))

        rows = await store.select(SEATS, {"code": "ABC234"})

        assert sorted(r["seat"] for r in rows) == [0, 1]

    async def test_select_matches_null_filter(self, store: SessionStore) -> None:
        await store.insert(SESSIONS, {"code": "ABC234", "winner": None})
        await store.insert(SESSIONS, {"code": "XYZ789", "winner": 2})

        rows = await store.select(SESSIONS, {"winner": None})

        assert [r["code"] for r in rows] == ["ABC234"]

    async def test_update_merges_patch(self, store: SessionStore) -> None:
        await store.insert(SESSIONS, {"code": "ABC234", "status": "waiting", "capacity": 4})

        updated = await store.update(SESSIONS, ("ABC234",), {"status": "active"})

        assert updated == {"code": "ABC234", "status": "active", "capacity": 4}
        assert await store.get(SESSIONS, ("ABC234",)) == updated

    async def test_update_missing_returns_none(self, store: SessionStore) -> None:
        assert await store.update(SESSIONS, ("ABC234",), {"status": "active"}) is None

    async def test_guarded_update_applies_when_unchanged(self, store: SessionStore) -> None:
        turn = {"version": 2, "combination": []}
        await store.insert(SESSIONS, {"code": "ABC234", "status": "waiting", "turn": turn})

        updated = await store.update(SESSIONS, ("ABC234",), {"status": "active"}, expected={"turn": dict(turn)})

        assert updated["status"] == "active"

    async def test_guarded_update_refuses_changed_record(self, store: SessionStore) -> None:
        await store.insert(SESSIONS, {"code": "ABC234", "status": "waiting", "turn": {"version": 3}})
        recorder = _Recorder()
        store.subscribe(SESSIONS, None, recorder)

        with pytest.raises(StaleRecordError) as exc_info:
            await store.update(SESSIONS, ("ABC234",), {"status": "active"}, expected={"turn": {"version": 2}})
        await store.wait_idle()

        assert exc_info.value.key == ("ABC234",)
        assert (await store.get(SESSIONS, ("ABC234",)))["status"] == "waiting"
        assert recorder.events == []

    async def test_update_rejects_key_change(self, store: SessionStore) -> None:
        await store.insert(SEATS, _seat())

        with pytest.raises(ValueError, match="key fields"):
            await store.update(SEATS, ("ABC234", 0), {"seat": 3})

    async def test_delete_returns_count(self, store: SessionStore) -> None:
        await store.insert(OBSERVATIONS, {"code": "ABC234", "seat": 0, "round_id": "r1"})
        await store.insert(OBSERVATIONS, {"code": "ABC234", "seat": 1, "round_id": "r1"})
        await store.insert(OBSERVATIONS, {"code": "XYZ789", "seat": 0, "round_id": "r9"})

        assert await store.delete(OBSERVATIONS, {"code": "ABC234"}) == 2
        assert [r["code"] for r in await store.select(OBSERVATIONS)] == ["XYZ789"]

    async def test_unknown_table_raises(self, store: SessionStore) -> None:
        with pytest.raises(ValueError, match="Unknown table"):
            await store.select("players")

    async def test_insert_without_key_fields_raises(self, store: SessionStore) -> None:
        with pytest.raises(ValueError, match="missing key fields: seat"):
            await store.insert(SEATS, {"code": "ABC234"})

    async def test_returned_records_are_copies(self, store: SessionStore) -> None:
        await store.insert(SESSIONS, {"code": "ABC234", "turn": {"version": 0}})

        record = await store.get(SESSIONS, ("ABC234",))
        record["turn"]["version"] = 99

        assert (await store.get(SESSIONS, ("ABC234",)))["turn"]["version"] == 0


class TestConcurrentInserts:
    async def test_exactly_one_concurrent_insert_wins(self, store: SessionStore) -> None:
        async def claim() -> bool:
            try:
                await store.insert(SEATS, _seat(seat=0))
            except WriteConflictError:
                return False
            return True

        results = await asyncio.gather(*(claim() for _ in range(5)))

        assert results.count(True) == 1
        assert len(await store.select(SEATS, {"code": "ABC234"})) == 1


class TestSubscriptions:
    async def test_delivers_matching_changes(self, store: SessionStore) -> None:
        recorder = _Recorder()
        store.subscribe(SEATS, {"code": "ABC234"}, recorder)

        await store.insert(SEATS, _seat(seat=0))
        await store.insert(SEATS, _seat(code="XYZ789", seat=0))
        await store.wait_idle()

        assert [(e.table, e.kind, e.record["code"]) for e in recorder.events] == [
            (SEATS, ChangeKind.INSERT, "ABC234"),
        ]

    async def test_update_and_delete_kinds(self, store: SessionStore) -> None:
        recorder = _Recorder()
        store.subscribe(SESSIONS, None, recorder)

        await store.insert(SESSIONS, {"code": "ABC234", "status": "waiting"})
        await store.update(SESSIONS, ("ABC234",), {"status": "active"})
        await store.delete(SESSIONS, {"code": "ABC234"})
        await store.wait_idle()

        kinds = sorted(e.kind.value for e in recorder.events)
        assert kinds == ["delete", "insert", "update"]
        deleted = next(e for e in recorder.events if e.kind == ChangeKind.DELETE)
        assert deleted.record["status"] == "active"

    async def test_closed_subscription_receives_nothing(self, store: SessionStore) -> None:
        recorder = _Recorder()
        subscription = store.subscribe(SEATS, {"code": "ABC234"}, recorder)
        subscription.close()

        await store.insert(SEATS, _seat())
        await store.wait_idle()

        assert recorder.events == []
        assert not subscription.active
        assert store.subscriber_count == 0

    async def test_failing_subscriber_does_not_break_writer_or_others(self, store: SessionStore) -> None:
        async def boom(_event: ChangeEvent) -> None:
            raise RuntimeError("subscriber crashed")

        recorder = _Recorder()
        store.subscribe(SEATS, None, boom)
        store.subscribe(SEATS, None, recorder)

        await store.insert(SEATS, _seat())
        await store.wait_idle()

        assert len(recorder.events) == 1
        assert await store.get(SEATS, ("ABC234", 0)) is not None

    async def test_close_drops_all_subscribers(self, store: SessionStore) -> None:
        store.subscribe(SEATS, None, _Recorder())
        store.subscribe(SESSIONS, None, _Recorder())

        await store.close()

        assert store.subscriber_count == 0
