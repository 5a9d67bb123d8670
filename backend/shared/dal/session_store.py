"""Abstract keyed record store with at-least-once change notification."""

from __future__ import annotations

import asyncio
import contextlib
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING

import structlog

from shared.dal.models import ChangeEvent, ChangeKind, matches

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from shared.dal.models import Record, RecordKey

    ChangeCallback = Callable[[ChangeEvent], Awaitable[None]]

logger = structlog.get_logger()


class WriteConflictError(Exception):
    """An insert collided with an existing record's primary key."""

    def __init__(self, table: str, key: RecordKey) -> None:
        self.table = table
        self.key = key
        super().__init__(f"record {key!r} already exists in '{table}'")


class StaleRecordError(Exception):
    """A conditional update found the record changed since it was read."""

    def __init__(self, table: str, key: RecordKey) -> None:
        self.table = table
        self.key = key
        super().__init__(f"record {key!r} in '{table}' changed since it was read")


@dataclass
class _Subscriber:
    table: str
    filters: Record
    callback: ChangeCallback
    active: bool = True


class Subscription:
    """Handle returned by SessionStore.subscribe(); close() stops further deliveries."""

    def __init__(self, store: SessionStore, subscriber: _Subscriber) -> None:
        self._store = store
        self._subscriber = subscriber

    @property
    def active(self) -> bool:
        return self._subscriber.active

    def close(self) -> None:
        self._store._remove_subscriber(self._subscriber)  # noqa: SLF001


class SessionStore(ABC):
    """Keyed record store shared by every device of a session.

    Writes are last-write-wins per record. The concurrency primitives are the
    primary-key uniqueness check on insert and the optional `expected` guard
    on update, which refuses the write when the stored record no longer
    matches what the writer read. Change notifications are
    delivered asynchronously, one task per subscriber, with no ordering
    guarantee between subscribers. A failing subscriber callback is logged
    and never affects the writer.
    """

    def __init__(self) -> None:
        self._subscribers: list[_Subscriber] = []
        self._deliveries: set[asyncio.Task[None]] = set()

    @abstractmethod
    async def get(self, table: str, key: RecordKey) -> Record | None: ...

    @abstractmethod
    async def select(self, table: str, filters: Record | None = None) -> list[Record]: ...

    @abstractmethod
    async def insert(self, table: str, values: Record) -> Record:
        """Insert a record. Raise WriteConflictError if the primary key is taken."""

    @abstractmethod
    async def update(
        self, table: str, key: RecordKey, patch: Record, *, expected: Record | None = None
    ) -> Record | None:
        """Merge patch into an existing record. Return the new record, or None if absent.

        When expected is given, raise StaleRecordError unless every field in
        it still equals the stored value.
        """

    @abstractmethod
    async def delete(self, table: str, filters: Record) -> int:
        """Delete every record matching filters. Return the number removed."""

    def subscribe(self, table: str, filters: Record | None, on_change: ChangeCallback) -> Subscription:
        subscriber = _Subscriber(table=table, filters=dict(filters or {}), callback=on_change)
        self._subscribers.append(subscriber)
        return Subscription(self, subscriber)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    async def wait_idle(self) -> None:
        """Wait until every scheduled notification has been delivered."""
        while self._deliveries:
            await asyncio.gather(*list(self._deliveries), return_exceptions=True)

    async def close(self) -> None:
        for subscriber in self._subscribers:
            subscriber.active = False
        self._subscribers.clear()
        for task in list(self._deliveries):
            task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await asyncio.gather(*list(self._deliveries), return_exceptions=True)
        self._deliveries.clear()

    def _remove_subscriber(self, subscriber: _Subscriber) -> None:
        subscriber.active = False
        with contextlib.suppress(ValueError):
            self._subscribers.remove(subscriber)

    def _publish(self, table: str, kind: ChangeKind, record: Record) -> None:
        """Schedule delivery of a change to every matching subscriber."""
        event = ChangeEvent(table=table, kind=kind, record=record)
        loop = asyncio.get_running_loop()
        for subscriber in list(self._subscribers):
            if subscriber.table != table or not matches(record, subscriber.filters):
                continue
            task = loop.create_task(self._deliver(subscriber, event))
            self._deliveries.add(task)
            task.add_done_callback(self._deliveries.discard)

    async def _deliver(self, subscriber: _Subscriber, event: ChangeEvent) -> None:
        if not subscriber.active:
            return
        try:
            await subscriber.callback(event)
        except Exception:
            logger.exception("change subscriber failed", table=event.table, kind=event.kind)
