"""Record and change-notification models for the session store."""

from enum import Enum
from typing import Any

from pydantic import BaseModel

Record = dict[str, Any]
RecordKey = tuple[Any, ...]

SESSIONS = "sessions"
SEATS = "seats"
OBSERVATIONS = "observations"

# Primary key fields per table. The primary key doubles as the uniqueness
# constraint that seat claims rely on.
TABLE_KEYS: dict[str, tuple[str, ...]] = {
    SESSIONS: ("code",),
    SEATS: ("code", "seat"),
    OBSERVATIONS: ("code", "seat"),
}


def key_fields(table: str) -> tuple[str, ...]:
    try:
        return TABLE_KEYS[table]
    except KeyError:
        raise ValueError(f"Unknown table '{table}'") from None


def record_key(table: str, values: Record) -> RecordKey:
    """Extract the primary key of a record, raising ValueError if a key field is missing."""
    fields = key_fields(table)
    missing = [name for name in fields if name not in values]
    if missing:
        raise ValueError(f"Record for '{table}' is missing key fields: {', '.join(missing)}")
    return tuple(values[name] for name in fields)


def matches(record: Record, filters: Record | None) -> bool:
    if not filters:
        return True
    return all(record.get(name) == value for name, value in filters.items())


class ChangeKind(str, Enum):
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


class ChangeEvent(BaseModel, frozen=True):
    """A single change notification. For deletes, record holds the removed row."""

    table: str
    kind: ChangeKind
    record: Record
