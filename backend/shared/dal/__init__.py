"""Data access layer: the session store interface and its record models."""

from shared.dal.memory_store import InMemorySessionStore
from shared.dal.models import OBSERVATIONS, SEATS, SESSIONS, ChangeEvent, ChangeKind, Record, RecordKey
from shared.dal.session_store import SessionStore, StaleRecordError, Subscription, WriteConflictError

__all__ = [
    "OBSERVATIONS",
    "SEATS",
    "SESSIONS",
    "ChangeEvent",
    "ChangeKind",
    "InMemorySessionStore",
    "Record",
    "RecordKey",
    "SessionStore",
    "StaleRecordError",
    "Subscription",
    "WriteConflictError",
]
