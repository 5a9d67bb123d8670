"""
String enum definitions for party game concepts.
"""

from enum import Enum


class Variant(str, Enum):
    """Game variants sharing the session engine."""

    IMPOSTOR = "impostor"
    MAFIA = "mafia"
    CHARADES = "charades"
    CASINO = "casino"
    WHOAMI = "whoami"


class SessionStatus(str, Enum):
    """Persisted lifecycle status of a session record."""

    WAITING = "waiting"
    ACTIVE = "active"


class Phase(str, Enum):
    """Turn state machine phase, derived from the session status.

    The round-complete step between two rounds exists only while the engine
    is writing a new round and is never stored, so it has no member.
    """

    SETUP = "setup"
    ACTIVE = "active"


class TurnActionType(str, Enum):
    """Actions a device can apply to a session."""

    START = "start"
    GUESSED = "guessed"
    NOT_GUESSED = "not_guessed"
    SPIN = "spin"
    CORRECT = "correct"
    INCORRECT = "incorrect"
    RESHUFFLE = "reshuffle"
    NEW_ROUND = "new_round"


class Team(str, Enum):
    """Role tags assigned by the mafia partition."""

    MAFIA = "mafia"
    CIVILIAN = "civilian"


class ErrorCode(str, Enum):
    """Error codes returned to clients."""

    SESSION_NOT_FOUND = "session_not_found"
    SEATING_FULL = "seating_full"
    CONTENT_UNAVAILABLE = "content_unavailable"
    SESSION_LIMIT = "session_limit"
    INVALID_ACTION = "invalid_action"
    VALIDATION_ERROR = "validation_error"
