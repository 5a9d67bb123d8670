"""Typed domain exceptions for session, seating and rule failures.

Rule violations use subclasses of GameRuleError so the HTTP layer can map
them to a single client error. Seating and lookup failures are terminal for
the device that hit them and carry enough context to render a message.
"""


class PartyError(Exception):
    """Base exception for the party engine."""


class SessionNotFoundError(PartyError):
    """No session record exists for the code."""

    def __init__(self, code: str) -> None:
        self.code = code
        super().__init__(f"session {code!r} not found")


class SeatingFullError(PartyError):
    """Every seat of the session is claimed, or claiming kept conflicting."""

    def __init__(self, code: str, capacity: int) -> None:
        self.code = code
        self.capacity = capacity
        super().__init__(f"session {code!r} has no free seat (capacity {capacity})")


class AssignmentSourceEmptyError(PartyError):
    """A content pool needed for assignment is empty."""

    def __init__(self, pool: str) -> None:
        self.pool = pool
        super().__init__(f"content pool {pool!r} is empty")


class GameRuleError(PartyError):
    """Base exception for turn and round rule violations."""


class InvalidActionError(GameRuleError):
    """Action is not valid in the current session state."""


class UnsupportedSettingsError(GameRuleError):
    """Session settings contain values the variant cannot run with."""


class SessionLimitError(PartyError):
    """The server already holds its maximum number of sessions."""

    def __init__(self, limit: int) -> None:
        self.limit = limit
        super().__init__(f"session limit of {limit} reached")
