"""
Session state models.

Every model is frozen; transitions produce new instances with model_copy().
Records in the store are the JSON dumps of these models.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from party.logic.enums import Phase, SessionStatus, TurnActionType, Variant
from party.logic.settings import DEFAULT_GUESS_SECONDS, VariantSettings, get_variant_settings


def utc_now() -> datetime:
    return datetime.now(UTC)


class SessionConfig(BaseModel):
    """Per-session options chosen at creation."""

    model_config = ConfigDict(frozen=True)

    team_size: int | None = None  # mafia
    redraw_on_miss: bool = False  # casino: draw a new combination after a wrong guess
    guess_seconds: float = Field(default=DEFAULT_GUESS_SECONDS, gt=0)  # charades


class RoundContent(BaseModel):
    """Secret material of one round. Replaced as a whole, never patched."""

    model_config = ConfigDict(frozen=True)

    round_id: str
    value: str | None = None
    category: str | None = None
    odd_seat: int | None = None
    per_seat: tuple[str, ...] = ()
    starting_seat: int | None = None


class TurnState(BaseModel):
    model_config = ConfigDict(frozen=True)

    version: int = 0
    round_number: int = 1
    guesser_seat: int | None = None
    guesses_in_round: int = 0
    combination: tuple[str, ...] = ()
    revealed: bool = False


class Session(BaseModel):
    """One game room, identified by its code."""

    model_config = ConfigDict(frozen=True)

    code: str
    variant: Variant
    capacity: int
    status: SessionStatus = SessionStatus.WAITING
    config: SessionConfig = SessionConfig()
    content: RoundContent
    turn: TurnState = TurnState()
    created_at: datetime = Field(default_factory=utc_now)

    @property
    def settings(self) -> VariantSettings:
        return get_variant_settings(self.variant)

    @property
    def phase(self) -> Phase:
        return Phase.ACTIVE if self.status == SessionStatus.ACTIVE else Phase.SETUP

    @property
    def host_seat(self) -> int | None:
        """Seat index reserved for the host device, if the host plays."""
        return self.capacity - 1 if self.settings.host_occupies_seat else None

    def to_record(self) -> dict[str, Any]:
        return self.model_dump(mode="json")

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> Session:
        return cls.model_validate(record)


class SeatClaim(BaseModel):
    model_config = ConfigDict(frozen=True)

    code: str
    seat: int
    claimed_at: datetime = Field(default_factory=utc_now)

    def to_record(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


class Observation(BaseModel):
    """A seat's acknowledgement of one round's content."""

    model_config = ConfigDict(frozen=True)

    code: str
    seat: int
    round_id: str
    observed_at: datetime = Field(default_factory=utc_now)

    def to_record(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


class TurnAction(BaseModel):
    """
    A requested transition.

    seat is the acting seat (None for the host acting on behalf of the table).
    expected_version, when set, must equal the current turn version or the
    action is ignored as stale.
    """

    model_config = ConfigDict(frozen=True)

    type: TurnActionType
    seat: int | None = None
    expected_version: int | None = None


class SeatView(BaseModel):
    """What one seat is allowed to see of the current round."""

    model_config = ConfigDict(frozen=True)

    seat: int
    is_host: bool = False
    value: str | None = None
    category: str | None = None
    is_odd: bool = False
    is_my_turn: bool = False
    starting_seat: int | None = None
    guesser_seat: int | None = None
    combination: tuple[str, ...] = ()
    round_number: int = 1
    revealed: bool = False
