"""
Shared contract of a variant's assignment and turn rules.

A GameRule is pure apart from its random source: assign() builds a fresh
RoundContent, transition() maps (session, action) to the next session.
Writes to the store are the engine's job.
"""

from __future__ import annotations

import uuid
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, ClassVar

from party.logic.enums import SessionStatus, TurnActionType, Variant
from party.logic.exceptions import InvalidActionError
from party.logic.rng import default_rng
from party.logic.settings import get_variant_settings, validate_capacity
from party.logic.state import RoundContent, SeatView, Session, SessionConfig, TurnState

if TYPE_CHECKING:
    import random
    from collections.abc import Callable

    from party.logic.content import ContentLibrary
    from party.logic.settings import VariantSettings
    from party.logic.state import TurnAction

    Handler = Callable[[Session, TurnAction], Session]


def new_round_id() -> str:
    return uuid.uuid4().hex


class GameRule(ABC):
    """Assignment and transition rules for one variant."""

    variant: ClassVar[Variant]

    def __init__(self, content: ContentLibrary, rng: random.Random | None = None) -> None:
        self._content = content
        self._rng = rng or default_rng()

    @property
    def settings(self) -> VariantSettings:
        return get_variant_settings(self.variant)

    def validate(self, capacity: int, config: SessionConfig) -> None:
        """Raise UnsupportedSettingsError if the session cannot be created."""
        validate_capacity(self.settings, capacity)

    def check_content(self) -> None:
        """Raise AssignmentSourceEmptyError if a pool this variant draws from is empty."""

    def create(self, code: str, capacity: int, config: SessionConfig) -> Session:
        """Build a new session with first-round content."""
        draft = Session(
            code=code,
            variant=self.variant,
            capacity=capacity,
            status=self.initial_status(),
            config=config,
            content=RoundContent(round_id=""),
        )
        content = self.assign(draft)
        return draft.model_copy(update={"content": content, "turn": self.initial_turn(draft, content)})

    @abstractmethod
    def assign(self, session: Session) -> RoundContent:
        """Build the content of a new round. Never reuses the prior round_id."""

    def initial_turn(self, session: Session, content: RoundContent) -> TurnState:
        return TurnState()

    def initial_status(self) -> SessionStatus:
        return SessionStatus.WAITING

    def turn_pointer(self, session: Session) -> int | None:
        """Seat whose action is awaited, if the variant has one."""
        return None

    def _handlers(self) -> dict[TurnActionType, Handler]:
        return {}

    def transition(self, session: Session, action: TurnAction) -> Session:
        """Apply an action. A stale expected_version returns the session unchanged."""
        if action.expected_version is not None and action.expected_version != session.turn.version:
            return session
        if action.type == TurnActionType.NEW_ROUND:
            return self.new_round(session)
        handler = self._handlers().get(action.type)
        if handler is None:
            raise InvalidActionError(f"{action.type.value} is not a {self.variant.value} action")
        return self._bump(handler(session, action), session)

    def new_round(self, session: Session) -> Session:
        """Replace the round content and reset the turn state."""
        content = self.assign(session)
        turn = self.next_round_turn(session, content)
        return self._bump(
            session.model_copy(update={"content": content, "turn": turn, "status": self.next_round_status(session)}),
            session,
        )

    def next_round_turn(self, session: Session, content: RoundContent) -> TurnState:
        return self.initial_turn(session, content).model_copy(
            update={"round_number": session.turn.round_number + 1}
        )

    def next_round_status(self, session: Session) -> SessionStatus:
        return self.initial_status()

    def seat_view(self, session: Session, seat: int) -> SeatView:
        if not 0 <= seat < session.capacity:
            raise InvalidActionError(f"seat {seat} is outside 0-{session.capacity - 1}")
        return SeatView(
            seat=seat,
            is_host=seat == session.host_seat,
            is_my_turn=self.turn_pointer(session) == seat,
            round_number=session.turn.round_number,
            revealed=session.turn.revealed,
            **self._visible(session, seat),
        )

    @abstractmethod
    def _visible(self, session: Session, seat: int) -> dict[str, object]:
        """Variant-specific SeatView fields for one seat."""

    def _require_active(self, session: Session, action: TurnAction) -> None:
        if session.status != SessionStatus.ACTIVE:
            raise InvalidActionError(f"cannot {action.type.value} before the game has started")

    def _require_guesser(self, session: Session, action: TurnAction) -> None:
        if action.seat is not None and action.seat != session.turn.guesser_seat:
            raise InvalidActionError(f"seat {action.seat} is not the current guesser")

    @staticmethod
    def _bump(updated: Session, previous: Session) -> Session:
        return updated.model_copy(
            update={"turn": updated.turn.model_copy(update={"version": previous.turn.version + 1})}
        )
