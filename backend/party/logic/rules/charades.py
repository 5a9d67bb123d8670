"""
Charades: one seat acts out a word while the others take turns guessing.

The showing seat is the round's odd seat. Guessing passes around the table,
skipping the showing seat, each guesser holding the turn for one countdown.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from party.logic.content import CHARADES_WORDS
from party.logic.enums import SessionStatus, TurnActionType, Variant
from party.logic.exceptions import InvalidActionError
from party.logic.rng import choose, pick_excluding
from party.logic.rules.base import GameRule, new_round_id
from party.logic.state import RoundContent, Session, TurnState

if TYPE_CHECKING:
    from party.logic.rules.base import Handler
    from party.logic.state import TurnAction


def next_guesser(guesser: int, showing: int, capacity: int) -> int:
    """Advance the guesser one seat, skipping the showing seat."""
    candidate = (guesser + 1) % capacity
    if candidate == showing:
        candidate = (candidate + 1) % capacity
    return candidate


class CharadesRule(GameRule):
    variant = Variant.CHARADES

    def check_content(self) -> None:
        self._content.pool(CHARADES_WORDS)

    def assign(self, session: Session) -> RoundContent:
        showing = pick_excluding(range(session.capacity), session.content.odd_seat, self._rng)
        return self._content_for(showing)

    def _content_for(self, showing: int) -> RoundContent:
        item = choose(self._content.pool(CHARADES_WORDS), self._rng)
        return RoundContent(round_id=new_round_id(), value=item.text, category=item.category, odd_seat=showing)

    def initial_turn(self, session: Session, content: RoundContent) -> TurnState:
        return TurnState(guesser_seat=(content.odd_seat + 1) % session.capacity)

    def next_round_status(self, session: Session) -> SessionStatus:
        return session.status

    def turn_pointer(self, session: Session) -> int | None:
        if session.status != SessionStatus.ACTIVE:
            return None
        return session.turn.guesser_seat

    def _handlers(self) -> dict[TurnActionType, Handler]:
        return {
            TurnActionType.START: self._start,
            TurnActionType.GUESSED: self._guessed,
            TurnActionType.NOT_GUESSED: self._not_guessed,
        }

    def _start(self, session: Session, action: TurnAction) -> Session:
        if session.status == SessionStatus.ACTIVE:
            raise InvalidActionError("game has already started")
        return session.model_copy(update={"status": SessionStatus.ACTIVE})

    def _guessed(self, session: Session, action: TurnAction) -> Session:
        self._require_active(session, action)
        self._require_guesser(session, action)
        showing = session.turn.guesser_seat
        turn = session.turn.model_copy(
            update={
                "guesser_seat": (showing + 1) % session.capacity,
                "round_number": session.turn.round_number + 1,
            }
        )
        return session.model_copy(update={"content": self._content_for(showing), "turn": turn})

    def _not_guessed(self, session: Session, action: TurnAction) -> Session:
        self._require_active(session, action)
        self._require_guesser(session, action)
        guesser = next_guesser(session.turn.guesser_seat, session.content.odd_seat, session.capacity)
        return session.model_copy(update={"turn": session.turn.model_copy(update={"guesser_seat": guesser})})

    def _visible(self, session: Session, seat: int) -> dict[str, object]:
        is_showing = seat == session.content.odd_seat
        return {
            "value": session.content.value if is_showing else None,
            "category": session.content.category if is_showing else None,
            "is_odd": is_showing,
            "guesser_seat": session.turn.guesser_seat,
        }
