"""
Casino: every seat holds a symbol; the guesser names who holds a drawn combination.

Three misses in a row pass the guesser role to the next seat and start a new
round of play.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from party.logic.enums import SessionStatus, TurnActionType, Variant
from party.logic.exceptions import InvalidActionError
from party.logic.rng import choose, fisher_yates
from party.logic.rules.base import GameRule, new_round_id
from party.logic.settings import CASINO_SYMBOLS, MAX_CASINO_WRONG_GUESSES, combination_length
from party.logic.state import RoundContent, Session, TurnState

if TYPE_CHECKING:
    from party.logic.rules.base import Handler
    from party.logic.state import TurnAction


class CasinoRule(GameRule):
    variant = Variant.CASINO

    def assign(self, session: Session) -> RoundContent:
        palette = fisher_yates(CASINO_SYMBOLS, self._rng)
        return RoundContent(
            round_id=new_round_id(),
            per_seat=tuple(palette[i % len(palette)] for i in range(session.capacity)),
        )

    def initial_turn(self, session: Session, content: RoundContent) -> TurnState:
        return TurnState(guesser_seat=0)

    def next_round_turn(self, session: Session, content: RoundContent) -> TurnState:
        # A reshuffle keeps the guesser and round counter.
        return session.turn.model_copy(update={"guesses_in_round": 0, "combination": ()})

    def next_round_status(self, session: Session) -> SessionStatus:
        return session.status

    def turn_pointer(self, session: Session) -> int | None:
        if session.status != SessionStatus.ACTIVE:
            return None
        return session.turn.guesser_seat

    def draw_combination(self, session: Session) -> tuple[str, ...]:
        """Draw symbols with replacement from every seat except the guesser's."""
        pool = [
            symbol for seat, symbol in enumerate(session.content.per_seat) if seat != session.turn.guesser_seat
        ]
        return tuple(choose(pool, self._rng) for _ in range(combination_length(session.capacity)))

    def _handlers(self) -> dict[TurnActionType, Handler]:
        return {
            TurnActionType.START: self._start,
            TurnActionType.SPIN: self._spin,
            TurnActionType.CORRECT: self._correct,
            TurnActionType.INCORRECT: self._incorrect,
            TurnActionType.RESHUFFLE: self._reshuffle,
        }

    def _start(self, session: Session, action: TurnAction) -> Session:
        if session.status == SessionStatus.ACTIVE:
            raise InvalidActionError("game has already started")
        return session.model_copy(update={"status": SessionStatus.ACTIVE})

    def _spin(self, session: Session, action: TurnAction) -> Session:
        self._require_active(session, action)
        turn = session.turn.model_copy(update={"combination": self.draw_combination(session)})
        return session.model_copy(update={"turn": turn})

    def _correct(self, session: Session, action: TurnAction) -> Session:
        self._require_combination(session, action)
        return session.model_copy(update={"turn": session.turn.model_copy(update={"combination": ()})})

    def _incorrect(self, session: Session, action: TurnAction) -> Session:
        self._require_combination(session, action)
        misses = session.turn.guesses_in_round + 1
        if misses >= MAX_CASINO_WRONG_GUESSES:
            turn = session.turn.model_copy(
                update={
                    "guesser_seat": (session.turn.guesser_seat + 1) % session.capacity,
                    "guesses_in_round": 0,
                    "round_number": session.turn.round_number + 1,
                    "combination": (),
                }
            )
            return session.model_copy(update={"turn": turn})
        turn = session.turn.model_copy(update={"guesses_in_round": misses, "combination": ()})
        if session.config.redraw_on_miss:
            turn = turn.model_copy(update={"combination": self.draw_combination(session)})
        return session.model_copy(update={"turn": turn})

    def _reshuffle(self, session: Session, action: TurnAction) -> Session:
        return session.model_copy(
            update={"content": self.assign(session), "turn": self.next_round_turn(session, session.content)}
        )

    def _require_combination(self, session: Session, action: TurnAction) -> None:
        self._require_active(session, action)
        if not session.turn.combination:
            raise InvalidActionError(f"cannot mark {action.type.value} without a drawn combination")

    def _visible(self, session: Session, seat: int) -> dict[str, object]:
        return {
            "value": session.content.per_seat[seat],
            "is_odd": seat == session.turn.guesser_seat,
            "guesser_seat": session.turn.guesser_seat,
            "combination": session.turn.combination,
        }
