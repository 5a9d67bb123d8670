"""Impostor: every seat but one sees the word; the odd seat bluffs."""

from __future__ import annotations

from party.logic.content import IMPOSTOR_WORDS
from party.logic.enums import Variant
from party.logic.rng import choose, pick_excluding
from party.logic.rules.base import GameRule, new_round_id
from party.logic.state import RoundContent, Session


class ImpostorRule(GameRule):
    variant = Variant.IMPOSTOR

    def check_content(self) -> None:
        self._content.pool(IMPOSTOR_WORDS)

    def assign(self, session: Session) -> RoundContent:
        item = choose(self._content.pool(IMPOSTOR_WORDS), self._rng)
        # The odd seat is drawn over every seat each round, including the previous one.
        odd_seat = self._rng.randrange(session.capacity)
        candidates = [seat for seat in range(session.capacity) if seat != odd_seat]
        starting_seat = pick_excluding(candidates, session.content.starting_seat, self._rng)
        return RoundContent(
            round_id=new_round_id(),
            value=item.text,
            category=item.category,
            odd_seat=odd_seat,
            starting_seat=starting_seat,
        )

    def _visible(self, session: Session, seat: int) -> dict[str, object]:
        is_odd = seat == session.content.odd_seat
        return {
            "value": None if is_odd else session.content.value,
            "category": session.content.category,
            "is_odd": is_odd,
            "starting_seat": session.content.starting_seat if session.turn.revealed else None,
        }
