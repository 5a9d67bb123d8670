"""Who-am-I: everyone but the guesser sees a character; the guesser asks questions."""

from __future__ import annotations

from party.logic.content import CHARACTERS
from party.logic.enums import Variant
from party.logic.rng import choose, pick_excluding
from party.logic.rules.base import GameRule, new_round_id
from party.logic.state import RoundContent, Session


class WhoAmIRule(GameRule):
    variant = Variant.WHOAMI

    def check_content(self) -> None:
        self._content.pool(CHARACTERS)

    def assign(self, session: Session) -> RoundContent:
        item = choose(self._content.pool(CHARACTERS), self._rng)
        guesser = pick_excluding(range(session.capacity), session.content.odd_seat, self._rng)
        return RoundContent(round_id=new_round_id(), value=item.text, category=item.category, odd_seat=guesser)

    def turn_pointer(self, session: Session) -> int | None:
        return session.content.odd_seat

    def _visible(self, session: Session, seat: int) -> dict[str, object]:
        is_guesser = seat == session.content.odd_seat
        return {
            "value": None if is_guesser else session.content.value,
            "category": None if is_guesser else session.content.category,
            "is_odd": is_guesser,
            "guesser_seat": session.content.odd_seat,
        }
