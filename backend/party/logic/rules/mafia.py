"""Mafia: partition seats into a hidden team and everyone else."""

from __future__ import annotations

from party.logic.enums import Team, Variant
from party.logic.rng import fisher_yates
from party.logic.rules.base import GameRule, new_round_id
from party.logic.settings import team_size_for, validate_capacity, validate_team_size
from party.logic.state import RoundContent, Session, SessionConfig


def team_size(capacity: int, config: SessionConfig) -> int:
    return config.team_size if config.team_size is not None else team_size_for(capacity)


class MafiaRule(GameRule):
    variant = Variant.MAFIA

    def validate(self, capacity: int, config: SessionConfig) -> None:
        validate_capacity(self.settings, capacity)
        validate_team_size(capacity, team_size(capacity, config))

    def assign(self, session: Session) -> RoundContent:
        size = team_size(session.capacity, session.config)
        tags = [Team.MAFIA] * size + [Team.CIVILIAN] * (session.capacity - size)
        return RoundContent(
            round_id=new_round_id(),
            per_seat=tuple(tag.value for tag in fisher_yates(tags, self._rng)),
        )

    def _visible(self, session: Session, seat: int) -> dict[str, object]:
        role = session.content.per_seat[seat]
        return {"value": role, "is_odd": role == Team.MAFIA.value}
