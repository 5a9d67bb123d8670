"""Variant to rule lookup."""

from __future__ import annotations

from typing import TYPE_CHECKING

from party.logic.enums import Variant
from party.logic.rules.casino import CasinoRule
from party.logic.rules.charades import CharadesRule
from party.logic.rules.impostor import ImpostorRule
from party.logic.rules.mafia import MafiaRule
from party.logic.rules.whoami import WhoAmIRule

if TYPE_CHECKING:
    import random

    from party.logic.content import ContentLibrary
    from party.logic.rules.base import GameRule

RULES: dict[Variant, type[GameRule]] = {
    Variant.IMPOSTOR: ImpostorRule,
    Variant.MAFIA: MafiaRule,
    Variant.CHARADES: CharadesRule,
    Variant.CASINO: CasinoRule,
    Variant.WHOAMI: WhoAmIRule,
}


def build_rules(content: ContentLibrary, rng: random.Random | None = None) -> dict[Variant, GameRule]:
    """Instantiate one rule per variant sharing a content library and random source."""
    return {variant: rule_cls(content, rng) for variant, rule_cls in RULES.items()}
