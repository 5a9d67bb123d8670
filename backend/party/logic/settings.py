"""Per-variant rules: capacity bounds, round behavior and derived sizes."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from party.logic.enums import Variant
from party.logic.exceptions import UnsupportedSettingsError

CASINO_SYMBOLS: tuple[str, ...] = ("🍒", "🍋", "🍊", "🍇", "⭐", "🔔", "7️⃣", "💎")
DEFAULT_GUESS_SECONDS = 10.0
MAX_CASINO_WRONG_GUESSES = 3


class VariantSettings(BaseModel):
    """
    Static rules of one variant.

    Flags describe how the shared engine treats the variant's rounds; the
    variant-specific transitions live in its GameRule.
    """

    model_config = ConfigDict(frozen=True)

    variant: Variant
    min_capacity: int
    max_capacity: int = 20

    # --- Seating ---
    host_occupies_seat: bool = True
    clears_seats_on_new_round: bool = False

    # --- Observation / reveal ---
    observation_gated: bool = False  # reveal waits for every seat to observe
    observe_on_fetch: bool = False  # fetching content counts as observing it

    # --- Turn flow ---
    auto_start_when_seated: bool = False
    guess_timer: bool = False


VARIANT_SETTINGS: dict[Variant, VariantSettings] = {
    Variant.IMPOSTOR: VariantSettings(
        variant=Variant.IMPOSTOR,
        min_capacity=3,
        clears_seats_on_new_round=True,
        observation_gated=True,
        observe_on_fetch=True,
    ),
    Variant.MAFIA: VariantSettings(
        variant=Variant.MAFIA,
        min_capacity=4,
        observation_gated=True,
    ),
    Variant.CHARADES: VariantSettings(
        variant=Variant.CHARADES,
        min_capacity=2,
        auto_start_when_seated=True,
        guess_timer=True,
    ),
    Variant.CASINO: VariantSettings(
        variant=Variant.CASINO,
        min_capacity=3,
    ),
    Variant.WHOAMI: VariantSettings(
        variant=Variant.WHOAMI,
        min_capacity=2,
        clears_seats_on_new_round=True,
        observation_gated=True,
        observe_on_fetch=True,
    ),
}


def get_variant_settings(variant: Variant | str) -> VariantSettings:
    try:
        return VARIANT_SETTINGS[Variant(variant)]
    except ValueError:
        raise UnsupportedSettingsError(f"unknown variant {variant!r}") from None


def validate_capacity(settings: VariantSettings, capacity: int) -> None:
    """Raise UnsupportedSettingsError if capacity is outside the variant's bounds."""
    if not settings.min_capacity <= capacity <= settings.max_capacity:
        raise UnsupportedSettingsError(
            f"capacity={capacity} is not supported for {settings.variant.value} "
            f"(expected {settings.min_capacity}-{settings.max_capacity})"
        )


def team_size_for(capacity: int) -> int:
    """Default mafia team size for a seat count."""
    if capacity <= 6:  # noqa: PLR2004
        return 1
    if capacity <= 9:  # noqa: PLR2004
        return 2
    if capacity <= 12:  # noqa: PLR2004
        return 3
    return capacity // 4


def validate_team_size(capacity: int, team_size: int) -> None:
    if not 1 <= team_size <= capacity - 1:
        raise UnsupportedSettingsError(
            f"team_size={team_size} is not supported for capacity {capacity} (expected 1-{capacity - 1})"
        )


def combination_length(capacity: int) -> int:
    """Casino combination length for a seat count."""
    if capacity <= 3:  # noqa: PLR2004
        return 1
    if capacity == 4:  # noqa: PLR2004
        return 2
    return 3
