"""Session code generation and validation."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

from party.logic.rng import choose, default_rng

if TYPE_CHECKING:
    import random

# Uppercase letters and digits without the easily confused I, O, 0 and 1.
CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
CODE_LENGTH = 6

_CODE_RE = re.compile(rf"^[{CODE_ALPHABET}]{{{CODE_LENGTH}}}$")


def generate_code(rng: random.Random | None = None) -> str:
    rng = rng or default_rng()
    return "".join(choose(CODE_ALPHABET, rng) for _ in range(CODE_LENGTH))


def is_valid_code(code: str) -> bool:
    return bool(_CODE_RE.match(code))


def normalize_code(code: str) -> str:
    """Uppercase and strip a user-typed code."""
    return code.strip().upper()
