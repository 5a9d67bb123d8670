"""
Random selection helpers for content and role assignment.

Assignment uses random.SystemRandom by default. Any random.Random instance can
be injected instead, which is how tests pin outcomes. Replay determinism is
not a goal, so no seed is stored.
"""

from __future__ import annotations

import random
from typing import TYPE_CHECKING, TypeVar

if TYPE_CHECKING:
    from collections.abc import Sequence

T = TypeVar("T")


def default_rng() -> random.Random:
    """Return an OS-entropy backed random source."""
    return random.SystemRandom()


def fisher_yates(items: Sequence[T], rng: random.Random) -> list[T]:
    """Return a uniformly shuffled copy of items."""
    result = list(items)
    for i in range(len(result) - 1, 0, -1):
        j = rng.randrange(i + 1)
        result[i], result[j] = result[j], result[i]
    return result


def choose(items: Sequence[T], rng: random.Random) -> T:
    """Pick one element uniformly. Raise ValueError on an empty sequence."""
    if not items:
        raise ValueError("cannot choose from an empty sequence")
    return items[rng.randrange(len(items))]


def pick_excluding(candidates: Sequence[T], previous: T | None, rng: random.Random) -> T:
    """Pick uniformly, excluding the previous value while another candidate remains."""
    pool = [c for c in candidates if c != previous]
    if not pool:
        pool = list(candidates)
    return choose(pool, rng)
