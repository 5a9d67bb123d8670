import random
from typing import Any

import pytest

from party.logic.content import ContentItem, ContentLibrary, default_library
from party.logic.enums import SessionStatus, Variant
from party.logic.rules.registry import build_rules
from party.logic.state import Session, SessionConfig
from party.session.engine import GameEngine

TEST_CODE = "ABC234"


# ============================================================================
# Test State Builder Helpers
# ============================================================================


def create_session(
    variant: Variant | str,
    capacity: int,
    *,
    rng: random.Random | None = None,
    content: ContentLibrary | None = None,
    code: str = TEST_CODE,
    status: SessionStatus | None = None,
    **config: Any,
) -> Session:
    """Create a session with assigned first-round content, built by the variant's rule."""
    rules = build_rules(content or default_library(), rng or random.Random(7))
    session = rules[Variant(variant)].create(code, capacity, SessionConfig(**config))
    if status is not None:
        session = session.model_copy(update={"status": status})
    return session


def single_item_library() -> ContentLibrary:
    """Library with exactly one item per pool, so every draw is known in advance."""
    return ContentLibrary(
        impostor_words=(ContentItem(text="lemon", category="food"),),
        charades_words=(ContentItem(text="juggling", category="actions"),),
        characters=(ContentItem(text="Cleopatra", category="history"),),
    )


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def rules(rng):
    return build_rules(default_library(), rng)


@pytest.fixture
def engine(memory_store, rng):
    return GameEngine(memory_store, rng=rng)
