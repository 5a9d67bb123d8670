"""Content pools: words for impostor and charades, characters for who-am-I."""

from __future__ import annotations

import json
from pathlib import Path

import structlog
from pydantic import BaseModel, ConfigDict

from party.logic.exceptions import AssignmentSourceEmptyError

logger = structlog.get_logger()

IMPOSTOR_WORDS = "impostor_words"
CHARADES_WORDS = "charades_words"
CHARACTERS = "characters"


class ContentItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    text: str
    category: str | None = None


class ContentLibrary(BaseModel):
    """Named pools of content items. Loaded once at startup and never mutated."""

    model_config = ConfigDict(frozen=True)

    impostor_words: tuple[ContentItem, ...] = ()
    charades_words: tuple[ContentItem, ...] = ()
    characters: tuple[ContentItem, ...] = ()

    def pool(self, name: str) -> tuple[ContentItem, ...]:
        """Return a non-empty pool, raising AssignmentSourceEmptyError otherwise."""
        items = getattr(self, name, None)
        if not items:
            raise AssignmentSourceEmptyError(name)
        return items

    @classmethod
    def from_json_file(cls, path: str | Path) -> ContentLibrary:
        """Load pools from a JSON object keyed by pool name."""
        data = json.loads(Path(path).read_text(encoding="utf-8"))
        library = cls.model_validate(data)
        logger.info(
            "content library loaded",
            path=str(path),
            impostor_words=len(library.impostor_words),
            charades_words=len(library.charades_words),
            characters=len(library.characters),
        )
        return library


def _items(category: str, words: str) -> list[ContentItem]:
    return [ContentItem(text=w, category=category) for w in words.split(",")]


def default_library() -> ContentLibrary:
    """Built-in pools used when no content file is configured."""
    words = [
        *_items("food", "pizza,sushi,pancake,lemon,popcorn,croissant,watermelon,chocolate"),
        *_items("places", "airport,library,beach,hospital,museum,volcano,casino,submarine"),
        *_items("animals", "penguin,giraffe,octopus,kangaroo,crocodile,owl,dolphin,hedgehog"),
        *_items("jobs", "astronaut,firefighter,chef,detective,pilot,dentist,magician,lifeguard"),
    ]
    actions = _items(
        "actions",
        "brushing teeth,riding a bike,fishing,juggling,skydiving,ironing a shirt,"
        "climbing a ladder,taking a selfie,changing a tire,walking a dog",
    )
    characters = [
        *_items("fiction", "Sherlock Holmes,Harry Potter,Cinderella,Dracula,Robin Hood,Pinocchio"),
        *_items("history", "Cleopatra,Napoleon,Leonardo da Vinci,Marie Curie,Julius Caesar"),
        *_items("film", "Darth Vader,Shrek,Mary Poppins,James Bond,Indiana Jones"),
    ]
    return ContentLibrary(
        impostor_words=tuple(words),
        charades_words=tuple(words + actions),
        characters=tuple(characters),
    )
