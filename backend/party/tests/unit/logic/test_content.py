import json

import pytest

from party.logic.content import CHARACTERS, CHARADES_WORDS, IMPOSTOR_WORDS, ContentLibrary, default_library
from party.logic.exceptions import AssignmentSourceEmptyError


class TestContentLibrary:
    def test_default_pools_are_populated(self):
        library = default_library()

        for name in (IMPOSTOR_WORDS, CHARADES_WORDS, CHARACTERS):
            assert library.pool(name)

    def test_every_default_item_has_category(self):
        library = default_library()

        assert all(item.category for item in library.pool(IMPOSTOR_WORDS))

    def test_empty_pool_raises(self):
        with pytest.raises(AssignmentSourceEmptyError) as exc_info:
            ContentLibrary().pool(CHARACTERS)
        assert exc_info.value.pool == CHARACTERS

    def test_unknown_pool_raises(self):
        with pytest.raises(AssignmentSourceEmptyError):
            default_library().pool("riddles")

    def test_load_from_json_file(self, tmp_path):
        path = tmp_path / "content.json"
        path.write_text(
            json.dumps(
                {
                    "impostor_words": [{"text": "tea", "category": "drinks"}],
                    "characters": [{"text": "Zorro"}],
                }
            ),
            encoding="utf-8",
        )

        library = ContentLibrary.from_json_file(path)

        assert [i.text for i in library.pool(IMPOSTOR_WORDS)] == ["tea"]
        assert library.pool(CHARACTERS)[0].category is None
        assert library.charades_words == ()

    def test_library_is_frozen(self):
        library = default_library()

        with pytest.raises(ValueError, match="frozen"):
            library.characters = ()
