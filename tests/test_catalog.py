import json
from pathlib import Path

import pytest
from conftest import card_dict, write_cards

from decouvertes.catalog import load_cards, parse_cards
from decouvertes.errors import ConfigurationError, MalformedDataError


def test_load_cards_keeps_file_order(tmp_path: Path) -> None:
    write_cards(tmp_path, [card_dict("b"), card_dict("a"), card_dict("c")])
    cards = load_cards(tmp_path / "cards.json")
    assert list(cards) == ["b", "a", "c"]
    card = cards["a"]
    assert card.language == "python"
    assert card.tags == ("lists",)
    assert card.solution == "foo = []"


def test_tags_are_deduplicated_in_order() -> None:
    cards = parse_cards(json.dumps([card_dict("c", tags=["x", "y", "x"])]))
    assert cards["c"].tags == ("x", "y")


def test_missing_tags_default_to_empty() -> None:
    raw = card_dict("c")
    del raw["tags"]
    assert parse_cards(json.dumps([raw]))["c"].tags == ()


def test_missing_config_directory_is_configuration_error(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError, match="Config directory not found"):
        load_cards(tmp_path / "nope" / "cards.json")


def test_missing_catalog_file_is_configuration_error(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError, match="cards.json not found"):
        load_cards(tmp_path / "cards.json")


def test_empty_catalog_file_is_configuration_error(tmp_path: Path) -> None:
    (tmp_path / "cards.json").write_text("  \n", encoding="utf-8")
    with pytest.raises(ConfigurationError, match="missing or empty"):
        load_cards(tmp_path / "cards.json")


@pytest.mark.parametrize(
    ("text", "message"),
    [
        ("{not json", "Error parsing"),
        ('{"id": "c"}', "JSON array"),
        ('["c"]', "not a JSON object"),
        ('[{"solution": "x"}]', "has no id"),
        ('[{"id": "c"}]', "has no solution"),
        ('[{"id": "c", "solution": "x", "tags": "a"}]', "tags must be a list"),
        ('[{"id": "c", "solution": "x", "tags": ""}]', "tags must be a list"),
        ('[{"id": "c", "solution": "x", "tags": {}}]', "tags must be a list"),
    ],
)
def test_malformed_catalog(text: str, message: str) -> None:
    with pytest.raises(MalformedDataError, match=message):
        parse_cards(text)


def test_duplicate_card_id_raises() -> None:
    with pytest.raises(MalformedDataError, match="Duplicate card id: same"):
        parse_cards(json.dumps([card_dict("same"), card_dict("same", solution="x")]))
