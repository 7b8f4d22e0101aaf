"""Load the flashcard catalog from ``cards.json``."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from .errors import ConfigurationError, MalformedDataError
from .models import Card

logger = logging.getLogger(__name__)


def _card_from_dict(index: int, raw: Any) -> Card:
    """Build a card from raw JSON content."""
    if not isinstance(raw, dict):
        raise MalformedDataError(f"Card #{index} in catalog is not a JSON object.")
    card_id = str(raw.get("id", "")).strip()
    if not card_id:
        raise MalformedDataError(f"Card #{index} in catalog has no id.")
    if "solution" not in raw:
        raise MalformedDataError(f"Card '{card_id}' has no solution.")

    raw_tags = raw.get("tags")
    if raw_tags is None:
        raw_tags = []
    if not isinstance(raw_tags, list):
        raise MalformedDataError(f"Card '{card_id}' tags must be a list of strings.")
    tags = tuple(dict.fromkeys(str(tag) for tag in raw_tags))

    return Card(
        id=card_id,
        language=str(raw.get("language", "")),
        tags=tags,
        prompt=str(raw.get("prompt", "")),
        solution=str(raw["solution"]),
    )


def parse_cards(text: str, source: str = "cards.json") -> dict[str, Card]:
    """Parse catalog JSON text into cards keyed by id, in file order."""
    try:
        raw = json.loads(text)
    except json.JSONDecodeError as exc:
        raise MalformedDataError(f"Error parsing {source}: {exc}") from exc
    if not isinstance(raw, list):
        raise MalformedDataError(f"{source} must contain a JSON array of cards.")

    cards: dict[str, Card] = {}
    for index, item in enumerate(raw):
        card = _card_from_dict(index, item)
        if card.id in cards:
            raise MalformedDataError(f"Duplicate card id: {card.id}")
        cards[card.id] = card
    return cards


def load_cards(path: Path) -> dict[str, Card]:
    """Load the catalog file, failing loudly when it is absent."""
    config_dir = path.parent
    if not config_dir.is_dir():
        raise ConfigurationError(
            f"Config directory not found at {config_dir}. Please create it and place your '{path.name}' file inside."
        )
    try:
        text = path.read_text(encoding="utf-8-sig")
    except FileNotFoundError as exc:
        raise ConfigurationError(f"{path.name} not found in {config_dir}. Please create it.") from exc
    except OSError as exc:
        raise ConfigurationError(f"Error reading file ({path}): {exc}.") from exc
    if not text.strip():
        raise ConfigurationError(f"{path.name} is missing or empty.")

    cards = parse_cards(text, source=path.name)
    logger.debug("Loaded %d cards from %s", len(cards), path)
    return cards
