"""JSON persistence for players and Leitner-box state."""

from __future__ import annotations

import json
import logging
import os
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from .errors import ConfigurationError, MalformedDataError
from .models import FIRST_BOX, HistoryEvent, PlayerRecord, ProgressCollection, ProgressEntry

logger = logging.getLogger(__name__)

# Timestamp written for entries that never recorded one.
ZERO_TIME = datetime(1, 1, 1, tzinfo=UTC)

_PLAYER_KEYS = {"id", "name", "total_answered", "cards", "history"}


class ProgressStore:
    """Reads and wholesale rewrites the progress file.

    There is no locking: two overlapping invocations race and the last
    ``save`` wins.
    """

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    def load(self) -> ProgressCollection:
        """Return the persisted collection; a missing or empty file is an empty collection."""
        self._require_config_dir()
        try:
            text = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            logger.debug("No progress file at %s, starting empty", self.path)
            return ProgressCollection()
        except OSError as exc:
            raise ConfigurationError(f"Error reading file ({self.path}): {exc}.") from exc
        if not text.strip():
            return ProgressCollection()
        collection = parse_collection(text)
        logger.debug(
            "Loaded progress from %s (%d players, %d single-player cards)",
            self.path,
            len(collection.players),
            len(collection.solo_cards),
        )
        return collection

    def save(self, collection: ProgressCollection) -> None:
        """Rewrite the whole progress file."""
        self._require_config_dir()
        data = dump_collection(collection)
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            tmp_path.write_text(data, encoding="utf-8")
            os.replace(tmp_path, self.path)
        except OSError as exc:
            raise ConfigurationError(f"Error writing progress file ({self.path}): {exc}") from exc
        logger.debug("Saved progress to %s", self.path)

    def _require_config_dir(self) -> None:
        config_dir = self.path.parent
        if not config_dir.is_dir():
            raise ConfigurationError(
                f"Config directory not found at {config_dir}. "
                f"Please create it and place your 'cards.json' file inside."
            )


def parse_collection(text: str) -> ProgressCollection:
    """Parse progress file text in either the multi-player or single-player shape."""
    try:
        raw = json.loads(text)
    except json.JSONDecodeError as exc:
        raise MalformedDataError(f"Error parsing progress JSON: {exc}") from exc
    if not isinstance(raw, dict):
        raise MalformedDataError("Progress file root must be a JSON object.")

    collection = ProgressCollection()
    for key, value in raw.items():
        if not isinstance(value, dict):
            raise MalformedDataError(f"Progress record '{key}' must be a JSON object.")
        if _PLAYER_KEYS.intersection(value) and "box" not in value:
            collection.players[key] = player_from_dict(key, value)
        else:
            collection.solo_cards[key] = entry_from_dict(key, value)

    if collection.players and collection.solo_cards:
        raise MalformedDataError("Progress file mixes player records with single-player card entries.")
    return collection


def dump_collection(collection: ProgressCollection) -> str:
    """Serialize as indented JSON with map keys sorted."""
    if collection.players and collection.solo_cards:
        raise RuntimeError("Cannot persist player records and single-player entries together.")
    payload: dict[str, Any]
    if collection.players:
        payload = {key: player_to_dict(collection.players[key]) for key in sorted(collection.players)}
    else:
        payload = {key: entry_to_dict(collection.solo_cards[key]) for key in sorted(collection.solo_cards)}
    return json.dumps(payload, indent=2, ensure_ascii=False)


def player_from_dict(player_id: str, raw: dict[str, Any]) -> PlayerRecord:
    raw_cards = raw.get("cards", {})
    if not isinstance(raw_cards, dict):
        raise MalformedDataError(f"Player '{player_id}' cards must be a JSON object.")
    raw_history = raw.get("history", [])
    if not isinstance(raw_history, list):
        raise MalformedDataError(f"Player '{player_id}' history must be a JSON array.")

    cards: dict[str, ProgressEntry] = {}
    for card_id, item in raw_cards.items():
        if not isinstance(item, dict):
            raise MalformedDataError(f"Progress for card '{card_id}' must be a JSON object.")
        cards[card_id] = entry_from_dict(card_id, item)
    history = [event_from_dict(item) for item in raw_history]

    return PlayerRecord(
        id=player_id,
        name=str(raw.get("name", "")),
        total_answered=_require_int(raw, "total_answered", f"player '{player_id}'", default=len(history)),
        cards=cards,
        history=history,
    )


def player_to_dict(player: PlayerRecord) -> dict[str, Any]:
    return {
        "id": player.id,
        "name": player.name,
        "total_answered": player.total_answered,
        "cards": {card_id: entry_to_dict(player.cards[card_id]) for card_id in sorted(player.cards)},
        "history": [event_to_dict(event) for event in player.history],
    }


def entry_from_dict(card_id: str, raw: dict[str, Any]) -> ProgressEntry:
    """Build an entry; files written before pass/fail counters existed load them as zero."""
    where = f"card '{card_id}'"
    last_reviewed_raw = raw.get("last_reviewed")
    return ProgressEntry(
        box=_require_int(raw, "box", where, default=FIRST_BOX),
        streak=_require_int(raw, "streak", where, default=0),
        passed=_require_int(raw, "passed", where, default=0),
        failed=_require_int(raw, "failed", where, default=0),
        last_reviewed=ZERO_TIME if last_reviewed_raw is None else parse_timestamp(last_reviewed_raw),
    )


def entry_to_dict(entry: ProgressEntry) -> dict[str, Any]:
    return {
        "box": entry.box,
        "streak": entry.streak,
        "passed": entry.passed,
        "failed": entry.failed,
        "last_reviewed": format_timestamp(entry.last_reviewed),
    }


def event_from_dict(raw: object) -> HistoryEvent:
    if not isinstance(raw, dict):
        raise MalformedDataError("History event must be a JSON object.")
    card_id = raw.get("card_id")
    correct = raw.get("correct")
    if not isinstance(card_id, str) or not isinstance(correct, bool):
        raise MalformedDataError(f"History event is missing card_id or correct: {raw!r}")
    return HistoryEvent(card_id=card_id, timestamp=parse_timestamp(raw.get("timestamp")), correct=correct)


def event_to_dict(event: HistoryEvent) -> dict[str, Any]:
    return {
        "card_id": event.card_id,
        "timestamp": format_timestamp(event.timestamp),
        "correct": event.correct,
    }


def format_timestamp(value: datetime) -> str:
    """Render an RFC 3339 timestamp: ``Z`` for UTC, no trailing fractional zeros."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    text = value.isoformat()
    if "." in text:
        head, rest = text.split(".", 1)
        digits = rest[:6].rstrip("0")
        text = f"{head}.{digits}{rest[6:]}" if digits else f"{head}{rest[6:]}"
    if text.endswith("+00:00"):
        text = text[: -len("+00:00")] + "Z"
    return text


def parse_timestamp(value: object) -> datetime:
    """Parse an RFC 3339 timestamp; naive values are taken as UTC."""
    if not isinstance(value, str) or not value:
        raise MalformedDataError(f"Invalid timestamp: {value!r}")
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError as exc:
        raise MalformedDataError(f"Invalid timestamp: {value!r}") from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def _require_int(raw: dict[str, Any], key: str, where: str, default: int) -> int:
    value = raw.get(key)
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, int):
        raise MalformedDataError(f"Field '{key}' of {where} must be an integer, got {value!r}.")
    return value
