"""Application service for players, card selection, answer checking, and stats."""

from __future__ import annotations

import json
import logging
import random
import secrets
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import UTC, datetime, tzinfo
from pathlib import Path
from typing import Any, cast

from . import __version__
from .catalog import load_cards
from .config import AppConfig
from .errors import ConfigurationError, MalformedDataError, NotFoundError, ValidationError
from .models import FIRST_BOX, Card, HistoryEvent, PlayerRecord, ProgressCollection, ProgressEntry
from .progress import ProgressStore, entry_to_dict, event_to_dict, format_timestamp
from .selector import BOX_COUNT, BoxWeight, select_card

logger = logging.getLogger(__name__)

DONE_CARD_ID = "done"
MASTERED_MESSAGE = "Congratulations, you have mastered all cards!"
EXPORT_FORMAT_VERSION = 1
# Zone whose calendar days count toward daily streaks.
STREAK_TIMEZONE: tzinfo = UTC

Clock = Callable[[], datetime]


def local_now() -> datetime:
    """Current time, aware, in the local zone."""
    return datetime.now().astimezone()


@dataclass(frozen=True)
class CheckResult:
    """Outcome of one answered card."""

    correct: bool
    new_box: int
    solution: str

    def to_dict(self) -> dict[str, object]:
        return {"correct": self.correct, "new_box": self.new_box, "solution": self.solution}


@dataclass(frozen=True)
class PlayerStats:
    """Summary of one player's history.

    ``answered_today`` and ``longest_daily_streak`` are None when the player
    has no history yet.
    """

    player_name: str
    total_answered: int
    correct: int
    incorrect: int
    answered_today: int | None
    longest_daily_streak: int | None


@dataclass(frozen=True)
class PlayerTransferSummary:
    """Summary emitted by player export/import operations."""

    player_id: str
    player_name: str
    card_rows: int
    history_rows: int


class LeitnerService:
    """Coordinates the card catalog and the progress store for one command."""

    def __init__(
        self,
        config: AppConfig,
        rng: random.Random | None = None,
        clock: Clock = local_now,
        box_count: int = BOX_COUNT,
        weight: BoxWeight | None = None,
        streak_timezone: tzinfo = STREAK_TIMEZONE,
    ) -> None:
        self.config = config
        self.progress = ProgressStore(config.progress_path)
        self.box_count = box_count
        self._rng = rng or random.Random()
        self._clock = clock
        self._weight = weight
        self._streak_timezone = streak_timezone
        self._catalog: dict[str, Card] | None = None

    @property
    def catalog(self) -> dict[str, Card]:
        """Cards keyed by id, loaded on first use."""
        if self._catalog is None:
            self._catalog = load_cards(self.config.cards_path)
        return self._catalog

    def next_card(self, player_id: str | None = None) -> Card | None:
        """Pick the next card to review; None means every card is mastered."""
        collection = self.progress.load()
        entries = self._entries_for(collection, player_id)

        now = self._clock()
        created = 0
        for card in self.catalog.values():
            if card.id not in entries:
                entries[card.id] = ProgressEntry.fresh(now)
                created += 1
        if created:
            logger.debug("Initialized progress for %d new cards", created)
            self.progress.save(collection)

        return select_card(self.catalog.values(), entries, self._rng, self.box_count, self._weight)

    def check_answer(self, card_id: str, answer: str, player_id: str | None = None) -> CheckResult:
        """Judge an answer, move the card between boxes, and persist."""
        card = self.catalog.get(card_id)
        if card is None:
            raise NotFoundError(f"Card with ID '{card_id}' not found.")

        collection = self.progress.load()
        entries = self._entries_for(collection, player_id)
        now = self._clock()
        entry = entries.setdefault(card_id, ProgressEntry.fresh(now))

        correct = answers_match(answer, card.solution)
        apply_answer(entry, correct, now)
        if player_id is not None:
            player = collection.players[player_id]
            player.total_answered += 1
            player.history.append(HistoryEvent(card_id=card_id, timestamp=now, correct=correct))

        self.progress.save(collection)
        logger.debug("Card %s answered %s, now in box %d", card_id, "correctly" if correct else "wrongly", entry.box)
        return CheckResult(correct=correct, new_box=entry.box, solution=card.solution)

    def player_stats(self, player_id: str) -> PlayerStats:
        """Aggregate counters and daily activity for one player."""
        player = self._player(self.progress.load(), player_id)
        correct = sum(entry.passed for entry in player.cards.values())
        incorrect = sum(entry.failed for entry in player.cards.values())
        if not player.history:
            return PlayerStats(
                player_name=player.name,
                total_answered=correct + incorrect,
                correct=correct,
                incorrect=incorrect,
                answered_today=None,
                longest_daily_streak=None,
            )

        midnight = self._clock().replace(hour=0, minute=0, second=0, microsecond=0)
        answered_today = sum(1 for event in player.history if event.timestamp >= midnight)
        return PlayerStats(
            player_name=player.name,
            total_answered=correct + incorrect,
            correct=correct,
            incorrect=incorrect,
            answered_today=answered_today,
            longest_daily_streak=longest_daily_streak(
                (event.timestamp for event in player.history), self._streak_timezone
            ),
        )

    def create_player(self, name: str) -> PlayerRecord:
        """Register a new player under a random opaque id."""
        clean_name = name.strip()
        if not clean_name:
            raise ValidationError("Player name is required.")
        collection = self.progress.load()
        self._require_multi_player(collection)
        player = PlayerRecord(id=new_player_id(), name=clean_name)
        collection.players[player.id] = player
        self.progress.save(collection)
        logger.info("Created player %r with id %s", player.name, player.id)
        return player

    def list_players(self) -> list[PlayerRecord]:
        """Return players in file order."""
        return list(self.progress.load().players.values())

    def delete_player(self, player_id: str) -> PlayerRecord:
        """Delete one player and all of its progress."""
        collection = self.progress.load()
        player = self._player(collection, player_id)
        del collection.players[player_id]
        self.progress.save(collection)
        logger.info("Deleted player %r (%s)", player.name, player_id)
        return player

    def export_player(self, player_id: str, export_path: Path | str) -> PlayerTransferSummary:
        """Export a player and all progress state to a JSON file."""
        player = self._player(self.progress.load(), player_id)
        payload = {
            "format_version": EXPORT_FORMAT_VERSION,
            "exported_at": format_timestamp(self._clock()),
            "source": {
                "app_version": __version__,
            },
            "player": {
                "name": player.name,
            },
            "cards": {card_id: entry_to_dict(player.cards[card_id]) for card_id in sorted(player.cards)},
            "history": [event_to_dict(event) for event in player.history],
        }

        path = Path(export_path)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
        except OSError as exc:
            raise ConfigurationError(f"Could not write export file {path}: {exc}") from exc
        return PlayerTransferSummary(
            player_id=player.id,
            player_name=player.name,
            card_rows=len(player.cards),
            history_rows=len(player.history),
        )

    def import_player(self, import_path: Path | str, player_name: str | None = None) -> PlayerTransferSummary:
        """Import a player export JSON file as a new player."""
        path = Path(import_path)
        try:
            raw_obj: object = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError as exc:
            raise NotFoundError(f"Import file not found: {path}") from exc
        except (OSError, json.JSONDecodeError) as exc:
            raise MalformedDataError(f"Could not read import file {path}: {exc}") from exc
        if not isinstance(raw_obj, dict):
            raise MalformedDataError("Import file root must be a JSON object.")
        raw = cast(dict[str, object], raw_obj)

        format_version = _coerce_int(raw.get("format_version", 0))
        if format_version is None:
            raise MalformedDataError("Import file has invalid format_version.")
        if format_version > EXPORT_FORMAT_VERSION:
            raise MalformedDataError(
                f"Import file format version {format_version} is newer than supported {EXPORT_FORMAT_VERSION}."
            )

        target_name = (player_name or "").strip()
        if not target_name:
            player_section_obj = raw.get("player")
            if isinstance(player_section_obj, dict):
                player_section = cast(dict[str, object], player_section_obj)
                name_raw: object = player_section.get("name")
                if isinstance(name_raw, str):
                    target_name = name_raw.strip()
        if not target_name:
            raise ValidationError("Could not determine player name from import file.")

        now = self._clock()
        cards = _normalize_card_rows(raw.get("cards"), now)
        history = _normalize_history_rows(raw.get("history"), now)

        collection = self.progress.load()
        self._require_multi_player(collection)
        player = PlayerRecord(
            id=new_player_id(),
            name=target_name,
            total_answered=len(history),
            cards=cards,
            history=history,
        )
        collection.players[player.id] = player
        self.progress.save(collection)
        logger.info("Imported player %r with id %s from %s", player.name, player.id, path)
        return PlayerTransferSummary(
            player_id=player.id,
            player_name=player.name,
            card_rows=len(cards),
            history_rows=len(history),
        )

    def _player(self, collection: ProgressCollection, player_id: str) -> PlayerRecord:
        player = collection.players.get(player_id)
        if player is None:
            raise NotFoundError(f"Player with ID '{player_id}' not found.")
        return player

    def _entries_for(self, collection: ProgressCollection, player_id: str | None) -> dict[str, ProgressEntry]:
        """Return the mutable card map for a player, or the single-player map."""
        if player_id is not None:
            return self._player(collection, player_id).cards
        if collection.players:
            raise ValidationError("--player-id is required once players have been created.")
        return collection.solo_cards

    def _require_multi_player(self, collection: ProgressCollection) -> None:
        if collection.solo_cards:
            raise ValidationError(
                "The progress file holds single-player progress; players cannot be added to it."
            )


def normalize_answer(text: str) -> str:
    """Lowercase, drop all whitespace, and strip trailing semicolons."""
    return "".join(text.lower().split()).rstrip(";")


def answers_match(answer: str, solution: str) -> bool:
    return normalize_answer(answer) == normalize_answer(solution)


def apply_answer(entry: ProgressEntry, correct: bool, now: datetime) -> None:
    """Advance the box on success (uncapped; past the last box means mastered), reset it on failure."""
    if correct:
        entry.box += 1
        entry.streak += 1
        entry.passed += 1
    else:
        entry.box = FIRST_BOX
        entry.streak = 0
        entry.failed += 1
    entry.last_reviewed = now


def longest_daily_streak(timestamps: Iterable[datetime], tz: tzinfo = STREAK_TIMEZONE) -> int:
    """Longest run of consecutive calendar days with at least one answer."""
    days = sorted({timestamp.astimezone(tz).date() for timestamp in timestamps})
    if not days:
        return 0
    longest = current = 1
    for previous, day in zip(days, days[1:]):
        current = current + 1 if (day - previous).days == 1 else 1
        longest = max(longest, current)
    return longest


def new_player_id() -> str:
    """16 random bytes, hex-encoded."""
    return secrets.token_hex(16)


def _normalize_card_rows(raw: object, now: datetime) -> dict[str, ProgressEntry]:
    """Normalize raw card progress rows from import payload."""
    if not isinstance(raw, dict):
        return {}
    rows: dict[str, ProgressEntry] = {}
    for card_id, item in cast(dict[str, object], raw).items():
        if not isinstance(item, dict) or not card_id.strip():
            continue
        row = cast(dict[str, Any], item)
        box = _coerce_int(row.get("box", FIRST_BOX), default=FIRST_BOX) or FIRST_BOX
        rows[card_id.strip()] = ProgressEntry(
            box=max(FIRST_BOX, box),
            streak=max(0, _coerce_int(row.get("streak", 0), default=0) or 0),
            passed=max(0, _coerce_int(row.get("passed", 0), default=0) or 0),
            failed=max(0, _coerce_int(row.get("failed", 0), default=0) or 0),
            last_reviewed=_coerce_timestamp(row.get("last_reviewed"), now),
        )
    return rows


def _normalize_history_rows(raw: object, now: datetime) -> list[HistoryEvent]:
    """Normalize raw history rows from import payload."""
    if not isinstance(raw, list):
        return []
    events: list[HistoryEvent] = []
    for item in cast(list[object], raw):
        if not isinstance(item, dict):
            continue
        row = cast(dict[str, object], item)
        card_id = row.get("card_id")
        if not isinstance(card_id, str) or not card_id.strip():
            continue
        correct = _coerce_int(row.get("correct", 0), default=0) or 0
        events.append(
            HistoryEvent(
                card_id=card_id.strip(),
                timestamp=_coerce_timestamp(row.get("timestamp"), now),
                correct=bool(correct),
            )
        )
    return events


def _coerce_timestamp(value: object, default: datetime) -> datetime:
    if not isinstance(value, str) or not value:
        return default
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return default
    return parsed if parsed.tzinfo is not None else parsed.replace(tzinfo=UTC)


def _coerce_int(value: object, default: int | None = None) -> int | None:
    """Coerce value to int for import normalization."""
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return default
    return default
