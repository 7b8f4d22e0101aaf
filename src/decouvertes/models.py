"""Core domain models for Leitner-box review."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

FIRST_BOX = 1


@dataclass(frozen=True)
class Card:
    """One flashcard from the catalog."""

    id: str
    language: str
    tags: tuple[str, ...]
    prompt: str
    solution: str


@dataclass
class ProgressEntry:
    """Review state of one card for one player."""

    box: int
    streak: int
    passed: int
    failed: int
    last_reviewed: datetime

    @classmethod
    def fresh(cls, now: datetime) -> ProgressEntry:
        """Return the state of a card the player has never answered."""
        return cls(box=FIRST_BOX, streak=0, passed=0, failed=0, last_reviewed=now)


@dataclass(frozen=True)
class HistoryEvent:
    """One answered card."""

    card_id: str
    timestamp: datetime
    correct: bool


@dataclass
class PlayerRecord:
    """Player identity plus all of its progress."""

    id: str
    name: str
    total_answered: int = 0
    cards: dict[str, ProgressEntry] = field(default_factory=dict)
    history: list[HistoryEvent] = field(default_factory=list)


@dataclass
class ProgressCollection:
    """Everything persisted in the progress file.

    Multi-player files populate ``players``; single-player files map card ids
    straight to entries and populate ``solo_cards``. A file never holds both.
    """

    players: dict[str, PlayerRecord] = field(default_factory=dict)
    solo_cards: dict[str, ProgressEntry] = field(default_factory=dict)
