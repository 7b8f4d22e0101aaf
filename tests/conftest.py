from __future__ import annotations

import json
import random
import sys
from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from decouvertes.config import AppConfig  # noqa: E402
from decouvertes.service import LeitnerService  # noqa: E402

FIXED_NOW = datetime(2024, 3, 10, 15, 30, tzinfo=UTC)


def card_dict(card_id: str, solution: str = "foo = []", **extra: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "id": card_id,
        "language": "python",
        "tags": ["lists"],
        "prompt": f"Prompt for {card_id}",
        "solution": solution,
    }
    payload.update(extra)
    return payload


def write_cards(config_dir: Path, cards: list[dict[str, Any]]) -> None:
    (config_dir / "cards.json").write_text(json.dumps(cards), encoding="utf-8")


@pytest.fixture
def config_dir(tmp_path: Path) -> Path:
    """Config directory seeded with a single card, c1."""
    path = tmp_path / "decouvertes"
    path.mkdir()
    write_cards(path, [card_dict("c1")])
    return path


@pytest.fixture
def make_service(config_dir: Path) -> Callable[..., LeitnerService]:
    def factory(seed: int = 7, now: datetime = FIXED_NOW) -> LeitnerService:
        return LeitnerService(AppConfig(config_dir=config_dir), rng=random.Random(seed), clock=lambda: now)

    return factory
