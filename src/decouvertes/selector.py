"""Box-weighted random card selection."""

from __future__ import annotations

import random
from bisect import bisect_right
from collections.abc import Callable, Iterable, Mapping, Sequence
from itertools import accumulate

from .models import Card, ProgressEntry

BOX_COUNT = 5

BoxWeight = Callable[[int], int]


def halving_weights(box_count: int = BOX_COUNT) -> BoxWeight:
    """Weight each box twice as heavily as the next one up (16, 8, 4, 2, 1 for five boxes)."""

    def weight(box: int) -> int:
        return 2 ** (box_count - box)

    return weight


def weighted_index(weights: Sequence[int], rng: random.Random) -> int:
    """Pick an index with probability ``weights[i] / sum(weights)``.

    A draw landing exactly on a boundary belongs to the later range, so the
    lowest index whose cumulative weight exceeds the draw wins.
    """
    if any(weight < 0 for weight in weights):
        raise ValueError("Weights must be non-negative.")
    cumulative = list(accumulate(weights))
    total = cumulative[-1] if cumulative else 0
    if total <= 0:
        raise ValueError("At least one weight must be positive.")
    return bisect_right(cumulative, rng.randrange(total))


def bucket_by_box(
    cards: Iterable[Card], entries: Mapping[str, ProgressEntry], box_count: int = BOX_COUNT
) -> dict[int, list[Card]]:
    """Group cards by box, dropping cards without an entry or outside ``[1, box_count]``."""
    buckets: dict[int, list[Card]] = {box: [] for box in range(1, box_count + 1)}
    for card in cards:
        entry = entries.get(card.id)
        if entry is None or not 1 <= entry.box <= box_count:
            continue
        buckets[entry.box].append(card)
    return buckets


def select_card(
    cards: Iterable[Card],
    entries: Mapping[str, ProgressEntry],
    rng: random.Random,
    box_count: int = BOX_COUNT,
    weight: BoxWeight | None = None,
) -> Card | None:
    """Return the next card to review, or None when every card is mastered."""
    box_weight = weight or halving_weights(box_count)
    buckets = bucket_by_box(cards, entries, box_count)
    candidates = [box for box in range(1, box_count + 1) if buckets[box] and box_weight(box) > 0]
    if not candidates:
        return None
    chosen_box = candidates[weighted_index([box_weight(box) for box in candidates], rng)]
    members = buckets[chosen_box]
    return members[rng.randrange(len(members))]
