import json
from datetime import UTC, datetime, timedelta, timezone
from pathlib import Path

import pytest

from decouvertes.errors import ConfigurationError, MalformedDataError
from decouvertes.models import HistoryEvent, PlayerRecord, ProgressCollection, ProgressEntry
from decouvertes.progress import (
    ZERO_TIME,
    ProgressStore,
    dump_collection,
    format_timestamp,
    parse_collection,
    parse_timestamp,
)

PARIS = timezone(timedelta(hours=2))


def _entry(box: int = 1, when: datetime | None = None) -> ProgressEntry:
    return ProgressEntry(
        box=box,
        streak=box - 1,
        passed=box - 1,
        failed=2,
        last_reviewed=when or datetime(2024, 5, 1, 8, 0, 0, 123400, tzinfo=PARIS),
    )


def test_missing_file_loads_empty(tmp_path: Path) -> None:
    collection = ProgressStore(tmp_path / "progress.json").load()
    assert collection.players == {}
    assert collection.solo_cards == {}


def test_empty_file_loads_empty(tmp_path: Path) -> None:
    path = tmp_path / "progress.json"
    path.write_text("", encoding="utf-8")
    assert ProgressStore(path).load() == ProgressCollection()


def test_missing_config_directory_fails(tmp_path: Path) -> None:
    store = ProgressStore(tmp_path / "absent" / "progress.json")
    with pytest.raises(ConfigurationError, match="Config directory not found"):
        store.load()
    with pytest.raises(ConfigurationError):
        store.save(ProgressCollection())


def test_round_trip_players(tmp_path: Path) -> None:
    store = ProgressStore(tmp_path / "progress.json")
    player = PlayerRecord(
        id="ab" * 16,
        name="Ada",
        total_answered=2,
        cards={"c2": _entry(3), "c1": _entry(6, datetime(2024, 1, 2, tzinfo=UTC))},
        history=[
            HistoryEvent(card_id="c1", timestamp=datetime(2024, 1, 2, tzinfo=UTC), correct=True),
            HistoryEvent(card_id="c2", timestamp=datetime(2024, 1, 3, 9, tzinfo=PARIS), correct=False),
        ],
    )
    store.save(ProgressCollection(players={player.id: player}))

    loaded = store.load()
    assert loaded.players == {player.id: player}
    assert not (tmp_path / "progress.json.tmp").exists()


def test_round_trip_single_player(tmp_path: Path) -> None:
    store = ProgressStore(tmp_path / "progress.json")
    collection = ProgressCollection(solo_cards={"c1": _entry(2), "c3": _entry(5)})
    store.save(collection)
    assert store.load() == collection


def test_file_layout_is_indented_and_sorted() -> None:
    collection = ProgressCollection(solo_cards={"zeta": _entry(1), "alpha": _entry(2)})
    text = dump_collection(collection)
    raw = json.loads(text)
    assert list(raw) == ["alpha", "zeta"]
    assert list(raw["alpha"]) == ["box", "streak", "passed", "failed", "last_reviewed"]
    assert text.startswith('{\n  "alpha": {\n    "box": 2,')
    assert raw["alpha"]["last_reviewed"] == "2024-05-01T08:00:00.1234+02:00"


def test_player_layout() -> None:
    player = PlayerRecord(id="p1", name="Ada")
    raw = json.loads(dump_collection(ProgressCollection(players={"p1": player})))
    assert raw == {"p1": {"id": "p1", "name": "Ada", "total_answered": 0, "cards": {}, "history": []}}


def test_legacy_single_player_file_without_counters() -> None:
    text = json.dumps({"c1": {"box": 3, "streak": 2, "last_reviewed": "2024-05-01T10:00:00.123456789+02:00"}})
    entry = parse_collection(text).solo_cards["c1"]
    assert entry.box == 3
    assert entry.streak == 2
    assert entry.passed == 0
    assert entry.failed == 0
    assert entry.last_reviewed == datetime(2024, 5, 1, 10, 0, 0, 123456, tzinfo=PARIS)


def test_entry_without_timestamp_uses_zero_time() -> None:
    entry = parse_collection('{"c1": {"box": 2}}').solo_cards["c1"]
    assert entry.last_reviewed == ZERO_TIME
    assert format_timestamp(ZERO_TIME) == "0001-01-01T00:00:00Z"


@pytest.mark.parametrize(
    "text",
    [
        "[1, 2]",
        "{oops",
        '{"c1": 3}',
        '{"c1": {"box": "two"}}',
        '{"c1": {"box": true}}',
        '{"c1": {"box": 1, "last_reviewed": "yesterday"}}',
        '{"p1": {"name": "A", "cards": []}}',
        '{"p1": {"name": "A", "history": {}}}',
        '{"p1": {"name": "A", "cards": ""}}',
        '{"p1": {"name": "A", "history": [{"card_id": "c1"}]}}',
        '{"p1": {"name": "A"}, "c1": {"box": 1}}',
    ],
)
def test_malformed_progress(text: str) -> None:
    with pytest.raises(MalformedDataError):
        parse_collection(text)


def test_total_answered_defaults_to_history_length() -> None:
    text = json.dumps(
        {"p1": {"name": "A", "history": [{"card_id": "c1", "timestamp": "2024-01-01T00:00:00Z", "correct": True}]}}
    )
    assert parse_collection(text).players["p1"].total_answered == 1


def test_dump_refuses_mixed_collection() -> None:
    collection = ProgressCollection(players={"p": PlayerRecord(id="p", name="A")}, solo_cards={"c": _entry()})
    with pytest.raises(RuntimeError):
        dump_collection(collection)


def test_timestamp_formatting() -> None:
    assert format_timestamp(datetime(2024, 1, 2, 3, 4, 5, tzinfo=UTC)) == "2024-01-02T03:04:05Z"
    assert format_timestamp(datetime(2024, 1, 2, 3, 4, 5, 500000, tzinfo=UTC)) == "2024-01-02T03:04:05.5Z"
    assert format_timestamp(datetime(2024, 1, 2, 3, 4, 5)) == "2024-01-02T03:04:05Z"
    assert parse_timestamp("2024-01-02T03:04:05Z") == datetime(2024, 1, 2, 3, 4, 5, tzinfo=UTC)
    assert parse_timestamp("2024-01-02T03:04:05").tzinfo == UTC


def test_wrongly_typed_player_containers_are_rejected(tmp_path: Path) -> None:
    path = tmp_path / "progress.json"
    original = '{"p1": {"name": "A", "cards": [], "history": []}}'
    path.write_text(original, encoding="utf-8")
    with pytest.raises(MalformedDataError, match="cards must be a JSON object"):
        ProgressStore(path).load()
    assert path.read_text(encoding="utf-8") == original
