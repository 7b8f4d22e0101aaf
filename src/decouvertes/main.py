"""CLI entrypoint invoked by the editor plugin, one command per process."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from collections.abc import Callable, Mapping

from . import __version__
from .config import AppConfig, resolve_config
from .errors import DecouvertesError, ValidationError
from .models import Card
from .service import DONE_CARD_ID, MASTERED_MESSAGE, LeitnerService, PlayerStats

PrintFn = Callable[[str], None]
Handler = Callable[[LeitnerService, argparse.Namespace, PrintFn], None]

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
NO_PLAYERS_MESSAGE = "No players found. Create one with 'create-player --name=NAME'."
NO_HISTORY_MESSAGE = "No review history yet, so there is no time-based data."

logger = logging.getLogger(__name__)


def _print_error(message: str) -> None:
    print(message, file=sys.stderr)


def _service(config: AppConfig) -> LeitnerService:
    """Create app service for the resolved config directory."""
    return LeitnerService(config)


def configure_logging(level: int) -> None:
    """Send package logs to stderr; stdout carries command output only."""
    package_logger = logging.getLogger("decouvertes")
    package_logger.handlers.clear()
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    package_logger.addHandler(handler)
    package_logger.setLevel(level)
    package_logger.propagate = False


def build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--config-dir", help="Directory holding cards.json and progress.json.")
    common.add_argument("-v", "--verbose", action="store_true", help="Log debug output to stderr.")

    parser = argparse.ArgumentParser(prog="decouvertes", description="Leitner-box flashcard engine")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    commands = parser.add_subparsers(dest="command", required=True, metavar="command")

    get_card = commands.add_parser("get-card", parents=[common], help="Print the next card to review as JSON.")
    get_card.add_argument("--player-id")
    get_card.set_defaults(handler=_get_card)

    check = commands.add_parser("check-answer", parents=[common], help="Check an answer and update progress.")
    check.add_argument("--id", dest="card_id", help="The ID of the card being answered (required).")
    check.add_argument("--answer", help="The user's answer (required).")
    check.add_argument("--player-id")
    check.set_defaults(handler=_check_answer)

    create = commands.add_parser("create-player", parents=[common], help="Create a player and print its id.")
    create.add_argument("--name")
    create.set_defaults(handler=_create_player)

    list_players = commands.add_parser("list-players", parents=[common], help="List players.")
    list_players.set_defaults(handler=_list_players)

    delete = commands.add_parser("delete-player", parents=[common], help="Delete a player and its progress.")
    delete.add_argument("--player-id")
    delete.set_defaults(handler=_delete_player)

    stats = commands.add_parser("get-stats", parents=[common], help="Print a player's statistics.")
    stats.add_argument("--player-id")
    stats.set_defaults(handler=_get_stats)

    export = commands.add_parser("export-player", parents=[common], help="Export a player to a JSON file.")
    export.add_argument("--player-id")
    export.add_argument("--output")
    export.set_defaults(handler=_export_player)

    import_ = commands.add_parser("import-player", parents=[common], help="Import a player from a JSON file.")
    import_.add_argument("--input")
    import_.add_argument("--name")
    import_.set_defaults(handler=_import_player)

    return parser


def run(
    argv: list[str] | None = None,
    print_fn: PrintFn = print,
    error_fn: PrintFn = _print_error,
    environ: Mapping[str, str] | None = None,
) -> int:
    """Run one command and return the process exit status."""
    args = build_parser().parse_args(argv)
    config = resolve_config(args.config_dir, args.verbose, environ)
    configure_logging(config.log_level)
    handler: Handler = args.handler
    try:
        handler(_service(config), args, print_fn)
    except DecouvertesError as exc:
        logger.debug("Command %s failed", args.command, exc_info=True)
        error_fn(f"Error: {exc}")
        return exc.exit_code
    return 0


def _require(value: str | None, message: str) -> str:
    if value is None or not value.strip():
        raise ValidationError(message)
    return value


def _get_card(service: LeitnerService, args: argparse.Namespace, print_fn: PrintFn) -> None:
    card = service.next_card(args.player_id or None)
    if card is None:
        print_fn(json.dumps({"prompt": MASTERED_MESSAGE, "id": DONE_CARD_ID}))
        return
    print_fn(_compact_json(_card_to_dict(card)))


def _check_answer(service: LeitnerService, args: argparse.Namespace, print_fn: PrintFn) -> None:
    if not args.card_id or not args.answer:
        raise ValidationError("--id and --answer flags are required for check-answer")
    result = service.check_answer(args.card_id, args.answer, args.player_id or None)
    print_fn(_compact_json(result.to_dict()))


def _create_player(service: LeitnerService, args: argparse.Namespace, print_fn: PrintFn) -> None:
    name = _require(args.name, "--name is required for create-player")
    print_fn(service.create_player(name).id)


def _list_players(service: LeitnerService, args: argparse.Namespace, print_fn: PrintFn) -> None:
    players = service.list_players()
    if not players:
        print_fn(NO_PLAYERS_MESSAGE)
        return
    for player in players:
        print_fn(f"Name: {player.name}, ID: {player.id}")


def _delete_player(service: LeitnerService, args: argparse.Namespace, print_fn: PrintFn) -> None:
    player_id = _require(args.player_id, "--player-id is required for delete-player")
    player = service.delete_player(player_id)
    print_fn(f"Player '{player.name}' ({player.id}) deleted.")


def _get_stats(service: LeitnerService, args: argparse.Namespace, print_fn: PrintFn) -> None:
    player_id = _require(args.player_id, "--player-id is required for get-stats")
    for line in format_stats(service.player_stats(player_id)):
        print_fn(line)


def _export_player(service: LeitnerService, args: argparse.Namespace, print_fn: PrintFn) -> None:
    player_id = _require(args.player_id, "--player-id is required for export-player")
    output = _require(args.output, "--output is required for export-player")
    summary = service.export_player(player_id, output)
    print_fn(f"Exported player '{summary.player_name}' to {output}")
    print_fn(f"- card rows: {summary.card_rows}")
    print_fn(f"- history rows: {summary.history_rows}")


def _import_player(service: LeitnerService, args: argparse.Namespace, print_fn: PrintFn) -> None:
    path = _require(args.input, "--input is required for import-player")
    summary = service.import_player(path, args.name)
    print_fn(f"Imported player '{summary.player_name}' with ID {summary.player_id}")
    print_fn(f"- card rows: {summary.card_rows}")
    print_fn(f"- history rows: {summary.history_rows}")


def format_stats(stats: PlayerStats) -> list[str]:
    """Render the stats report; the editor scrapes these labels."""
    lines = [
        f"Stats for Player: {stats.player_name}",
        f"Total Cards Answered: {stats.total_answered}",
        f"Correct Answers: {stats.correct}",
        f"Incorrect Answers: {stats.incorrect}",
    ]
    if stats.answered_today is None or stats.longest_daily_streak is None:
        lines.append(NO_HISTORY_MESSAGE)
        return lines
    lines.append(f"Cards Answered Today: {stats.answered_today}")
    lines.append(f"Longest Daily Streak: {stats.longest_daily_streak} day(s)")
    return lines


def _card_to_dict(card: Card) -> dict[str, object]:
    return {
        "id": card.id,
        "language": card.language,
        "tags": list(card.tags),
        "prompt": card.prompt,
        "solution": card.solution,
    }


def _compact_json(payload: dict[str, object]) -> str:
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False)


def main_entry() -> None:
    """Console script entrypoint."""
    raise SystemExit(run())


if __name__ == "__main__":  # pragma: no cover
    main_entry()
