"""Runtime configuration resolved from CLI options and environment."""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

APP_NAME = "decouvertes"
CARDS_FILENAME = "cards.json"
PROGRESS_FILENAME = "progress.json"
CONFIG_DIR_ENV = "DECOUVERTES_CONFIG_DIR"
LOG_LEVEL_ENV = "DECOUVERTES_LOG_LEVEL"
DEFAULT_LOG_LEVEL = logging.WARNING


@dataclass(frozen=True)
class AppConfig:
    """Locations of the data files and logging verbosity."""

    config_dir: Path
    log_level: int = DEFAULT_LOG_LEVEL

    @property
    def cards_path(self) -> Path:
        return self.config_dir / CARDS_FILENAME

    @property
    def progress_path(self) -> Path:
        return self.config_dir / PROGRESS_FILENAME


def resolve_config(
    config_dir: str | None = None,
    verbose: bool = False,
    environ: Mapping[str, str] | None = None,
) -> AppConfig:
    """Build config; explicit options win over environment, environment over defaults."""
    env = os.environ if environ is None else environ
    return AppConfig(config_dir=_resolve_config_dir(config_dir, env), log_level=_resolve_log_level(verbose, env))


def _resolve_config_dir(config_dir: str | None, env: Mapping[str, str]) -> Path:
    if config_dir:
        return Path(config_dir).expanduser()
    from_env = env.get(CONFIG_DIR_ENV, "").strip()
    if from_env:
        return Path(from_env).expanduser()
    return Path.home() / ".config" / APP_NAME


def _resolve_log_level(verbose: bool, env: Mapping[str, str]) -> int:
    if verbose:
        return logging.DEBUG
    name = env.get(LOG_LEVEL_ENV, "").strip().upper()
    if not name:
        return DEFAULT_LOG_LEVEL
    level = logging.getLevelName(name)
    # getLevelName returns "Level X" for unknown names.
    return level if isinstance(level, int) else DEFAULT_LOG_LEVEL
