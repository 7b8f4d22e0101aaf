"""Error taxonomy surfaced by the CLI dispatcher."""

from __future__ import annotations


class DecouvertesError(Exception):
    """Base class for fatal, per-invocation failures."""

    exit_code = 1


class ConfigurationError(DecouvertesError):
    """Config directory or card catalog is missing."""

    exit_code = 3


class NotFoundError(DecouvertesError):
    """Unknown player id or card id."""

    exit_code = 4


class MalformedDataError(DecouvertesError):
    """Catalog, progress, or import file does not have the expected structure."""

    exit_code = 5


class ValidationError(DecouvertesError):
    """Missing or invalid command argument."""

    exit_code = 6
