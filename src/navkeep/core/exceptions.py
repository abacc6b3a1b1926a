"""Custom exception hierarchy for navkeep."""

from typing import Any


class NavkeepError(Exception):
    """Base exception for all navkeep errors.

    All exceptions carry an optional `context` dict for structured error
    metadata that can be logged or serialized without parsing the message.
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message)
        self.context = context or {}


class ConfigError(NavkeepError):
    """Invalid or missing configuration.

    Raised by load_config() during startup. Should be treated as fatal.

    Context keys:
        field: str — the config field that failed validation
        value: Any — the invalid value (redacted for secrets)
    """


class IngestionError(NavkeepError):
    """Failed to obtain observations for one instrument from a source.

    Policy: record the failure for that instrument and continue the run.

    Context keys:
        isin: str — the instrument that failed
        source: str — the source being fetched
        url: str — the URL that was being fetched
    """


class NetworkError(IngestionError):
    """Source unreachable, timed out, or answered with a non-2xx status.

    Policy: same as IngestionError. No automatic retry; the next scheduled
    run picks the instrument up again.

    Context keys:
        status_code: int | None — HTTP status code if a response arrived
    """


class ParsingError(IngestionError):
    """Source answered but nothing usable could be extracted.

    Policy: same as IngestionError.

    Context keys:
        reason: str — why extraction failed
    """


class StorageError(NavkeepError):
    """A store write could not complete.

    Policy: raise immediately. Reads never raise this; they fail open to
    empty or default values.

    Context keys:
        operation: str — "write", "delete", "initialize", etc.
        artifact: str — the artifact involved (record, index, health, alert)
    """


class TotalOutageError(NavkeepError):
    """Every instrument failed during one source run.

    Policy: fatal at process level so the scheduler or notifier is told.
    Raised only after the run's health snapshot has been persisted.

    Context keys:
        source: str — the source whose run failed
        total: int — number of instruments attempted
        errors: dict[str, str | None] — per-ISIN error messages
    """


class UnknownSourceError(ValueError):
    """A source tag outside the priority table was seen in strict mode."""

    def __init__(self, tag: str):
        super().__init__(f"Unknown price source: {tag!r}")
        self.tag = tag
