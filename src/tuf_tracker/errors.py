from __future__ import annotations

"""errors.py — exception types shared across the tracker."""

from enum import Enum
from typing import Optional


class FetchErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    NETWORK_FAILURE = "network_failure"


class FetchError(Exception):
    """A profile page could not be retrieved.

    Raised by the fetcher only; the scrape pipeline turns it into a fallback.
    """

    def __init__(
        self,
        kind: FetchErrorKind,
        message: str = "",
        *,
        status_code: Optional[int] = None,
        attempts: int = 0,
    ) -> None:
        self.kind = FetchErrorKind(kind)
        self.status_code = status_code
        self.attempts = int(attempts)
        super().__init__(message or self.kind.value)


class InvalidIdentifierError(ValueError):
    """Empty or whitespace-only profile identifier."""


class ConfigError(ValueError):
    pass


class BrowserUnavailableError(RuntimeError):
    """Browser transport requested but Playwright is not importable."""


class CliError(Exception):
    def __init__(self, message: str, *, exit_code: int = 2) -> None:
        super().__init__(message)
        self.exit_code = int(exit_code)


def validate_identifier(identifier: object) -> str:
    if not isinstance(identifier, str) or not identifier.strip():
        raise InvalidIdentifierError(f"profile identifier must be a non-empty string, got {identifier!r}")
    return identifier.strip()
