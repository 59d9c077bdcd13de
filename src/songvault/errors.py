"""Error taxonomy for SongVault.

Every error raised by the catalog service carries the HTTP status code the
API layer answers with.  ``ConfigError`` is only raised at startup.
"""

from __future__ import annotations


class SongVaultError(Exception):
    """Base class for errors surfaced to API clients."""

    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(SongVaultError):
    """The request was well-formed HTTP but the payload is unacceptable."""

    status_code = 400


class NotFoundError(SongVaultError):
    """No song record matches the requested id."""

    status_code = 404


class ConflictError(SongVaultError):
    """The catalog already holds everything the request would add."""

    status_code = 409


class DependencyError(SongVaultError):
    """The object store or the catalog store failed."""

    status_code = 500


class ConfigError(Exception):
    """Raised when required configuration is missing or invalid."""
