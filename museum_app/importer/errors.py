"""
Exception taxonomy for the import pipeline.

Normalization ambiguities and enrichment failures are intentionally absent:
both are resolved locally (fallback rules, logged warnings) and never raised.
"""

from __future__ import annotations


class ImporterError(RuntimeError):
    """Base error for importer failures."""


class AdapterError(ImporterError):
    """Raised when an upstream source fetch fails (network, auth or rate limit)."""

    def __init__(self, message: str, *, provider: str | None = None, status_code: int | None = None):
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code


class RateLimitExceeded(AdapterError):
    """Raised when retries are exhausted while the upstream keeps rate limiting."""


class EntityConflict(ImporterError):
    """Raised when a uniqueness collision cannot be recovered locally."""


class ArtistCreationError(EntityConflict):
    """Artist creation gave up after exhausting disambiguated names."""

    def __init__(self, base_name: str, attempts: int):
        super().__init__(f"Could not create artist '{base_name}' after {attempts} name attempts.")
        self.base_name = base_name
        self.attempts = attempts


class ImportFailure(ImporterError):
    """Raised for unrecoverable errors inside the artwork upsert sequence."""


class PinningError(ImporterError):
    """Raised by the pinning client; callers treat it as best-effort."""


class MissingIdentifier(ValueError):
    """Raised when a record lacks the contract address or token id needed to import it."""

    def __init__(self, field_name: str, nft_uid: str | None = None):
        location = f" for {nft_uid}" if nft_uid else ""
        super().__init__(f"Record is missing required identifier '{field_name}'{location}.")
        self.field_name = field_name
        self.nft_uid = nft_uid


class UnsupportedSource(ValueError):
    """Raised when a raw record is tagged with a source the normalizer does not know."""


__all__ = [
    "AdapterError",
    "ArtistCreationError",
    "EntityConflict",
    "ImportFailure",
    "ImporterError",
    "MissingIdentifier",
    "PinningError",
    "RateLimitExceeded",
    "UnsupportedSource",
]
