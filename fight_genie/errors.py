"""Error taxonomy shared by the scraper, repository and lifecycle operations.

Lookups that find nothing return ``None`` or an empty list; they never raise.
"""

from __future__ import annotations


class FightGenieError(Exception):
    """Base class for every failure surfaced to a command caller."""


class TransientFetchError(FightGenieError):
    """Network failure or timeout talking to the scrape source or an AI provider.

    Retryable by the caller with backoff.
    """

    def __init__(self, message: str, url: str | None = None, status_code: int | None = None) -> None:
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class ParseMismatchError(FightGenieError):
    """The scraped page structure was not recognized (zero fights extracted)."""

    def __init__(self, message: str, url: str | None = None) -> None:
        super().__init__(message)
        self.url = url


class DataIntegrityError(FightGenieError):
    """A multi-statement write could not be applied as a whole and was rolled back."""


class ExternalProviderError(FightGenieError):
    """An AI provider answered with a failure status or an unusable payload."""

    def __init__(self, provider: str, message: str, status_code: int | None = None) -> None:
        super().__init__(f"{provider}: {message}")
        self.provider = provider
        self.status_code = status_code


class AccessDeniedError(FightGenieError):
    """The calling server may not run this command (admin mode restriction)."""
