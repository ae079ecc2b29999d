"""Domain-specific exceptions.

Per-variant fetch failures are carried as values inside ``VariantResult``
and are only raised by callers that choose to; batch-level and export-level
failures are raised as the terminal outcome of their operation.
"""

from __future__ import annotations

from typing import Mapping, TYPE_CHECKING

if TYPE_CHECKING:
    from .types import VariantId


class PreviewError(Exception):
    """Base class for all variant-preview errors."""


class ValidationError(PreviewError):
    """Source input was empty or could not be parsed as a URL."""


class FetchError(PreviewError):
    """A single request to a remote collaborator failed."""

    retryable = True


class NetworkError(FetchError):
    """Transport-level failure: DNS, connect, reset, or timeout."""


class HttpError(FetchError):
    """The remote service answered with a non-success status."""

    def __init__(self, status: int, message: str | None = None):
        self.status = status
        self.message = message
        detail = f"HTTP {status}"
        if message:
            detail = f"{detail}: {message}"
        super().__init__(detail)

    @property
    def is_client_error(self) -> bool:
        return 400 <= self.status < 500

    @property
    def is_server_error(self) -> bool:
        return self.status >= 500


class RateLimited(HttpError):
    """The remote service answered 429; the caller must wait before trying again."""

    retryable = False

    def __init__(self, message: str | None = None, retry_after: float | None = None):
        self.retry_after = retry_after
        super().__init__(429, message or "rate limited")


class UpstreamError(FetchError):
    """The remote service answered but the body reports or implies a failure."""


class TotalBatchFailure(PreviewError):
    """Every variant of a batch failed; there is nothing to preview."""

    def __init__(self, source_key: str, failures: Mapping["VariantId", FetchError]):
        self.source_key = source_key
        self.failures = dict(failures)
        names = ", ".join(f"{variant.value} ({error})" for variant, error in self.failures.items())
        super().__init__(f"All variants failed for {source_key}: {names}")


class NotReady(PreviewError):
    """An operation needed a loaded active variant and there is none."""


class RetryNotAllowed(PreviewError):
    """A retry was requested for a variant that is not failed for the current source."""
