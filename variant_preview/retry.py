"""
Single-variant retry of a previously failed fetch.

A retry only touches the one variant it was started for. Its commit is
dropped if the source key changed, or a new batch started, while the
request was in flight.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging

from .core.cache import PreviewCache
from .core.errors import FetchError, RetryNotAllowed, UpstreamError
from .core.types import VariantId, VariantResult
from .fetch.fetcher import VariantFetcher
from .utils.logging import get_logger, log_event, redact_url


@dataclass
class RetryOutcome:
    source_key: str
    variant: VariantId
    result: VariantResult
    committed: bool

    @property
    def loaded(self) -> bool:
        return self.committed and self.result.ok


class RetryController:
    """Re-fetches failed variants of the current source key."""

    def __init__(
        self,
        cache: PreviewCache,
        fetcher: VariantFetcher,
        logger: logging.Logger | None = None,
    ):
        self._cache = cache
        self._fetcher = fetcher
        self._logger = logger or get_logger("retry")

    async def retry(self, source_key: str, variant: VariantId) -> RetryOutcome:
        """Retry ``variant`` for ``source_key``.

        Raises:
            RetryNotAllowed: If ``variant`` is not failed for the current key
        """
        # Captured before marking pending; a later batch bumps it.
        generation = self._cache.generation
        if not self._cache.begin_retry(source_key, variant):
            state = self._cache.state(source_key, variant)
            status = state.status.value if state else "stale source"
            raise RetryNotAllowed(f"Cannot retry {variant.value} for {source_key}: {status}")

        log_event(
            self._logger,
            "Retry start",
            event="retry_start",
            source_key=redact_url(source_key),
            variant=variant.value,
            generation=generation,
        )
        try:
            result = await self._fetcher.fetch(source_key, variant)
        except FetchError as exc:
            result = VariantResult.failure(variant, exc)
        except Exception as exc:  # noqa: BLE001
            result = VariantResult.failure(variant, UpstreamError(f"{type(exc).__name__}: {exc}"))

        committed = self._cache.commit_single(source_key, variant, result, generation=generation)
        log_event(
            self._logger,
            "Retry committed" if committed else "Stale retry dropped",
            event="retry_commit" if committed else "retry_stale_dropped",
            source_key=redact_url(source_key),
            variant=variant.value,
            ok=result.ok,
            error=str(result.error) if result.error else None,
        )
        return RetryOutcome(source_key=source_key, variant=variant, result=result, committed=committed)
