"""
Batch orchestration: one fan-out-and-join fetch of every variant.

A batch for a new source key:
1. Resets the cache to the new key
2. Issues a new generation and marks every variant pending
3. Fetches every variant concurrently (no fail-fast)
4. Waits for every fetch to settle
5. Commits all outcomes at once, unless a newer batch has started since
6. Picks the initial active variant

A batch that loaded some variants is a success; one that loaded none raises
``TotalBatchFailure``. A superseded batch returns an outcome with
``committed=False`` and leaves the cache untouched.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
import logging

from .core.cache import PreviewCache
from .core.errors import FetchError, TotalBatchFailure, UpstreamError
from .core.types import VariantId, VariantResult
from .fetch.fetcher import VariantFetcher
from .utils.logging import get_logger, log_event, redact_url


@dataclass
class BatchOutcome:
    """Result of one batch run.

    Attributes:
        source_key: Source key the batch was run for
        generation: Generation issued to the batch
        committed: False if the batch was superseded and its results dropped
        loaded: Variants that loaded, in priority order
        failed: Error per variant that failed, in priority order
        initial_variant: First active variant, None if nothing loaded or not committed
    """

    source_key: str
    generation: int
    committed: bool
    loaded: tuple[VariantId, ...] = ()
    failed: dict[VariantId, FetchError] = field(default_factory=dict)
    initial_variant: VariantId | None = None

    @property
    def partial(self) -> bool:
        return bool(self.loaded) and bool(self.failed)

    @property
    def all_failed(self) -> bool:
        return not self.loaded


class BatchOrchestrator:
    """Runs batches against a PreviewCache using a VariantFetcher."""

    def __init__(
        self,
        cache: PreviewCache,
        fetcher: VariantFetcher,
        logger: logging.Logger | None = None,
    ):
        self._cache = cache
        self._fetcher = fetcher
        self._logger = logger or get_logger("batch")

    async def run(self, source_key: str, preferred: VariantId | None = None) -> BatchOutcome:
        """Fetch every variant of ``source_key`` and commit the outcome.

        Args:
            source_key: Normalized source key
            preferred: Variant to make active if it loads

        Returns:
            The batch outcome; ``committed`` is False if a newer batch won.

        Raises:
            TotalBatchFailure: If the batch committed and no variant loaded
        """
        self._cache.reset(source_key)
        generation = self._cache.begin_batch(source_key)
        variants = self._cache.variants

        log_event(
            self._logger,
            "Batch start",
            event="batch_start",
            source_key=redact_url(source_key),
            generation=generation,
            variants=[v.value for v in variants],
        )

        # gather() preserves input order, so outcomes line up with variants.
        tasks = [asyncio.create_task(self._fetcher.fetch(source_key, v)) for v in variants]
        settled = await asyncio.gather(*tasks, return_exceptions=True)

        results: dict[VariantId, VariantResult] = {}
        for variant, item in zip(variants, settled):
            results[variant] = _settle(variant, item)

        loaded = tuple(v for v in variants if results[v].ok)
        failed = {v: results[v].error for v in variants if results[v].error is not None}

        if not self._cache.commit_batch(source_key, generation, results):
            log_event(
                self._logger,
                "Stale batch dropped",
                event="batch_stale_dropped",
                source_key=redact_url(source_key),
                generation=generation,
                current_generation=self._cache.generation,
            )
            return BatchOutcome(source_key=source_key, generation=generation, committed=False)

        initial = preferred if preferred in loaded else (loaded[0] if loaded else None)
        log_event(
            self._logger,
            "Batch committed",
            event="batch_commit",
            source_key=redact_url(source_key),
            generation=generation,
            loaded=[v.value for v in loaded],
            failed={v.value: str(e) for v, e in failed.items()},
            initial_variant=initial.value if initial else None,
        )

        outcome = BatchOutcome(
            source_key=source_key,
            generation=generation,
            committed=True,
            loaded=loaded,
            failed=failed,
            initial_variant=initial,
        )
        if outcome.all_failed:
            raise TotalBatchFailure(source_key, failed)
        return outcome


def _settle(variant: VariantId, item: VariantResult | BaseException) -> VariantResult:
    """Turn whatever a fetch task produced into a VariantResult."""
    if isinstance(item, VariantResult):
        return item
    if isinstance(item, FetchError):
        return VariantResult.failure(variant, item)
    return VariantResult.failure(variant, UpstreamError(f"{type(item).__name__}: {item}"))
