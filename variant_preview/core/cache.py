"""
In-memory preview cache.

The cache holds variant states for exactly one source key at a time. Only
the batch orchestrator and the retry controller write to it, and every
write goes through a staleness check: a commit whose source key (or, for
batches, generation) is no longer current is dropped without any effect.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Iterable, Mapping

from .types import CacheEntry, VariantId, VariantResult, VariantState, all_variants


class PreviewCache:
    """Authoritative store of variant states for the current source key.

    Attributes:
        variants: The variant ids tracked for every source key, in priority order
        current_key: Source key whose states are held, or None before the first reset
        generation: Latest batch generation issued (monotonic across keys)
    """

    def __init__(self, variants: Iterable[VariantId] | None = None):
        self._variants = tuple(variants) if variants is not None else all_variants()
        if not self._variants:
            raise ValueError("PreviewCache needs at least one variant")
        self._source_key: str | None = None
        self._generation = 0
        self._states: dict[VariantId, VariantState] = {}

    @property
    def variants(self) -> tuple[VariantId, ...]:
        return self._variants

    @property
    def current_key(self) -> str | None:
        return self._source_key

    @property
    def generation(self) -> int:
        return self._generation

    def is_current(self, key: str, generation: int | None = None) -> bool:
        """Return True if ``key`` (and ``generation``, when given) are still current."""
        if self._source_key is None or key != self._source_key:
            return False
        return generation is None or generation == self._generation

    def reset(self, key: str) -> None:
        """Make ``key`` current and set every variant to unrequested."""
        self._source_key = key
        self._states = {variant: VariantState.unrequested() for variant in self._variants}

    def begin_batch(self, key: str) -> int:
        """Issue a new generation for ``key`` and mark every variant pending.

        Returns:
            The generation the batch must present when it commits.
        """
        if key != self._source_key:
            raise RuntimeError(f"begin_batch for {key!r} but current key is {self._source_key!r}")
        self._generation += 1
        self._states = {variant: VariantState.pending() for variant in self._variants}
        return self._generation

    def commit_batch(
        self,
        key: str,
        generation: int,
        results: Mapping[VariantId, VariantResult],
    ) -> bool:
        """Apply every result of one batch at once.

        Returns:
            True if applied, False if the batch was superseded and nothing changed.
        """
        if not self.is_current(key, generation):
            return False
        states = dict(self._states)
        for variant in self._variants:
            result = results.get(variant)
            if result is not None:
                states[variant] = VariantState.from_result(result)
        self._states = states
        return True

    def begin_retry(self, key: str, variant: VariantId) -> bool:
        """Move a failed variant of the current key back to pending.

        Returns:
            False (and changes nothing) unless ``variant`` is failed for ``key``.
        """
        if not self.is_current(key):
            return False
        if not self._states.get(variant, VariantState.unrequested()).is_failed:
            return False
        self._states = {**self._states, variant: VariantState.pending()}
        return True

    def commit_single(
        self,
        key: str,
        variant: VariantId,
        result: VariantResult,
        generation: int | None = None,
    ) -> bool:
        """Apply the result of a single-variant retry.

        The write is dropped when ``key`` is no longer current, when
        ``generation`` is given and a newer batch has started since, or when
        the variant is no longer pending.
        """
        if result.variant is not variant:
            raise ValueError(f"Result for {result.variant.value} committed as {variant.value}")
        if not self.is_current(key, generation):
            return False
        if not self._states.get(variant, VariantState.unrequested()).is_pending:
            return False
        self._states = {**self._states, variant: VariantState.from_result(result)}
        return True

    def read(self, key: str) -> CacheEntry | None:
        """Return a snapshot for ``key``, or None if ``key`` is not current."""
        if not self.is_current(key):
            return None
        return CacheEntry(
            source_key=key,
            generation=self._generation,
            states=MappingProxyType(dict(self._states)),
        )

    def state(self, key: str, variant: VariantId) -> VariantState | None:
        if not self.is_current(key):
            return None
        return self._states.get(variant, VariantState.unrequested())
