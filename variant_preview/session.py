"""
Preview session: the owned store behind the preview UI and CLI.

A session is constructed once (see ``build_session``) and passed to callers.
It tracks which phase the preview is in and which variant is active:

- idle: no source submitted yet
- awaiting_batch: a batch is in flight
- ready: at least one variant loaded; an active variant is set
- all_failed: the batch settled with nothing loaded

Submitting a new source from any phase restarts at awaiting_batch and drops
the previous selection. Selecting a loaded variant is a synchronous cache
read; selecting a failed one starts a retry and keeps the current variant
on screen until the retry settles.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum
import logging

import httpx

from .batch import BatchOrchestrator
from .config import (
    AppConfig,
    get_packager_api_auth,
    get_packager_api_url,
    get_transform_api_auth,
    get_transform_api_url,
)
from .core.cache import PreviewCache
from .core.errors import FetchError, NotReady, PreviewError, RetryNotAllowed, TotalBatchFailure
from .core.source_key import normalize_source_key
from .core.types import ActiveSelection, DisplayMode, PreviewPayload, VariantId, parse_variant
from .export.packager import ExportResult, HttpPackager, Packager
from .export.trigger import ExportTrigger
from .fetch.fetcher import TransformServiceFetcher, VariantFetcher
from .retry import RetryController, RetryOutcome
from .utils.logging import get_logger, log_event, log_warning, redact_url


class SessionPhase(str, Enum):
    IDLE = "idle"
    AWAITING_BATCH = "awaiting_batch"
    READY = "ready"
    ALL_FAILED = "all_failed"


@dataclass(frozen=True)
class SessionSnapshot:
    """Read-only view of a session at one point in time.

    Attributes:
        phase: Current session phase
        source_key: Current source key, None before the first submit
        active: Active selection, None unless ready
        loaded: Loaded variants in priority order
        failed: Failed variants in priority order
        pending: Variants with a fetch in flight
        variant_errors: Last error per failed variant
        error: Batch-level error when all variants failed
    """

    phase: SessionPhase
    source_key: str | None
    active: ActiveSelection | None
    loaded: tuple[VariantId, ...] = ()
    failed: tuple[VariantId, ...] = ()
    pending: tuple[VariantId, ...] = ()
    variant_errors: dict[VariantId, FetchError] = field(default_factory=dict)
    error: PreviewError | None = None


class PreviewSession:
    def __init__(
        self,
        cache: PreviewCache,
        orchestrator: BatchOrchestrator,
        retry_controller: RetryController,
        export_trigger: ExportTrigger,
        default_variant: VariantId | None = None,
        display_mode: DisplayMode = DisplayMode.TRANSFORMED,
        default_scheme: str = "https",
        logger: logging.Logger | None = None,
    ):
        self._cache = cache
        self._orchestrator = orchestrator
        self._retry = retry_controller
        self._export = export_trigger
        self._default_variant = default_variant
        self._mode = display_mode
        self._default_scheme = default_scheme
        self._logger = logger or get_logger("session")

        self._phase = SessionPhase.IDLE
        self._active: ActiveSelection | None = None
        self._requested: VariantId | None = None
        self._variant_errors: dict[VariantId, FetchError] = {}
        self._error: PreviewError | None = None
        self._submission = 0
        self._retry_tasks: dict[VariantId, asyncio.Task] = {}
        # Every retry task ever started, until it finishes.
        self._tasks: set[asyncio.Task] = set()

    @property
    def phase(self) -> SessionPhase:
        return self._phase

    @property
    def active(self) -> ActiveSelection | None:
        return self._active

    @property
    def display_mode(self) -> DisplayMode:
        return self._mode

    @property
    def source_key(self) -> str | None:
        return self._cache.current_key

    @property
    def error(self) -> PreviewError | None:
        return self._error

    def variant_error(self, variant: VariantId) -> FetchError | None:
        return self._variant_errors.get(variant)

    async def submit_source(self, raw: str, preferred: VariantId | None = None) -> SessionSnapshot:
        """Normalize ``raw``, run a batch for it, and settle the session phase.

        Raises:
            ValidationError: If ``raw`` is not a usable URL; the session is unchanged
        """
        key = normalize_source_key(raw, self._default_scheme)

        self._submission += 1
        submission = self._submission
        self._phase = SessionPhase.AWAITING_BATCH
        self._active = None
        self._requested = None
        self._variant_errors = {}
        self._error = None
        # In-flight retries belong to the previous source; their commits are dropped.
        # They stay in _tasks until they finish.
        self._retry_tasks = {}

        log_event(
            self._logger,
            "Source submitted",
            event="source_submitted",
            source_key=redact_url(key),
            submission=submission,
        )

        try:
            outcome = await self._orchestrator.run(key, preferred or self._default_variant)
        except TotalBatchFailure as exc:
            if submission == self._submission:
                self._phase = SessionPhase.ALL_FAILED
                self._error = exc
                self._variant_errors = dict(exc.failures)
                log_warning(
                    self._logger,
                    "All variants failed",
                    event="batch_all_failed",
                    source_key=redact_url(key),
                )
            return self.snapshot()

        if submission != self._submission or not outcome.committed:
            return self.snapshot()

        self._variant_errors = dict(outcome.failed)
        if outcome.initial_variant is not None:
            self._active = ActiveSelection(key, outcome.initial_variant, self._mode)
            self._requested = outcome.initial_variant
        self._phase = SessionPhase.READY
        return self.snapshot()

    def select_variant(self, variant: VariantId) -> asyncio.Task | None:
        """Make ``variant`` active.

        A loaded variant becomes active immediately and None is returned. A
        failed variant is retried; the returned task resolves to the
        ``RetryOutcome`` and switches the active variant on success if it is
        still the most recently requested one. A variant whose retry is
        already in flight (from an earlier selection or from
        ``retry_failed``) returns that same task. Must be called from a
        running event loop when the variant is failed.

        Raises:
            NotReady: If the session is not ready or the variant has not been requested
        """
        if self._phase is not SessionPhase.READY or self._active is None:
            raise NotReady(f"Cannot select a variant while {self._phase.value}")

        key = self._active.source_key
        self._requested = variant

        in_flight = self._retry_tasks.get(variant)
        if in_flight is not None:
            return in_flight

        state = self._cache.state(key, variant)
        if state is None:
            raise NotReady(f"Active selection refers to a superseded source: {key}")
        if state.is_loaded:
            self._active = ActiveSelection(key, variant, self._mode)
            return None
        if state.is_failed:
            return self._start_retry(key, variant)
        raise NotReady(f"Variant {variant.value} is {state.status.value}")

    async def retry_failed(self) -> list[RetryOutcome]:
        """Retry every failed variant concurrently.

        The active variant only changes if one of the retried variants is
        selected while its retry is in flight.
        """
        if self._phase is not SessionPhase.READY or self._active is None:
            raise NotReady(f"Cannot retry while {self._phase.value}")
        key = self._active.source_key
        entry = self._cache.read(key)
        if entry is None:
            return []
        tasks = [self._start_retry(key, v) for v in entry.failed if v not in self._retry_tasks]
        outcomes = await asyncio.gather(*tasks)
        return [outcome for outcome in outcomes if outcome is not None]

    async def wait_for_retries(self) -> None:
        """Wait until every retry task started by this session has finished."""
        while self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    def _start_retry(self, key: str, variant: VariantId) -> asyncio.Task:
        task = asyncio.create_task(self._retry_and_apply(key, variant))
        self._retry_tasks[variant] = task
        self._tasks.add(task)
        task.add_done_callback(lambda done, v=variant: self._retry_done(v, done))
        return task

    async def _retry_and_apply(self, key: str, variant: VariantId) -> RetryOutcome | None:
        try:
            outcome = await self._retry.retry(key, variant)
        except RetryNotAllowed as exc:
            log_warning(self._logger, "Retry skipped", event="retry_skipped", variant=variant.value, reason=str(exc))
            return None

        if not outcome.committed or key != self._cache.current_key:
            return outcome
        if outcome.result.ok:
            self._variant_errors.pop(variant, None)
            if self._requested is variant and self._phase is SessionPhase.READY:
                self._active = ActiveSelection(key, variant, self._mode)
        elif outcome.result.error is not None:
            self._variant_errors[variant] = outcome.result.error
            # The request is settled; a later retry_failed must not switch to it.
            if self._requested is variant and self._active is not None:
                self._requested = self._active.variant
        return outcome

    def _retry_done(self, variant: VariantId, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if self._retry_tasks.get(variant) is task:
            del self._retry_tasks[variant]
        if not task.cancelled() and task.exception() is not None:
            log_warning(
                self._logger,
                "Retry task crashed",
                event="retry_crashed",
                variant=variant.value,
                error=repr(task.exception()),
            )

    def set_display_mode(self, mode: DisplayMode) -> None:
        self._mode = mode
        if self._active is not None:
            self._active = ActiveSelection(self._active.source_key, self._active.variant, mode)

    def toggle_display_mode(self) -> DisplayMode:
        self.set_display_mode(self._mode.toggled())
        return self._mode

    def active_payload(self) -> PreviewPayload:
        """Payload of the active variant.

        Raises:
            NotReady: If there is no loaded active variant
        """
        if self._active is None:
            raise NotReady("No active variant")
        state = self._cache.state(self._active.source_key, self._active.variant)
        if state is None or state.payload is None:
            raise NotReady(f"Variant {self._active.variant.value} is not loaded")
        return state.payload

    def visible_content(self) -> str:
        """Raw or transformed content of the active variant, per display mode."""
        payload = self.active_payload()
        if self._mode is DisplayMode.RAW:
            return payload.raw_content
        return payload.transformed_content

    async def export_active(self) -> ExportResult:
        """Export the active variant.

        Raises:
            NotReady: If there is no loaded active variant; no request is made
        """
        return await self._export.export(self._active)

    def snapshot(self) -> SessionSnapshot:
        key = self._cache.current_key
        entry = self._cache.read(key) if key is not None else None
        return SessionSnapshot(
            phase=self._phase,
            source_key=key,
            active=self._active,
            loaded=entry.loaded if entry else (),
            failed=entry.failed if entry else (),
            pending=entry.pending if entry else (),
            variant_errors=dict(self._variant_errors),
            error=self._error,
        )


def build_session(
    cfg: AppConfig,
    fetcher: VariantFetcher | None = None,
    packager: Packager | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
    logger: logging.Logger | None = None,
) -> PreviewSession:
    """Wire a PreviewSession from configuration.

    ``fetcher`` and ``packager`` default to the HTTP clients configured in
    ``cfg``; ``transport`` is handed to both when they are built here. Without
    a packager URL the session can preview but ``export_active`` fails.

    Raises:
        ValueError: If no transform service URL is configured and no fetcher is given
    """
    logger = logger or get_logger("session")

    if fetcher is None:
        api_url = get_transform_api_url(cfg.transform)
        if not api_url:
            raise ValueError(
                "Transform service URL is required. Set TRANSFORM_API_URL environment "
                "variable or configure transform.api_url in config."
            )
        fetcher = TransformServiceFetcher(
            api_url,
            cfg.fetch,
            auth=get_transform_api_auth(cfg.transform),
            transport=transport,
        )

    packager_url = get_packager_api_url(cfg.packager)
    if packager is None and packager_url:
        packager = HttpPackager(
            packager_url,
            cfg.packager,
            auth=get_packager_api_auth(cfg.packager),
            transport=transport,
        )

    default_variant = parse_variant(cfg.preview.default_variant) if cfg.preview.default_variant else None
    cache = PreviewCache()
    return PreviewSession(
        cache=cache,
        orchestrator=BatchOrchestrator(cache, fetcher),
        retry_controller=RetryController(cache, fetcher),
        export_trigger=ExportTrigger(cache, packager),
        default_variant=default_variant,
        display_mode=DisplayMode(cfg.preview.display_mode.lower()),
        default_scheme=cfg.preview.default_scheme,
        logger=logger,
    )
