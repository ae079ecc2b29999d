"""Readiness gate between the active selection and the packager."""

from __future__ import annotations

import logging

from ..core.cache import PreviewCache
from ..core.errors import NotReady, PreviewError
from ..core.types import ActiveSelection
from ..utils.logging import get_logger, log_event, redact_url
from .packager import ExportResult, PackageRequest, Packager


class ExportTrigger:
    """Forwards the active variant's cached content to the packager."""

    def __init__(
        self,
        cache: PreviewCache,
        packager: Packager | None,
        logger: logging.Logger | None = None,
    ):
        self._cache = cache
        self._packager = packager
        self._logger = logger or get_logger("export")

    def build_request(self, selection: ActiveSelection | None) -> PackageRequest:
        """Read the active variant's payload from the cache.

        Raises:
            NotReady: If there is no selection, it points at a superseded key,
                or its variant is not loaded
        """
        if selection is None:
            raise NotReady("No active variant to export")
        if selection.source_key != self._cache.current_key:
            raise NotReady(f"Active selection refers to a superseded source: {selection.source_key}")
        state = self._cache.state(selection.source_key, selection.variant)
        if state is None or state.payload is None:
            raise NotReady(f"Variant {selection.variant.value} is not loaded")
        return PackageRequest(
            source_key=selection.source_key,
            variant=selection.variant,
            transformed_content=state.payload.transformed_content,
        )

    async def export(self, selection: ActiveSelection | None) -> ExportResult:
        """Package the selected variant and return the packager's result unchanged.

        Raises:
            NotReady: If the selection has no loaded payload; nothing is sent
            PreviewError: If no packager is configured
        """
        request = self.build_request(selection)
        if self._packager is None:
            raise PreviewError(
                "Packager is not configured. Set PACKAGER_API_URL environment "
                "variable or configure packager.api_url in config."
            )
        log_event(
            self._logger,
            "Export start",
            event="export_start",
            source_key=redact_url(request.source_key),
            variant=request.variant.value,
        )
        return await self._packager.package(request)
