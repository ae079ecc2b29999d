"""
Per-variant fetching from the remote transform service.

A fetcher performs one logical round trip for a single (source key, variant)
pair and always settles: every failure path is returned as a
``VariantResult`` carrying a classified error, so the batch orchestrator can
aggregate outcomes without exception-based control flow.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
import asyncio
import logging
from typing import Any

import httpx

from ..config import FetchConfig
from ..core.errors import FetchError, NetworkError, UpstreamError
from ..core.types import PreviewPayload, VariantId, VariantResult
from ..utils.logging import get_logger, log_event, log_warning, redact_url, truncate_text
from .http import build_headers, error_from_exception, error_from_response, is_retryable


class VariantFetcher(ABC):
    """Fetch interface consumed by the batch orchestrator and retry controller."""

    @abstractmethod
    async def fetch(self, source_key: str, variant: VariantId) -> VariantResult:
        """Fetch one variant. Must return a settled result and never raise."""
        raise NotImplementedError


class TransformServiceFetcher(VariantFetcher):
    """Fetch variants from the transform service over HTTP.

    Each call posts ``{"sourceKey", "variantId"}`` to ``{api_url}/preview``.
    Network errors and 5xx responses are retried up to ``cfg.retries``
    times with linear backoff; 4xx and 429 responses are returned at once.
    """

    def __init__(
        self,
        api_url: str,
        cfg: FetchConfig,
        auth: tuple[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        logger: logging.Logger | None = None,
        backoff_seconds: float = 0.5,
    ):
        self._endpoint = f"{api_url.rstrip('/')}/preview"
        self._cfg = cfg
        self._auth = auth
        self._transport = transport
        self._logger = logger or get_logger("fetch")
        self._backoff_seconds = backoff_seconds

    def _client(self) -> httpx.AsyncClient:
        # Short connect timeout, long read timeout: transformation is slow.
        timeout = httpx.Timeout(
            connect=self._cfg.connect_timeout_seconds,
            read=self._cfg.timeout_seconds,
            write=10.0,
            pool=10.0,
        )
        return httpx.AsyncClient(
            timeout=timeout,
            trust_env=self._cfg.trust_env,
            transport=self._transport,
        )

    async def fetch(self, source_key: str, variant: VariantId) -> VariantResult:
        payload = {"sourceKey": source_key, "variantId": variant.value}
        headers = build_headers(user_agent=self._cfg.user_agent, auth=self._auth)
        last_error: FetchError = NetworkError("no attempt made")

        for attempt in range(self._cfg.retries + 1):
            try:
                async with self._client() as client:
                    resp = await client.post(self._endpoint, json=payload, headers=headers)
                status_error = error_from_response(resp)
                if status_error is None:
                    return VariantResult.success(variant, parse_preview_payload(resp))
                last_error = status_error
            except FetchError as exc:
                last_error = exc
            except httpx.HTTPError as exc:
                last_error = error_from_exception(exc)
            except Exception as exc:  # noqa: BLE001
                last_error = UpstreamError(f"{type(exc).__name__}: {exc}")

            if attempt >= self._cfg.retries or not is_retryable(last_error):
                break
            log_event(
                self._logger,
                "Variant fetch retry",
                event="variant_fetch_retry",
                source_key=redact_url(source_key),
                variant=variant.value,
                attempt=attempt + 1,
                error=str(last_error),
            )
            await asyncio.sleep(self._backoff_seconds * (attempt + 1))

        log_warning(
            self._logger,
            "Variant fetch failed",
            event="variant_fetch_failed",
            source_key=redact_url(source_key),
            variant=variant.value,
            error_type=type(last_error).__name__,
            error=truncate_text(str(last_error)),
        )
        return VariantResult.failure(variant, last_error)


def parse_preview_payload(resp: httpx.Response) -> PreviewPayload:
    """Build a PreviewPayload from a 2xx transform service response.

    Accepts both the camelCase field names and the older ``originalHtml`` /
    ``mdx`` / ``date`` names.

    Raises:
        UpstreamError: If the body is not JSON, reports an error, or has no
            transformed content
    """
    try:
        data = resp.json()
    except ValueError as exc:
        raise UpstreamError(f"Transform service returned invalid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise UpstreamError("Transform service returned a non-object body")
    if data.get("error"):
        raise UpstreamError(str(data["error"]))

    transformed = _first(data, "transformedContent", "mdx")
    if not transformed or not str(transformed).strip():
        raise UpstreamError("Transform service returned no transformed content")

    return PreviewPayload(
        title=str(_first(data, "title") or ""),
        author=_optional_str(_first(data, "author")),
        published_date=_optional_str(_first(data, "publishedDate", "date")),
        raw_content=str(_first(data, "rawContent", "originalHtml", "content") or ""),
        transformed_content=str(transformed),
        featured_image=_optional_str(_first(data, "featuredImage")),
    )


def _first(data: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        value = data.get(key)
        if value is not None:
            return value
    return None


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None
