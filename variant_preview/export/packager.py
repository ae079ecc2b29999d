"""
Client for the remote packager that turns a variant into a downloadable bundle.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
import io
import logging
import re
from urllib.parse import unquote, urlsplit

import httpx

from ..config import PackagerConfig
from ..core.errors import FetchError, UpstreamError
from ..core.types import VariantId
from ..fetch.http import build_headers, error_from_exception, error_from_response
from ..utils.logging import get_logger, log_event, log_warning, redact_url


_FILENAME_RE = re.compile(
    r"filename\*\s*=\s*(?:UTF-8|utf-8)''(?P<ext>[^;]+)|filename\s*=\s*\"?(?P<plain>[^\";]+)\"?"
)


@dataclass(frozen=True)
class PackageRequest:
    source_key: str
    variant: VariantId
    transformed_content: str


@dataclass(frozen=True)
class ExportBundle:
    """Binary bundle returned by the packager.

    Attributes:
        filename: Suggested filename for saving the bundle
        media_type: Content type reported by the packager
        content: Bundle bytes
    """

    filename: str
    media_type: str
    content: bytes

    def open(self) -> io.BytesIO:
        return io.BytesIO(self.content)

    @property
    def size(self) -> int:
        return len(self.content)


@dataclass(frozen=True)
class ExportResult:
    """Settled result of an export: bundle on success or error on failure, never both."""

    request: PackageRequest
    bundle: ExportBundle | None = None
    error: FetchError | None = None

    @property
    def ok(self) -> bool:
        return self.bundle is not None


class Packager(ABC):
    @abstractmethod
    async def package(self, request: PackageRequest) -> ExportResult:
        """Package one variant. Must return a settled result and never raise."""
        raise NotImplementedError


class HttpPackager(Packager):
    """Posts ``{"sourceKey", "variantId", "transformedContent"}`` to ``{api_url}/export``."""

    def __init__(
        self,
        api_url: str,
        cfg: PackagerConfig,
        auth: tuple[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        logger: logging.Logger | None = None,
    ):
        self._endpoint = f"{api_url.rstrip('/')}/export"
        self._cfg = cfg
        self._auth = auth
        self._transport = transport
        self._logger = logger or get_logger("export")

    async def package(self, request: PackageRequest) -> ExportResult:
        payload = {
            "sourceKey": request.source_key,
            "variantId": request.variant.value,
            "transformedContent": request.transformed_content,
        }
        headers = build_headers(auth=self._auth, accept="application/zip, application/octet-stream, */*")
        timeout = httpx.Timeout(connect=10.0, read=self._cfg.timeout_seconds, write=30.0, pool=10.0)

        try:
            async with httpx.AsyncClient(timeout=timeout, transport=self._transport) as client:
                resp = await client.post(self._endpoint, json=payload, headers=headers)
        except httpx.HTTPError as exc:
            return self._failed(request, error_from_exception(exc))
        except Exception as exc:  # noqa: BLE001
            return self._failed(request, UpstreamError(f"{type(exc).__name__}: {exc}"))

        status_error = error_from_response(resp)
        if status_error is not None:
            return self._failed(request, status_error)
        if not resp.content:
            return self._failed(request, UpstreamError("Packager returned an empty bundle"))

        bundle = ExportBundle(
            filename=filename_from_headers(resp.headers) or default_filename(request),
            media_type=resp.headers.get("Content-Type", "application/octet-stream"),
            content=resp.content,
        )
        log_event(
            self._logger,
            "Export packaged",
            event="export_packaged",
            source_key=redact_url(request.source_key),
            variant=request.variant.value,
            filename=bundle.filename,
            size=bundle.size,
        )
        return ExportResult(request=request, bundle=bundle)

    def _failed(self, request: PackageRequest, error: FetchError) -> ExportResult:
        log_warning(
            self._logger,
            "Export failed",
            event="export_failed",
            source_key=redact_url(request.source_key),
            variant=request.variant.value,
            error_type=type(error).__name__,
            error=str(error),
        )
        return ExportResult(request=request, error=error)


def filename_from_headers(headers: httpx.Headers) -> str | None:
    """Return the filename from a Content-Disposition header, if any."""
    disposition = headers.get("Content-Disposition")
    if not disposition:
        return None
    match = _FILENAME_RE.search(disposition)
    if not match:
        return None
    name = unquote(match.group("ext")) if match.group("ext") else match.group("plain")
    # Never let the server choose a directory.
    name = name.strip().replace("\\", "/").rsplit("/", 1)[-1]
    return name or None


def slugify(text: str) -> str:
    """Convert text to a lowercase, hyphenated slug limited to 60 characters."""
    slug = re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")
    return slug[:60].strip("-") or "site"


def default_filename(request: PackageRequest) -> str:
    parts = urlsplit(request.source_key)
    host_path = f"{parts.hostname or ''} {parts.path}"
    return f"{slugify(host_path)}-{request.variant.value}.zip"
