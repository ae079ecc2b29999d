"""Wire-level tests for the packager client."""

from __future__ import annotations

import asyncio
import json

import httpx

from variant_preview.config import PackagerConfig
from variant_preview.core.errors import HttpError, NetworkError, RateLimited, UpstreamError
from variant_preview.core.types import VariantId
from variant_preview.export.packager import HttpPackager, PackageRequest, default_filename, filename_from_headers


REQUEST = PackageRequest(
    source_key="https://Blog.example.com/2024/hello-world",
    variant=VariantId.GHIBLI,
    transformed_content="# Hello",
)


def _package(handler):
    packager = HttpPackager("https://pack.example.com", PackagerConfig(), transport=httpx.MockTransport(handler))
    return asyncio.run(packager.package(REQUEST))


def test_bundle_is_returned_with_server_filename():
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(
            200,
            content=b"PK\x03\x04zip",
            headers={"Content-Type": "application/zip", "Content-Disposition": 'attachment; filename="hello.zip"'},
        )

    result = _package(handler)

    assert result.ok
    assert result.error is None
    assert result.bundle.filename == "hello.zip"
    assert result.bundle.media_type == "application/zip"
    assert result.bundle.open().read() == b"PK\x03\x04zip"
    assert seen["url"] == "https://pack.example.com/export"
    assert seen["body"] == {
        "sourceKey": REQUEST.source_key,
        "variantId": "ghibli",
        "transformedContent": "# Hello",
    }


def test_filename_falls_back_to_source_slug():
    result = _package(lambda request: httpx.Response(200, content=b"zip"))
    assert result.bundle.filename == "blog-example-com-2024-hello-world-ghibli.zip"


def test_rate_limit_is_reported_distinctly():
    result = _package(lambda request: httpx.Response(429, json={"error": "Too many exports"}))
    assert not result.ok
    assert isinstance(result.error, RateLimited)
    assert result.error.message == "Too many exports"


def test_http_and_transport_errors():
    result = _package(lambda request: httpx.Response(500, json={"error": "zip failed"}))
    assert isinstance(result.error, HttpError)
    assert result.error.status == 500

    def refuse(request):
        raise httpx.ConnectError("refused", request=request)

    assert isinstance(_package(refuse).error, NetworkError)


def test_empty_bundle_is_upstream_error():
    result = _package(lambda request: httpx.Response(200, content=b""))
    assert isinstance(result.error, UpstreamError)


def test_filename_from_headers_variants():
    assert filename_from_headers(httpx.Headers({})) is None
    assert filename_from_headers(httpx.Headers({"Content-Disposition": "attachment"})) is None
    assert (
        filename_from_headers(httpx.Headers({"Content-Disposition": "attachment; filename*=UTF-8''my%20site.zip"}))
        == "my site.zip"
    )
    assert filename_from_headers(httpx.Headers({"Content-Disposition": 'attachment; filename="../../etc/x.zip"'})) == "x.zip"


def test_default_filename_uses_host_and_path():
    assert default_filename(REQUEST) == "blog-example-com-2024-hello-world-ghibli.zip"
    bare = PackageRequest(source_key="https://example.com", variant=VariantId.MODERN, transformed_content="")
    assert default_filename(bare) == "example-com-modern.zip"
