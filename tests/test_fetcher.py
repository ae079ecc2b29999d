"""Wire-level tests for the transform service fetcher."""

from __future__ import annotations

import asyncio
import json

import httpx

from variant_preview.config import FetchConfig
from variant_preview.core.errors import HttpError, NetworkError, RateLimited, UpstreamError
from variant_preview.core.types import VariantId
from variant_preview.fetch.fetcher import TransformServiceFetcher


API = "https://transform.example.com/api/"
SOURCE = "https://blog.example.com/post"


def _fetcher(handler, retries=0, auth=None):
    return TransformServiceFetcher(
        API,
        FetchConfig(retries=retries),
        auth=auth,
        transport=httpx.MockTransport(handler),
        backoff_seconds=0,
    )


def _fetch(fetcher, variant=VariantId.MATRIX):
    return asyncio.run(fetcher.fetch(SOURCE, variant))


def test_success_parses_payload_and_sends_request():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        seen["auth"] = request.headers.get("Authorization")
        return httpx.Response(
            200,
            json={
                "title": "Hello",
                "author": "Ada",
                "date": "2024-01-02",
                "originalHtml": "<p>hi</p>",
                "mdx": "---\ntitle: Hello\n---\n# Hello",
                "featuredImage": "https://img.example.com/a.png",
            },
        )

    result = _fetch(_fetcher(handler, auth=("user", "pass")))

    assert result.ok
    assert result.variant is VariantId.MATRIX
    assert result.payload.title == "Hello"
    assert result.payload.author == "Ada"
    assert result.payload.published_date == "2024-01-02"
    assert result.payload.raw_content == "<p>hi</p>"
    assert result.payload.transformed_content.startswith("---")
    assert result.payload.featured_image == "https://img.example.com/a.png"
    assert seen["url"] == "https://transform.example.com/api/preview"
    assert seen["body"] == {"sourceKey": SOURCE, "variantId": "matrix"}
    assert seen["auth"].startswith("Basic ")


def test_camel_case_fields_are_accepted():
    def handler(request):
        return httpx.Response(
            200,
            json={"title": "T", "publishedDate": "2024", "rawContent": "raw", "transformedContent": "md"},
        )

    result = _fetch(_fetcher(handler))
    assert result.payload.raw_content == "raw"
    assert result.payload.transformed_content == "md"
    assert result.payload.published_date == "2024"
    assert result.payload.author is None


def test_server_error_is_retried_then_reported():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(502, json={"error": "bad gateway"})

    result = _fetch(_fetcher(handler, retries=2))

    assert not result.ok
    assert isinstance(result.error, HttpError)
    assert result.error.status == 502
    assert result.error.message == "bad gateway"
    assert len(calls) == 3


def test_client_error_is_not_retried():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(404, json={"error": "Post not found"})

    result = _fetch(_fetcher(handler, retries=2))

    assert result.error.status == 404
    assert result.error.is_client_error
    assert "Post not found" in str(result.error)
    assert len(calls) == 1


def test_rate_limit_is_distinct_and_not_retried():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(429, headers={"Retry-After": "30"}, text="slow down")

    result = _fetch(_fetcher(handler, retries=2))

    assert isinstance(result.error, RateLimited)
    assert result.error.status == 429
    assert result.error.retry_after == 30.0
    assert len(calls) == 1


def test_transport_failure_is_network_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    result = _fetch(_fetcher(handler))
    assert isinstance(result.error, NetworkError)
    assert "connection refused" in str(result.error)


def test_timeout_is_network_error_and_retried():
    calls = []

    def handler(request):
        calls.append(request)
        if len(calls) == 1:
            raise httpx.ReadTimeout("too slow", request=request)
        return httpx.Response(200, json={"title": "T", "mdx": "# T"})

    result = _fetch(_fetcher(handler, retries=1))
    assert result.ok
    assert len(calls) == 2


def test_error_body_on_success_status_is_upstream_error():
    def handler(request):
        return httpx.Response(200, json={"error": "MDX transformation failed: timeout"})

    result = _fetch(_fetcher(handler))
    assert isinstance(result.error, UpstreamError)
    assert "MDX transformation failed" in str(result.error)


def test_missing_transformed_content_is_upstream_error():
    def handler(request):
        return httpx.Response(200, json={"title": "T", "mdx": "   "})

    result = _fetch(_fetcher(handler))
    assert isinstance(result.error, UpstreamError)


def test_non_json_body_is_upstream_error():
    def handler(request):
        return httpx.Response(200, text="<html>oops</html>")

    result = _fetch(_fetcher(handler))
    assert isinstance(result.error, UpstreamError)
