"""
Shared HTTP helpers for the transform service and packager clients.

Both services report failures the same way: a non-2xx status with an
optional JSON body ``{"error": "..."}``, and 429 when the caller is being
rate limited.
"""

from __future__ import annotations

import base64
import json

import httpx

from ..core.errors import FetchError, HttpError, NetworkError, RateLimited


def basic_auth_header(auth: tuple[str, str]) -> str:
    username, password = auth
    credentials = base64.b64encode(f"{username}:{password}".encode()).decode()
    return f"Basic {credentials}"


def build_headers(
    user_agent: str | None = None,
    auth: tuple[str, str] | None = None,
    accept: str = "application/json",
) -> dict[str, str]:
    headers = {
        "Content-Type": "application/json",
        "Accept": accept,
    }
    if user_agent:
        headers["User-Agent"] = user_agent
    if auth:
        headers["Authorization"] = basic_auth_header(auth)
    return headers


def error_message(resp: httpx.Response) -> str | None:
    """Return the ``error`` field of a JSON body, or a short text excerpt."""
    try:
        data = resp.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        text = resp.text.strip() if resp.content else ""
        return text[:200] or None
    if isinstance(data, dict) and data.get("error"):
        return str(data["error"])
    return None


def error_from_response(resp: httpx.Response) -> HttpError | None:
    """Classify a response status; None means success."""
    if resp.is_success:
        return None
    message = error_message(resp)
    if resp.status_code == 429:
        return RateLimited(message, retry_after=_retry_after(resp))
    return HttpError(resp.status_code, message)


def error_from_exception(exc: httpx.HTTPError) -> NetworkError:
    if isinstance(exc, httpx.TimeoutException):
        return NetworkError(f"TimeoutError: {exc}")
    return NetworkError(f"{type(exc).__name__}: {exc}")


def is_retryable(error: FetchError) -> bool:
    """Network errors and 5xx responses are worth another attempt; nothing else is."""
    if isinstance(error, RateLimited):
        return False
    if isinstance(error, HttpError):
        return error.is_server_error
    return isinstance(error, NetworkError)


def _retry_after(resp: httpx.Response) -> float | None:
    value = resp.headers.get("Retry-After")
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        return None
