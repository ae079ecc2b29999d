"""
Source key normalization.

Turns raw user input into the canonical string used to key the preview
cache, so that ``Example.com/post/`` and ``https://example.com/post`` are the
same document.
"""

from __future__ import annotations

import re
from urllib.parse import SplitResult, urlsplit, urlunsplit

from .errors import ValidationError


_SCHEME_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*://")
_ALLOWED_SCHEMES = {"http", "https"}


def normalize_source_key(raw: str, default_scheme: str = "https") -> str:
    """Normalize raw input into a source key.

    Adds ``default_scheme`` when the input has none, lowercases the scheme and
    host, strips trailing path separators, and keeps query and fragment as
    given.

    Args:
        raw: User input, e.g. ``example.com/blog/post/``
        default_scheme: Scheme to prepend when the input has none

    Returns:
        The canonical source key, e.g. ``https://example.com/blog/post``

    Raises:
        ValidationError: If the input is empty or is not an http(s) URL with a host

    Examples:
        >>> normalize_source_key("Example.COM/Blog/")
        'https://example.com/Blog'
    """
    text = (raw or "").strip()
    if not text:
        raise ValidationError("Source URL is empty")
    if any(ch.isspace() for ch in text):
        raise ValidationError(f"Source URL contains whitespace: {raw!r}")

    if not _SCHEME_RE.match(text):
        text = f"{default_scheme}://{text}"

    try:
        parts = urlsplit(text)
        port = parts.port
    except ValueError as exc:
        raise ValidationError(f"Invalid source URL {raw!r}: {exc}") from exc

    scheme = parts.scheme.lower()
    if scheme not in _ALLOWED_SCHEMES:
        raise ValidationError(f"Unsupported URL scheme {parts.scheme!r} in {raw!r}")
    if not parts.hostname:
        raise ValidationError(f"Source URL has no host: {raw!r}")

    netloc = _canonical_netloc(parts, port)
    path = parts.path.rstrip("/")
    return urlunsplit((scheme, netloc, path, parts.query, parts.fragment))


def _canonical_netloc(parts: SplitResult, port: int | None) -> str:
    host = parts.hostname or ""
    if ":" in host:
        host = f"[{host}]"
    netloc = host if port is None else f"{host}:{port}"
    if parts.username is not None:
        userinfo = parts.username
        if parts.password is not None:
            userinfo = f"{userinfo}:{parts.password}"
        netloc = f"{userinfo}@{netloc}"
    return netloc
