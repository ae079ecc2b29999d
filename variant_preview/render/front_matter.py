"""
Front-matter extraction for transformed variant content.

Transformed content may start with a metadata block::

    ---
    title: "My Post"
    date: 2024-01-02
    ---
    # My Post
    ...

``extract_front_matter`` splits such text into a metadata mapping and the
body. It is shared by every rendering variant and never raises: text with
no block, an unterminated block, or a block that cannot be read as
``key: value`` pairs comes back unchanged with empty metadata.
"""

from __future__ import annotations

from datetime import date, datetime
import re
from typing import Any

import yaml


_DELIMITER = "---"
_KEY_VALUE_RE = re.compile(r"^\s*(?P<key>[A-Za-z_][\w-]*)\s*:\s*(?P<value>.*?)\s*$")
_INLINE_SPLIT_RE = re.compile(r"\s+(?=[A-Za-z_][\w-]*:)")
_HEADING_RE = re.compile(r"^#\s+(?P<title>.+?)\s*#*\s*$", re.MULTILINE)


def extract_front_matter(text: str | None) -> tuple[dict[str, str], str]:
    """Split transformed text into (metadata, body).

    Args:
        text: Transformed content, possibly starting with a ``---`` block

    Returns:
        Tuple of metadata (string values) and body text. Without a usable
        block the metadata is empty and the body is ``text`` unchanged.
    """
    if not text:
        return {}, text or ""

    lines = text.splitlines(keepends=True)
    if lines[0].lstrip("\ufeff").strip() != _DELIMITER:
        return {}, text

    closing = None
    for index in range(1, len(lines)):
        if lines[index].strip() == _DELIMITER:
            closing = index
            break
    if closing is None:
        return {}, text

    block = "".join(lines[1:closing])
    body = "".join(lines[closing + 1 :])
    if not block.strip():
        return {}, body

    metadata = _parse_yaml(block)
    if metadata is None:
        metadata = _parse_lines(block)
    if not metadata:
        return {}, text
    return metadata, body


def display_title(metadata: dict[str, str], body: str, fallback: str = "") -> str:
    """Title from metadata, else the first level-one heading, else ``fallback``."""
    title = metadata.get("title", "").strip()
    if title:
        return title
    match = _HEADING_RE.search(body or "")
    if match:
        return match.group("title").strip()
    return fallback


def _parse_yaml(block: str) -> dict[str, str] | None:
    try:
        loaded = yaml.safe_load(block)
    except yaml.YAMLError:
        return None
    if not isinstance(loaded, dict):
        return None
    return {str(key): _stringify(value) for key, value in loaded.items()}


def _parse_lines(block: str) -> dict[str, str]:
    lines = [line for line in block.splitlines() if line.strip()]
    if len(lines) == 1:
        # All properties on one line: title: "A" date: "B"
        lines = _INLINE_SPLIT_RE.split(lines[0].strip())

    metadata: dict[str, str] = {}
    for line in lines:
        match = _KEY_VALUE_RE.match(line)
        if not match:
            continue
        metadata[match.group("key")] = _unquote(match.group("value"))
    return metadata


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in {'"', "'"}:
        return value[1:-1]
    return value


def _stringify(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        return ", ".join(_stringify(item) for item in value)
    return str(value)
