"""Design-file URL parsing helpers."""

from __future__ import annotations

import re
from dataclasses import dataclass
from urllib.parse import parse_qs, urlparse

_FILE_KEY_RE = re.compile(r"figma\.com/(?:file|design)/([a-zA-Z0-9]+)")


@dataclass(frozen=True)
class ParsedFigmaUrl:
    file_key: str
    node_id: str | None = None


def extract_file_key(url: str) -> str | None:
    """Return the file key from a ``/file/<key>`` or ``/design/<key>`` URL, or None."""
    match = _FILE_KEY_RE.search(url or "")
    return match.group(1) if match else None


def parse_figma_url(url: str) -> ParsedFigmaUrl:
    """Parse a design URL into its file key and optional ``node-id``.

    Figma writes node ids as ``1-2`` in URLs; the REST API expects ``1:2``.
    Raises ValueError when the URL has no file key.
    """
    trimmed = (url or "").strip()
    file_key = extract_file_key(trimmed)
    if not file_key:
        raise ValueError(
            "Invalid Figma URL. Expected format: https://www.figma.com/design/<fileKey>/..."
        )

    raw_ids = parse_qs(urlparse(trimmed).query).get("node-id") or []
    node_id = raw_ids[0].replace("-", ":") if raw_ids and raw_ids[0] else None
    return ParsedFigmaUrl(file_key=file_key, node_id=node_id)
