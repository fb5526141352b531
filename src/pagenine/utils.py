"""Miscellaneous helpers."""

from __future__ import annotations

import html
import re

_WHITESPACE_RE = re.compile(r"\s+")


def parse_seconds(value: str | None, default: float = 0.0) -> float:
    """Parse a duration in seconds, accepting an optional ``s``/``ms`` suffix."""

    if value is None:
        return default
    stripped = value.strip().lower()
    if not stripped:
        return default
    scale = 1.0
    if stripped.endswith("ms"):
        stripped = stripped[:-2].strip()
        scale = 0.001
    elif stripped.endswith("s"):
        stripped = stripped[:-1].strip()
    try:
        parsed = float(stripped) * scale
    except ValueError:
        return default
    return max(0.0, parsed)


def parse_bool(value: str | None, default: bool = False) -> bool:
    """Parse textual boolean configuration values.

    Supported truthy values: ``on``, ``true``, ``yes``, ``1`` (case-insensitive).
    Supported falsy values: ``off``, ``false``, ``no``, ``0``.
    Any other value returns ``default``.
    """

    if value is None:
        return default
    normalized = value.strip().lower()
    if not normalized:
        return default
    if normalized in {"on", "true", "yes", "1"}:
        return True
    if normalized in {"off", "false", "no", "0"}:
        return False
    return default


def normalize_board(board: str | None) -> str | None:
    """Return a board name without surrounding slashes, e.g. ``/vg/`` -> ``vg``."""

    if board is None:
        return None
    normalized = board.strip().strip("/").strip()
    return normalized or None


def decode_title(title: str | None) -> str:
    """Decode HTML entities served by the catalog API."""

    if not title:
        return ""
    return html.unescape(title)


def normalize_title(title: str | None) -> str:
    """Return a decoded, whitespace-collapsed and case-folded title."""

    decoded = decode_title(title)
    return _WHITESPACE_RE.sub(" ", decoded).strip().casefold()
