"""Title filter applied to catalog entries before tracking them."""

from __future__ import annotations

from dataclasses import dataclass

from .models import ThreadSnapshot
from .utils import normalize_title


@dataclass(slots=True)
class FilterDecision:
    """Result of evaluating the filter."""

    allowed: bool
    reason: str | None = None


class TitleFilter:
    """Case-insensitive substring match against decoded thread titles."""

    def __init__(self, pattern: str):
        self._pattern = normalize_title(pattern)

    @property
    def pattern(self) -> str:
        return self._pattern

    def matches(self, title: str | None) -> bool:
        if not self._pattern:
            return False
        return self._pattern in normalize_title(title)

    def evaluate(self, thread: ThreadSnapshot) -> FilterDecision:
        if not self._pattern:
            return FilterDecision(False, "empty_filter")
        if not thread.title:
            return FilterDecision(False, "no_title")
        if not self.matches(thread.title):
            return FilterDecision(False, "title_miss")
        return FilterDecision(True)
