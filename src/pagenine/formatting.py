"""Notification text helpers."""

from __future__ import annotations

from .models import (
    BUMP_LIMIT_REACHED,
    DISAPPEARED,
    NEW_MATCH,
    PAGE_ADVANCE,
    Notification,
    ThreadEvent,
)

_BOARDS_BASE = "https://boards.4chan.org"

_EVENT_ICONS = {
    NEW_MATCH: "👀",
    PAGE_ADVANCE: "⏳",
    BUMP_LIMIT_REACHED: "🔁",
    DISAPPEARED: "🗑",
}
_EVENT_LABELS = {
    NEW_MATCH: "Найден тред",
    PAGE_ADVANCE: "Тред скоро утонет",
    BUMP_LIMIT_REACHED: "Бамп-лимит достигнут",
    DISAPPEARED: "Тред пропал из каталога",
}
_NO_TITLE = "Без темы"
_MAX_TITLE_LENGTH = 120
_ELLIPSIS = "…"


def thread_url(board: str, thread_id: int) -> str:
    return f"{_BOARDS_BASE}/{board}/thread/{thread_id}"


def format_event(event: ThreadEvent, board: str) -> Notification:
    """Build the notification title and body announcing ``event``."""

    icon = _EVENT_ICONS.get(event.kind, "ℹ️")
    label = _EVENT_LABELS.get(event.kind, event.kind)
    if event.kind == PAGE_ADVANCE:
        title = f"{icon} >page {event.page}"
    else:
        title = f"{icon} {label}"

    lines = [_shorten(event.title) or _NO_TITLE]
    details = f"/{board}/ №{event.thread_id}"
    if event.kind == DISAPPEARED:
        details += f", последняя страница {event.page}"
    else:
        details += f", страница {event.page}"
    details += f", ответов: {event.bump_count}"
    lines.append(details)
    if event.closed:
        lines.append("Тред закрыт")

    url = None if event.kind == DISAPPEARED else thread_url(board, event.thread_id)
    if url:
        lines.append(url)
    return Notification(title=title, body="\n".join(lines), url=url)


def describe_event(event: ThreadEvent) -> str:
    """Return a short one-line description used in log records."""

    label = _EVENT_LABELS.get(event.kind, event.kind)
    return f"{label}: №{event.thread_id} «{_shorten(event.title) or _NO_TITLE}»"


def _shorten(text: str) -> str:
    cleaned = " ".join(text.split())
    if len(cleaned) <= _MAX_TITLE_LENGTH:
        return cleaned
    return cleaned[: _MAX_TITLE_LENGTH - len(_ELLIPSIS)].rstrip() + _ELLIPSIS
