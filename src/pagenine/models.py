"""Data models used across the catalog watcher."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping, Sequence

NEW_MATCH = "new_match"
PAGE_ADVANCE = "page_advance"
BUMP_LIMIT_REACHED = "bump_limit_reached"
DISAPPEARED = "disappeared"

DEFAULT_REFRESH_INTERVAL = 30.0
DEFAULT_REFRESH_JITTER = 5.0
DEFAULT_BUMP_LIMIT = 300
DEFAULT_NEAR_PRUNE_PAGE = 9
DEFAULT_NOTIFICATION_TIMEOUT = 10.0


@dataclass(frozen=True, slots=True)
class WatchConfig:
    """Immutable runtime configuration shared by the poller, engine and dispatcher."""

    board: str
    title: str
    no_bump_limit: bool = False
    pushover_token: str | None = None
    pushover_user: str | None = None
    refresh_interval: float = DEFAULT_REFRESH_INTERVAL
    refresh_jitter: float = DEFAULT_REFRESH_JITTER
    bump_limit: int = DEFAULT_BUMP_LIMIT
    near_prune_page: int = DEFAULT_NEAR_PRUNE_PAGE
    notify_on_first_sight: bool = True
    page_backoff: bool = True
    notification_timeout: float = DEFAULT_NOTIFICATION_TIMEOUT
    user_agent: str | None = None
    log_level: str = "INFO"

    @property
    def pushover_enabled(self) -> bool:
        return bool(self.pushover_token and self.pushover_user)


@dataclass(frozen=True, slots=True)
class ThreadSnapshot:
    """Single catalog entry as observed during one poll cycle."""

    id: int
    title: str
    bump_count: int
    page: int
    closed: bool = False
    position: int = 1
    page_length: int = 1
    bump_limit_flag: bool = False


@dataclass(frozen=True, slots=True)
class CatalogSnapshot:
    """Ordered catalog listing returned by one successful fetch.

    ``skipped_ids`` holds ids of entries that were listed but could not be
    read. ``incomplete`` is set when a whole page was unreadable, so absence
    from ``threads`` proves nothing about any thread.
    """

    board: str
    threads: Sequence[ThreadSnapshot] = ()
    last_modified: str | None = None
    skipped_ids: frozenset[int] = frozenset()
    incomplete: bool = False

    def is_unreadable(self, thread_id: int) -> bool:
        return self.incomplete or thread_id in self.skipped_ids

    def __iter__(self):
        return iter(self.threads)

    def __len__(self) -> int:
        return len(self.threads)


@dataclass(frozen=True, slots=True)
class TrackedThread:
    """Process-lifetime record of a thread matching the title filter."""

    id: int
    title: str
    last_page: int
    last_bump_count: int
    bump_limit_notified: bool = False
    near_prune_notified: bool = False


TrackedState = Mapping[int, TrackedThread]


@dataclass(frozen=True, slots=True)
class ThreadEvent:
    """Transition derived for one thread by the diff engine."""

    kind: str
    thread_id: int
    title: str
    page: int
    bump_count: int
    closed: bool = False


@dataclass(slots=True)
class DiffResult:
    """Outcome of comparing one snapshot with the previously tracked state."""

    state: dict[int, TrackedThread]
    events: list[ThreadEvent] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class Notification:
    """Outgoing notification produced by the formatter."""

    title: str
    body: str
    url: str | None = None
