"""In-memory store of the threads tracked between poll cycles."""

from __future__ import annotations

from types import MappingProxyType
from typing import Iterator, Mapping

from .models import TrackedThread


class StateStore:
    """Hold the tracked threads for the lifetime of the process.

    The store is written once per successful cycle by the poller. Readers get a
    read-only view, so a diff computed from :meth:`current` cannot alter the
    committed state.
    """

    def __init__(self) -> None:
        self._threads: dict[int, TrackedThread] = {}

    def current(self) -> Mapping[int, TrackedThread]:
        return MappingProxyType(self._threads)

    def replace(self, new_state: Mapping[int, TrackedThread]) -> None:
        """Swap in ``new_state`` wholesale."""

        self._threads = dict(new_state)

    def get(self, thread_id: int) -> TrackedThread | None:
        return self._threads.get(thread_id)

    def __contains__(self, thread_id: object) -> bool:
        return thread_id in self._threads

    def __iter__(self) -> Iterator[int]:
        return iter(self._threads)

    def __len__(self) -> int:
        return len(self._threads)
