"""Derive thread transition events from consecutive catalog snapshots."""

from __future__ import annotations

import logging

from .filters import TitleFilter
from .models import (
    BUMP_LIMIT_REACHED,
    DISAPPEARED,
    NEW_MATCH,
    PAGE_ADVANCE,
    CatalogSnapshot,
    DiffResult,
    ThreadEvent,
    ThreadSnapshot,
    TrackedState,
    TrackedThread,
    WatchConfig,
)

logger = logging.getLogger(__name__)


class CatalogDiffEngine:
    """Compare a catalog snapshot against the tracked threads.

    :meth:`compute` is a pure function of its inputs and the configuration: the
    prior mapping is never modified and the returned state is a new dict.
    Notified flags are carried over from the prior record and only ever go from
    ``False`` to ``True``, which is what keeps every condition announced at most
    once per thread. A tracked thread whose entry the snapshot could not read
    keeps its prior record as is and produces no events.
    """

    def __init__(self, config: WatchConfig):
        self._config = config
        self._filter = TitleFilter(config.title)

    @property
    def title_filter(self) -> TitleFilter:
        return self._filter

    def compute(
        self,
        snapshot: CatalogSnapshot,
        prior: TrackedState,
    ) -> DiffResult:
        state: dict[int, TrackedThread] = {}
        events: list[ThreadEvent] = []

        for thread in snapshot:
            if thread.id in state:
                logger.debug("Повторная запись треда %s в каталоге пропущена", thread.id)
                continue
            if not self._filter.evaluate(thread).allowed:
                continue
            tracked, thread_events = self._evaluate_thread(thread, prior.get(thread.id))
            state[thread.id] = tracked
            events.extend(thread_events)

        for thread_id in sorted(set(prior) - set(state)):
            previous = prior[thread_id]
            if snapshot.is_unreadable(thread_id):
                logger.debug("Тред %s не прочитан в этом цикле, состояние сохранено", thread_id)
                state[thread_id] = previous
                continue
            events.append(
                ThreadEvent(
                    kind=DISAPPEARED,
                    thread_id=thread_id,
                    title=previous.title,
                    page=previous.last_page,
                    bump_count=previous.last_bump_count,
                )
            )

        return DiffResult(state=state, events=events)

    def _evaluate_thread(
        self,
        thread: ThreadSnapshot,
        previous: TrackedThread | None,
    ) -> tuple[TrackedThread, list[ThreadEvent]]:
        events: list[ThreadEvent] = []
        first_sight = previous is None
        announce = not first_sight or self._config.notify_on_first_sight

        if previous is None:
            events.append(_event(NEW_MATCH, thread))
            bump_notified = False
            prune_notified = False
        else:
            bump_notified = previous.bump_limit_notified
            prune_notified = previous.near_prune_notified

        if not bump_notified and self._bump_limit_reached(thread):
            bump_notified = True
            if announce:
                events.append(_event(BUMP_LIMIT_REACHED, thread))

        if not prune_notified and thread.page >= self._config.near_prune_page:
            prune_notified = True
            if announce:
                events.append(_event(PAGE_ADVANCE, thread))

        tracked = TrackedThread(
            id=thread.id,
            title=thread.title,
            last_page=thread.page,
            last_bump_count=thread.bump_count,
            bump_limit_notified=bump_notified,
            near_prune_notified=prune_notified,
        )
        return tracked, events

    def _bump_limit_reached(self, thread: ThreadSnapshot) -> bool:
        if self._config.no_bump_limit:
            return False
        return thread.bump_limit_flag or thread.bump_count >= self._config.bump_limit


def _event(kind: str, thread: ThreadSnapshot) -> ThreadEvent:
    return ThreadEvent(
        kind=kind,
        thread_id=thread.id,
        title=thread.title,
        page=thread.page,
        bump_count=thread.bump_count,
        closed=thread.closed,
    )
