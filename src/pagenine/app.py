"""Application bootstrap and poll loop."""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Mapping, Protocol, Sequence

import aiohttp

from .catalog import CatalogClient, CatalogError
from .diff import CatalogDiffEngine
from .models import CatalogSnapshot, ThreadEvent, TrackedThread, WatchConfig
from .notifications import DispatchReport, NotificationDispatcher
from .state import StateStore

# Minimum pause between fetches, keyed by the page of the tracked thread
# closest to pruning. Pages not listed use the regular interval.
PAGE_BACKOFF_SECONDS = {
    1: 15 * 60.0,
    2: 10 * 60.0,
    3: 10 * 60.0,
    4: 7 * 60.0,
    5: 7 * 60.0,
    6: 5 * 60.0,
    7: 3 * 60.0,
}

logger = logging.getLogger(__name__)


class CatalogFetcher(Protocol):
    async def fetch(self) -> CatalogSnapshot | None: ...

    def acknowledge(self, snapshot: CatalogSnapshot) -> None: ...


class EventDispatcher(Protocol):
    async def dispatch(self, events: Sequence[ThreadEvent]) -> DispatchReport: ...


def page_backoff_delay(
    tracked: Mapping[int, TrackedThread],
    refresh_interval: float,
) -> float:
    """Return the pause before the next fetch for the given tracked threads.

    The thread closest to pruning decides: the smallest back-off over all
    tracked threads, never less than ``refresh_interval``. With nothing
    tracked the regular interval applies so new threads are found quickly.
    """

    if not tracked:
        return refresh_interval
    backoff = min(PAGE_BACKOFF_SECONDS.get(thread.last_page, 0.0) for thread in tracked.values())
    return max(refresh_interval, backoff)


class PageWatchApp:
    """Drive the fetch, diff, dispatch and sleep cycle until stopped."""

    def __init__(self, config: WatchConfig, *, store: StateStore | None = None):
        self._config = config
        self._store = store if store is not None else StateStore()
        self._engine = CatalogDiffEngine(config)
        self._stop_event = asyncio.Event()
        self._cycles = 0
        self._failures = 0

    @property
    def store(self) -> StateStore:
        return self._store

    @property
    def cycles(self) -> int:
        """Number of cycles that committed a new state."""

        return self._cycles

    @property
    def failures(self) -> int:
        """Fetch failures since the last committed cycle."""

        return self._failures

    @property
    def stopped(self) -> bool:
        return self._stop_event.is_set()

    def stop(self) -> None:
        """Stop the loop before the next cycle starts."""

        self._stop_event.set()

    async def run(self) -> None:
        async with aiohttp.ClientSession() as session:
            catalog = CatalogClient(
                session,
                self._config.board,
                user_agent=self._config.user_agent,
            )
            dispatcher = NotificationDispatcher.from_config(self._config, session)
            logger.info(
                "Слежу за /%s/, фильтр «%s», каналы: %s",
                self._config.board,
                self._config.title,
                ", ".join(sink.name for sink in dispatcher.sinks),
            )
            await self._monitor_loop(catalog, dispatcher)
        logger.info("Мониторинг остановлен")

    async def _monitor_loop(
        self,
        catalog: CatalogFetcher,
        dispatcher: EventDispatcher,
    ) -> None:
        while not self._stop_event.is_set():
            try:
                await self.poll_once(catalog, dispatcher)
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Ошибка цикла опроса каталога /%s/", self._config.board)
            if self._stop_event.is_set():
                break
            await self._sleep_between_cycles()

    async def poll_once(
        self,
        catalog: CatalogFetcher,
        dispatcher: EventDispatcher,
    ) -> bool:
        """Run one cycle; return ``True`` when a new state was committed."""

        try:
            snapshot = await catalog.fetch()
        except CatalogError as exc:
            self._failures += 1
            logger.warning("Ошибка получения каталога (%d подряд): %s", self._failures, exc)
            return False
        if snapshot is None:
            return False

        result = self._engine.compute(snapshot, self._store.current())
        self._store.replace(result.state)
        catalog.acknowledge(snapshot)
        self._cycles += 1
        self._failures = 0
        logger.debug("Цикл %d: событий %d", self._cycles, len(result.events))
        self._log_tracked(snapshot, result.state)

        if result.events:
            await dispatcher.dispatch(result.events)
        return True

    def next_delay(self) -> float:
        """Pause before the next cycle, without jitter."""

        if not self._config.page_backoff:
            return self._config.refresh_interval
        return page_backoff_delay(self._store.current(), self._config.refresh_interval)

    def _log_tracked(
        self,
        snapshot: CatalogSnapshot,
        state: dict[int, TrackedThread],
    ) -> None:
        if not state:
            logger.info("Подходящих тредов на /%s/ нет", snapshot.board)
            return
        for thread in snapshot:
            tracked = state.get(thread.id)
            if tracked is None:
                continue
            if tracked.bump_limit_notified or thread.bump_limit_flag:
                logger.info(
                    "«%s», страница %d (%d/%d), бамп-лимит",
                    thread.title,
                    thread.page,
                    thread.position,
                    thread.page_length,
                )
            else:
                logger.info(
                    "«%s», страница %d (%d/%d)",
                    thread.title,
                    thread.page,
                    thread.position,
                    thread.page_length,
                )

    async def _sleep_between_cycles(self) -> None:
        delay_seconds = self.next_delay()
        if self._config.refresh_jitter > 0:
            delay_seconds += random.uniform(0.0, self._config.refresh_jitter)
        logger.debug("Следующий опрос через %.1f с", delay_seconds)
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=delay_seconds)
        except asyncio.TimeoutError:
            pass
