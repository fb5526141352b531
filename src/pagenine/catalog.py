"""4chan catalog API client."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Mapping

import aiohttp

from .models import CatalogSnapshot, ThreadSnapshot
from .utils import decode_title

_API_BASE = "https://a.4cdn.org"
_DEFAULT_USER_AGENT = "pagenine/1.2.1 (+https://github.com; catalog page watcher)"
_FETCH_TIMEOUT = 15.0


logger = logging.getLogger(__name__)


class CatalogError(Exception):
    """Raised when a catalog snapshot cannot be obtained or understood."""


class CatalogClient:
    """Thin asynchronous wrapper around the read-only catalog endpoint."""

    def __init__(
        self,
        session: aiohttp.ClientSession,
        board: str,
        *,
        user_agent: str | None = None,
        timeout: float = _FETCH_TIMEOUT,
    ):
        self._session = session
        self._board = board
        self._user_agent = user_agent or _DEFAULT_USER_AGENT
        self._timeout = timeout
        self._last_modified: str | None = None

    @property
    def url(self) -> str:
        return f"{_API_BASE}/{self._board}/catalog.json"

    @property
    def last_modified(self) -> str | None:
        return self._last_modified

    async def fetch(self) -> CatalogSnapshot | None:
        """Return the current catalog, or ``None`` when it is unchanged upstream.

        ``If-Modified-Since`` is only sent for snapshots passed to
        :meth:`acknowledge`. Raises :class:`CatalogError` on transport errors,
        timeouts, non-success statuses and bodies that are not a catalog
        listing.
        """

        headers = {
            "User-Agent": self._user_agent,
            "Accept": "application/json",
        }
        if self._last_modified:
            headers["If-Modified-Since"] = self._last_modified

        try:
            timeout_cfg = aiohttp.ClientTimeout(total=self._timeout)
            async with self._session.get(
                self.url,
                headers=headers,
                timeout=timeout_cfg,
            ) as resp:
                if resp.status == 304:
                    logger.debug("Каталог /%s/ не изменился", self._board)
                    return None
                if resp.status >= 400:
                    raise CatalogError(
                        f"каталог /{self._board}/ ответил статусом {resp.status}"
                    )
                last_modified = resp.headers.get("Last-Modified")
                data = await resp.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise CatalogError(
                f"не удалось получить каталог /{self._board}/: {exc!r}"
            ) from exc
        except ValueError as exc:
            raise CatalogError(f"некорректный JSON каталога /{self._board}/") from exc

        return parse_catalog(data, self._board, last_modified=last_modified)

    def acknowledge(self, snapshot: CatalogSnapshot) -> None:
        """Use ``snapshot``'s ``Last-Modified`` for the next conditional request.

        Called by the poller once the snapshot has been diffed and committed,
        so a cycle that fails halfway is fetched again in full.
        """

        self._last_modified = snapshot.last_modified


def parse_catalog(
    data: Any,
    board: str,
    *,
    last_modified: str | None = None,
) -> CatalogSnapshot:
    """Convert a decoded catalog payload into a :class:`CatalogSnapshot`.

    Malformed pages or thread entries are skipped with a warning so that one
    bad record does not hide the rest of the board. Entries that are skipped
    but still carry a usable ``no`` end up in ``skipped_ids``; anything that
    cannot be attributed to a thread marks the snapshot ``incomplete``.
    """

    if not isinstance(data, list):
        raise CatalogError(f"каталог /{board}/ вернул {type(data).__name__} вместо списка")

    threads: list[ThreadSnapshot] = []
    skipped: set[int] = set()
    incomplete = False
    for page_index, page in enumerate(data):
        if not isinstance(page, Mapping):
            logger.warning("Пропуск страницы каталога #%d: ожидался объект", page_index)
            incomplete = True
            continue
        page_number = _as_int(page.get("page"))
        entries = page.get("threads")
        if not isinstance(entries, list):
            logger.warning("Пропуск страницы каталога #%d: неверный формат", page_index)
            incomplete = True
            continue
        if page_number is None or page_number < 0:
            logger.warning("Пропуск страницы каталога #%d: неверный номер", page_index)
            for entry in entries:
                thread_id = _entry_id(entry)
                if thread_id is None:
                    incomplete = True
                else:
                    skipped.add(thread_id)
            continue
        page_length = len(entries)
        for index, entry in enumerate(entries):
            thread = _parse_thread(entry, page_number, index + 1, page_length)
            if thread is None:
                logger.warning(
                    "Пропуск записи %d на странице %d каталога /%s/",
                    index + 1,
                    page_number,
                    board,
                )
                thread_id = _entry_id(entry)
                if thread_id is None:
                    incomplete = True
                else:
                    skipped.add(thread_id)
                continue
            threads.append(thread)

    return CatalogSnapshot(
        board=board,
        threads=tuple(threads),
        last_modified=last_modified,
        skipped_ids=frozenset(skipped),
        incomplete=incomplete,
    )


def _entry_id(entry: Any) -> int | None:
    if not isinstance(entry, Mapping):
        return None
    thread_id = _as_int(entry.get("no"))
    if thread_id is None or thread_id <= 0:
        return None
    return thread_id


def _parse_thread(
    entry: Any,
    page: int,
    position: int,
    page_length: int,
) -> ThreadSnapshot | None:
    thread_id = _entry_id(entry)
    if thread_id is None:
        return None
    replies_raw = entry.get("replies", 0)
    replies = _as_int(replies_raw)
    if replies is None or replies < 0:
        return None
    subject = entry.get("sub")
    return ThreadSnapshot(
        id=thread_id,
        title=decode_title(subject if isinstance(subject, str) else None),
        bump_count=replies,
        page=page,
        closed=bool(entry.get("closed")),
        position=position,
        page_length=page_length,
        bump_limit_flag=bool(entry.get("bumplimit")),
    )


def _as_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if stripped.lstrip("-").isdigit():
            return int(stripped)
    return None
