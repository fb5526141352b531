"""Desktop and Pushover notification delivery."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import sys
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Iterable, Protocol, Sequence

import aiohttp

from .formatting import describe_event, format_event
from .models import DEFAULT_NOTIFICATION_TIMEOUT, Notification, ThreadEvent, WatchConfig

_PUSHOVER_API_URL = "https://api.pushover.net/1/messages.json"
_PUSHOVER_TITLE_LIMIT = 250
_PUSHOVER_MESSAGE_LIMIT = 1024
_PUSHOVER_URL_LIMIT = 512
_APP_NAME = "pagenine"


logger = logging.getLogger(__name__)


class NotificationSink(Protocol):
    name: str

    async def send(self, notification: Notification) -> bool: ...


class CommandNotifier(ABC):
    """Show a desktop notification by spawning a platform command."""

    name = "desktop"

    @abstractmethod
    def build_command(self, title: str, body: str) -> list[str]:
        """Return the argv that displays ``title`` and ``body``."""

    async def send(self, notification: Notification) -> bool:
        command = self.build_command(notification.title, notification.body)
        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            logger.warning("Не удалось запустить %s: %s", command[0], exc)
            return False
        try:
            _, stderr = await process.communicate()
        except asyncio.CancelledError:
            with contextlib.suppress(ProcessLookupError):
                process.kill()
            raise
        if process.returncode != 0:
            logger.warning(
                "%s завершился с кодом %s: %s",
                command[0],
                process.returncode,
                (stderr or b"").decode(errors="replace").strip(),
            )
            return False
        return True


class NotifySendNotifier(CommandNotifier):
    """freedesktop.org notifications through ``notify-send``."""

    def __init__(self, executable: str = "notify-send"):
        self._executable = executable

    def build_command(self, title: str, body: str) -> list[str]:
        return [self._executable, f"--app-name={_APP_NAME}", title, body]


class OsaScriptNotifier(CommandNotifier):
    """macOS Notification Center through ``osascript``."""

    def __init__(self, executable: str = "/usr/bin/osascript"):
        self._executable = executable

    def build_command(self, title: str, body: str) -> list[str]:
        script = (
            f'display notification "{_applescript_escape(body)}" '
            f'with title "{_applescript_escape(title)}"'
        )
        return [self._executable, "-e", script]


class LogNotifier:
    """Fallback for platforms without a supported desktop backend."""

    name = "desktop"

    async def send(self, notification: Notification) -> bool:
        logger.info("%s | %s", notification.title, notification.body.replace("\n", " | "))
        return True


def select_desktop_notifier(platform: str | None = None) -> NotificationSink:
    """Pick the desktop backend for ``platform`` (defaults to ``sys.platform``)."""

    current = platform or sys.platform
    if current == "darwin":
        return OsaScriptNotifier()
    if current.startswith(("linux", "freebsd", "openbsd", "netbsd")):
        return NotifySendNotifier()
    logger.warning(
        "Desktop-уведомления на платформе %s не поддерживаются, сообщения попадут в лог",
        current,
    )
    return LogNotifier()


class PushoverAPI:
    """Minimal Pushover message API client."""

    name = "pushover"

    def __init__(
        self,
        token: str,
        user: str,
        session: aiohttp.ClientSession,
        *,
        timeout: float = DEFAULT_NOTIFICATION_TIMEOUT,
    ):
        self._token = token
        self._user = user
        self._session = session
        self._timeout = timeout

    async def send(self, notification: Notification) -> bool:
        data = {
            "token": self._token,
            "user": self._user,
            "message": notification.body[:_PUSHOVER_MESSAGE_LIMIT],
            "title": notification.title[:_PUSHOVER_TITLE_LIMIT],
        }
        if notification.url:
            data["url"] = notification.url[:_PUSHOVER_URL_LIMIT]
        try:
            timeout_cfg = aiohttp.ClientTimeout(total=self._timeout)
            async with self._session.post(
                _PUSHOVER_API_URL,
                data=data,
                timeout=timeout_cfg,
            ) as resp:
                payload = await resp.text()
                if resp.status >= 400:
                    logger.warning(
                        "Pushover ответил статусом %s: %s", resp.status, payload[:200]
                    )
                    return False
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            logger.warning("Не удалось отправить уведомление Pushover: %s", exc)
            return False
        return True


@dataclass(slots=True)
class SendResult:
    """Outcome of one event delivered to one sink."""

    event: ThreadEvent
    sink: str
    ok: bool
    error: str | None = None


@dataclass(slots=True)
class DispatchReport:
    results: list[SendResult] = field(default_factory=list)

    @property
    def failures(self) -> list[SendResult]:
        return [result for result in self.results if not result.ok]

    def for_sink(self, name: str) -> list[SendResult]:
        return [result for result in self.results if result.sink == name]


class NotificationDispatcher:
    """Send every event to every enabled sink exactly once.

    Sinks for one event run concurrently and are all awaited, each bounded by
    ``notification_timeout``. A sink that fails, raises or times out is logged
    and does not affect the other sinks or the following events.
    """

    def __init__(self, config: WatchConfig, sinks: Sequence[NotificationSink]):
        self._config = config
        self._sinks = tuple(sinks)

    @classmethod
    def from_config(
        cls,
        config: WatchConfig,
        session: aiohttp.ClientSession,
        *,
        platform: str | None = None,
    ) -> "NotificationDispatcher":
        sinks: list[NotificationSink] = [select_desktop_notifier(platform)]
        if config.pushover_token and config.pushover_user:
            sinks.append(
                PushoverAPI(
                    config.pushover_token,
                    config.pushover_user,
                    session,
                    timeout=config.notification_timeout,
                )
            )
        return cls(config, sinks)

    @property
    def sinks(self) -> tuple[NotificationSink, ...]:
        return self._sinks

    async def dispatch(self, events: Iterable[ThreadEvent]) -> DispatchReport:
        report = DispatchReport()
        for event in events:
            report.results.extend(await self._dispatch_event(event))
        return report

    async def _dispatch_event(self, event: ThreadEvent) -> list[SendResult]:
        notification = format_event(event, self._config.board)
        logger.info("Уведомление: %s", describe_event(event))
        if not self._sinks:
            return []
        return list(
            await asyncio.gather(
                *(
                    self._send_one(sink, event, notification)
                    for sink in self._sinks
                )
            )
        )

    async def _send_one(
        self,
        sink: NotificationSink,
        event: ThreadEvent,
        notification: Notification,
    ) -> SendResult:
        try:
            ok = await asyncio.wait_for(
                sink.send(notification),
                timeout=self._config.notification_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Канал %s не ответил за %.1f с, уведомление о треде %s потеряно",
                sink.name,
                self._config.notification_timeout,
                event.thread_id,
            )
            return SendResult(event, sink.name, False, "timeout")
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.exception(
                "Ошибка канала %s при отправке уведомления о треде %s",
                sink.name,
                event.thread_id,
            )
            return SendResult(event, sink.name, False, repr(exc))
        if not ok:
            logger.warning(
                "Канал %s не доставил уведомление о треде %s", sink.name, event.thread_id
            )
            return SendResult(event, sink.name, False, "rejected")
        return SendResult(event, sink.name, True)


def _applescript_escape(text: str) -> str:
    return text.replace("\\", "\\\\").replace('"', '\\"')
