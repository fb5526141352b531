"""Command line and environment configuration."""

from __future__ import annotations

import argparse
import os
from typing import Mapping, Sequence

from .models import (
    DEFAULT_BUMP_LIMIT,
    DEFAULT_NEAR_PRUNE_PAGE,
    DEFAULT_NOTIFICATION_TIMEOUT,
    DEFAULT_REFRESH_INTERVAL,
    DEFAULT_REFRESH_JITTER,
    WatchConfig,
)
from .utils import normalize_board, parse_bool, parse_seconds

ENV_PREFIX = "PAGENINE_"


class ConfigError(ValueError):
    """Raised for missing or invalid startup configuration."""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pagenine",
        description="Watch a 4chan board catalog and notify when a thread nears pruning",
    )
    parser.add_argument(
        "board",
        nargs="?",
        help="Доска для опроса, например vg или /vg/. Можно задать PAGENINE_BOARD",
    )
    parser.add_argument(
        "title",
        nargs="?",
        help="Часть названия треда. Можно задать PAGENINE_TITLE",
    )
    parser.add_argument(
        "--no-bump-limit",
        action="store_true",
        default=None,
        help="Не уведомлять о достижении бамп-лимита",
    )
    parser.add_argument(
        "--pushover-application-api-token",
        help="Токен приложения Pushover",
    )
    parser.add_argument("--pushover-user-key", help="Ключ пользователя Pushover")
    parser.add_argument(
        "--refresh-interval",
        help=f"Пауза между опросами в секундах (по умолчанию {DEFAULT_REFRESH_INTERVAL:g})",
    )
    parser.add_argument(
        "--refresh-jitter",
        help=f"Максимальная случайная добавка к паузе (по умолчанию {DEFAULT_REFRESH_JITTER:g})",
    )
    parser.add_argument(
        "--bump-limit",
        help=f"Бамп-лимит доски (по умолчанию {DEFAULT_BUMP_LIMIT})",
    )
    parser.add_argument(
        "--near-prune-page",
        help=f"Страница, на которой тред считается тонущим (по умолчанию {DEFAULT_NEAR_PRUNE_PAGE})",
    )
    parser.add_argument(
        "--baseline-first-sight",
        action="store_true",
        default=None,
        help="Не уведомлять об условиях, выполненных уже при первом обнаружении треда",
    )
    parser.add_argument(
        "--no-page-backoff",
        action="store_true",
        default=None,
        help="Опрашивать с обычной паузой, даже если все треды далеко от последней страницы",
    )
    parser.add_argument(
        "--notification-timeout",
        help=(
            "Таймаут отправки в каждый канал уведомлений, с "
            f"(по умолчанию {DEFAULT_NOTIFICATION_TIMEOUT:g})"
        ),
    )
    parser.add_argument("--user-agent", help="Заголовок User-Agent для запросов к API")
    parser.add_argument("--log-level", help="Уровень логирования")
    return parser


def load_config(
    argv: Sequence[str] | None = None,
    environ: Mapping[str, str] | None = None,
    *,
    parser: argparse.ArgumentParser | None = None,
) -> WatchConfig:
    """Build a :class:`WatchConfig` from flags, falling back to ``PAGENINE_*`` variables."""

    parser = parser or build_parser()
    env = os.environ if environ is None else environ
    args = parser.parse_args(argv)

    def _value(name: str) -> str | None:
        flag_value = getattr(args, name)
        if flag_value is not None:
            return str(flag_value)
        env_value = env.get(ENV_PREFIX + name.upper())
        if env_value is None or not env_value.strip():
            return None
        return env_value

    board = normalize_board(_value("board"))
    if not board:
        raise ConfigError(
            "Нужно передать доску аргументом или переменной окружения PAGENINE_BOARD"
        )
    title = (_value("title") or "").strip()
    if not title:
        raise ConfigError(
            "Нужно передать название треда аргументом или переменной окружения PAGENINE_TITLE"
        )

    if args.no_bump_limit:
        no_bump_limit = True
    else:
        no_bump_limit = parse_bool(env.get(ENV_PREFIX + "NO_BUMP_LIMIT"), False)
    if args.baseline_first_sight:
        baseline = True
    else:
        baseline = parse_bool(env.get(ENV_PREFIX + "BASELINE_FIRST_SIGHT"), False)
    if args.no_page_backoff:
        no_page_backoff = True
    else:
        no_page_backoff = parse_bool(env.get(ENV_PREFIX + "NO_PAGE_BACKOFF"), False)

    refresh_interval = _seconds(
        "refresh_interval", _value("refresh_interval"), DEFAULT_REFRESH_INTERVAL
    )
    if refresh_interval <= 0:
        raise ConfigError("Пауза между опросами должна быть больше нуля")

    return WatchConfig(
        board=board,
        title=title,
        no_bump_limit=no_bump_limit,
        pushover_token=_optional(_value("pushover_application_api_token")),
        pushover_user=_optional(_value("pushover_user_key")),
        refresh_interval=refresh_interval,
        refresh_jitter=_seconds("refresh_jitter", _value("refresh_jitter"), DEFAULT_REFRESH_JITTER),
        bump_limit=_positive_int("bump_limit", _value("bump_limit"), DEFAULT_BUMP_LIMIT),
        near_prune_page=_positive_int(
            "near_prune_page", _value("near_prune_page"), DEFAULT_NEAR_PRUNE_PAGE
        ),
        notify_on_first_sight=not baseline,
        page_backoff=not no_page_backoff,
        notification_timeout=_seconds(
            "notification_timeout",
            _value("notification_timeout"),
            DEFAULT_NOTIFICATION_TIMEOUT,
        )
        or DEFAULT_NOTIFICATION_TIMEOUT,
        user_agent=_optional(_value("user_agent")),
        log_level=(_value("log_level") or "INFO").strip().upper(),
    )


def _optional(value: str | None) -> str | None:
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


def _seconds(name: str, value: str | None, default: float) -> float:
    if value is None:
        return default
    parsed = parse_seconds(value, -1.0)
    if parsed < 0:
        raise ConfigError(f"Неверное значение {name}: {value!r}")
    return parsed


def _positive_int(name: str, value: str | None, default: int) -> int:
    if value is None:
        return default
    try:
        parsed = int(value.strip())
    except ValueError as exc:
        raise ConfigError(f"Неверное значение {name}: {value!r}") from exc
    if parsed <= 0:
        raise ConfigError(f"Значение {name} должно быть больше нуля")
    return parsed
