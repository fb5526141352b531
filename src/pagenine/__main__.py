"""Command line entry point."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal

from .app import PageWatchApp
from .config import ConfigError, build_parser, load_config


async def _run(app: PageWatchApp) -> None:
    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError, RuntimeError):
            loop.add_signal_handler(signum, app.stop)
    await app.run()


def main() -> None:
    parser = build_parser()
    try:
        config = load_config(parser=parser)
    except ConfigError as exc:
        parser.error(str(exc))

    log_level = getattr(logging, config.log_level, logging.INFO)
    logging.basicConfig(level=log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    app = PageWatchApp(config)
    try:
        asyncio.run(_run(app))
    except KeyboardInterrupt:
        logging.getLogger(__name__).info("Остановка по запросу пользователя")


if __name__ == "__main__":
    main()
