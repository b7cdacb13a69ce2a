"""Root logger setup for the CLI and the server."""

from __future__ import annotations

import logging
from typing import Final

# Per-request chatter from the HTTP stack and scheduler ticks.
NOISY_LOGGERS: Final[tuple[str, ...]] = (
    "httpx",
    "httpcore",
    "hishel",
    "apscheduler.executors.default",
    "apscheduler.scheduler",
)


def configure_logging(*, level: int = logging.INFO, force: bool = False) -> None:
    """Initialise the root logger once.

    Scheduled syncs log from worker threads, so the thread name is part of the
    format. Third-party loggers in :data:`NOISY_LOGGERS` stay at WARNING unless
    ``level`` is DEBUG. Pass ``force=True`` to reconfigure.
    """

    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(threadName)s %(name)s] %(message)s",
        datefmt="%H:%M:%S",
        force=force,
    )
    quiet_level = logging.DEBUG if level <= logging.DEBUG else logging.WARNING
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(quiet_level)
