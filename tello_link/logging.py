"""Logging configuration helpers."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

# Per-datagram and per-command debug output; noisy while video is streaming.
TRAFFIC_LOGGERS = ("tello_link.transport", "tello_link.session")

QUIET_LOGGERS = ("aiohttp.access", "asyncio", "PIL")


def configure_logging(
    level: str = "INFO",
    *,
    log_path: Optional[Path] = None,
    log_network: bool = False,
    log_traffic: bool = False,
) -> None:
    """Configure root logging handlers.

    Parameters
    ----------
    level:
        Log level name, e.g. "INFO".
    log_path:
        Optional file to log to in addition to the console.
    log_network:
        Keep event loop, status server access and imaging debug output.
    log_traffic:
        Keep debug output for individual datagrams and command exchanges. When
        false those loggers stay at INFO even if ``level`` is DEBUG.
    """

    logging.captureWarnings(True)

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)

    root_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(level=root_level, format=LOG_FORMAT)

    if log_path:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(file_handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.NOTSET if log_network else logging.WARNING)

    traffic_level = logging.NOTSET if log_traffic else max(root_level, logging.INFO)
    for name in TRAFFIC_LOGGERS:
        logging.getLogger(name).setLevel(traffic_level)
