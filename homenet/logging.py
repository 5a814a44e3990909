"""Logging configuration helpers."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

# Third-party loggers that chatter on every mDNS packet or HTTP hit.
NOISY_LOGGERS = ("aiohttp.access", "zeroconf")

# Our own loggers carrying per-request device traffic.
TRAFFIC_LOGGERS = ("homenet.transport", "homenet.discovery.zeroconf_backend")


def configure_logging(
    level: str = "INFO", *, log_path: Optional[Path] = None, log_network: bool = False
) -> None:
    """Configure root logging handlers.

    Parameters
    ----------
    level:
        Log level name, e.g. "INFO".
    log_path:
        Optional file to log to in addition to the console.
    log_network:
        When true, device traffic (requests, responses, mDNS resolutions) is
        logged at DEBUG regardless of ``level``, and the mDNS and status
        server libraries are left at the root level. Otherwise those
        libraries only report warnings.
    """

    logging.captureWarnings(True)

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)

    root_level = getattr(logging, level.upper(), logging.INFO)
    handler_level = logging.DEBUG if log_network else root_level
    formatter = logging.Formatter(LOG_FORMAT)

    console = logging.StreamHandler()
    console.setFormatter(formatter)
    console.setLevel(handler_level)
    root.addHandler(console)
    root.setLevel(root_level)

    if log_path:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(formatter)
        file_handler.setLevel(handler_level)
        root.addHandler(file_handler)

    for name in TRAFFIC_LOGGERS:
        logging.getLogger(name).setLevel(logging.DEBUG if log_network else logging.NOTSET)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.NOTSET if log_network else logging.WARNING)
