"""Logging initialiser for processes that embed plugin-ipc.

Library modules only ever call ``logging.getLogger(__name__)``; an
application (or the ``plugin-ipc`` CLI) calls ``init()`` once at start-up.
Each component writes its own rotating log file under ``log_dir``; with
``foreground=True`` records are mirrored to stderr.

Log format (human-readable, UTC timestamps)::

    2026-10-18T10:00:00.123Z [DEBUG   ] plugin_ipc.channel: Channel 3 ignoring stale message 0 (expecting 2)
"""

from __future__ import annotations

import logging
import time
from logging.handlers import RotatingFileHandler
from pathlib import Path

from .config import Config

_MAX_BYTES = 5 * 1024 * 1024  # 5 MB per file
_BACKUP_COUNT = 5


class _UtcFormatter(logging.Formatter):
    """ISO-8601 UTC timestamps with millisecond precision."""

    converter = time.gmtime

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:
        ct = self.converter(record.created)
        t = time.strftime("%Y-%m-%dT%H:%M:%S", ct)
        return f"{t}.{int(record.msecs):03d}Z"


_FMT = "%(asctime)s [%(levelname)-8s] %(name)s: %(message)s"


def init(
    component: str,
    log_dir: Path | None,
    *,
    level: str = "INFO",
    foreground: bool = False,
    log_levels: dict[str, str] | None = None,
) -> None:
    """Initialise logging for one process.

    Parameters
    ----------
    component:
        Log-file stem, e.g. ``"cli"`` or ``"watcher"``.
    log_dir:
        Directory for the rotating log file, created if absent. ``None``
        skips the file handler (then only ``foreground`` output remains).
    level:
        Root logger level name. Unknown names fall back to ``INFO``.
    foreground:
        Also attach a :class:`logging.StreamHandler`.
    log_levels:
        Per-logger overrides applied after the root level, e.g.
        ``{"plugin_ipc.channel": "DEBUG"}``.
    """
    formatter = _UtcFormatter(_FMT)
    handlers: list[logging.Handler] = []

    if log_dir is not None:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_dir / f"{component}.log",
            maxBytes=_MAX_BYTES,
            backupCount=_BACKUP_COUNT,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    if foreground:
        stream_handler = logging.StreamHandler()
        stream_handler.setFormatter(formatter)
        handlers.append(stream_handler)

    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    root.handlers.clear()
    for h in handlers:
        root.addHandler(h)

    for logger_name, level_str in (log_levels or {}).items():
        override = getattr(logging, level_str.upper(), None)
        if isinstance(override, int):
            logging.getLogger(logger_name).setLevel(override)


def init_from_config(config: Config, component: str, *, foreground: bool = False) -> None:
    """``init()`` with the log directory and level taken from *config*."""
    init(component, config.log_dir, level=config.log_level, foreground=foreground)
