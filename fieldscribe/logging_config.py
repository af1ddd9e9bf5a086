"""Logging setup for fieldscribe.

Two outputs:
- the ``fieldscribe`` logger, written to ``<data dir>/logs/local-<date>.log``
  (plus stderr at DEBUG level);
- a flat field-event log, ``<data dir>/logs/field-events-<date>.log``, one
  line per read/write/aggregate for after-the-fact diagnosis of which path
  a record ended up using.
"""

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Optional

from fieldscribe.config import get_data_dir, load_config

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
LOGGER_NAME = "fieldscribe"

logger = logging.getLogger(__name__)


def _log_dir() -> Path:
    path = get_data_dir() / "logs"
    path.mkdir(parents=True, exist_ok=True)
    return path


def _today() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d")


def setup_fieldscribe_logging(level: Optional[str] = None) -> logging.Logger:
    """Configure the ``fieldscribe`` logger. Safe to call repeatedly.

    Args:
        level: Level name, case-insensitive. Unknown names fall back to INFO.
            None uses ``log_level`` from the loaded configuration.

    Returns:
        The configured ``fieldscribe`` logger.
    """
    if level is None:
        level = load_config().log_level
    logger = logging.getLogger(LOGGER_NAME)
    resolved = getattr(logging, str(level).upper(), None)
    if not isinstance(resolved, int):
        resolved = logging.INFO
    logger.setLevel(resolved)

    formatter = logging.Formatter(LOG_FORMAT)
    has_file = any(isinstance(h, logging.FileHandler) for h in logger.handlers)
    if not has_file:
        file_handler = logging.FileHandler(_log_dir() / f"local-{_today()}.log", encoding="utf-8")
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    if resolved == logging.DEBUG:
        has_console = any(
            isinstance(h, logging.StreamHandler) and not isinstance(h, logging.FileHandler)
            for h in logger.handlers
        )
        if not has_console:
            console = logging.StreamHandler()
            console.setFormatter(formatter)
            logger.addHandler(console)

    return logger


def log_field_event(event_type: str, details: str, record_id: str = "default") -> None:
    """Append one line to the field-event log.

    An unwritable log directory is reported as a warning, never raised.
    """
    timestamp = datetime.now(timezone.utc).isoformat()
    line = f"{timestamp} | {event_type} | record={record_id} | {details}\n"
    try:
        with open(_log_dir() / f"field-events-{_today()}.log", "a", encoding="utf-8") as f:
            f.write(line)
    except OSError as exc:
        logger.warning("Could not record %s event for %s: %s", event_type, record_id, exc)


def log_read(record_id: str, path: Optional[str], length: int, semantic: bool = False) -> None:
    log_field_event("read", f"path={path or '-'}, chars={length}, semantic={semantic}", record_id)


def log_write(record_id: str, ok: bool, path: Optional[str], tried: Iterable[str]) -> None:
    tried = list(tried)
    log_field_event(
        "write",
        f"ok={ok}, path={path or '-'}, tried={len(tried)}",
        record_id,
    )


def log_aggregate(record_id: str, fields: int, chars: int, converted: bool) -> None:
    log_field_event(
        "aggregate", f"fields={fields}, chars={chars}, converted={converted}", record_id
    )
