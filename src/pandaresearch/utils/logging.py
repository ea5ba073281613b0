"""Logging setup driven by :class:`~pandaresearch.services.settings.Settings`.

Two destinations are configured:

* ``pandaresearch.log`` plus an optional console stream for regular records.
* ``payloads.log`` for the ``pandaresearch.payloads`` logger, which receives
  the full prompt payloads the LLM adapter emits when ``debug_logging`` is on.
  Payload records never reach the console or the main log.
"""

from __future__ import annotations

import logging
import logging.handlers
import os
from pathlib import Path

from ..services.settings import Settings

__all__ = ["PAYLOAD_LOGGER_NAME", "setup_logging"]

PAYLOAD_LOGGER_NAME = "pandaresearch.payloads"
LOG_FILE_NAME = "pandaresearch.log"
PAYLOAD_LOG_FILE_NAME = "payloads.log"

_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_HTTP_LOGGERS = ("httpx", "httpcore", "openai")
_MAX_BYTES = 1_000_000
_BACKUP_COUNT = 3
_log_path: Path | None = None


def setup_logging(
    settings: Settings | None = None,
    *,
    console: bool = True,
    force: bool = False,
) -> Path:
    """Configure logging for ``settings`` and return the main log file path.

    ``settings.debug_logging`` lowers the level to DEBUG and routes prompt
    payloads to their own file. The log directory comes from
    ``settings.log_dir``, then ``PANDARESEARCH_LOG_DIR``, then
    ``~/.pandaresearch/logs``. Repeated calls are no-ops unless ``force`` is set.
    """

    global _log_path
    if _log_path is not None and not force:
        return _log_path

    settings = settings or Settings()
    level = logging.DEBUG if settings.debug_logging else logging.INFO
    log_dir = _resolve_log_dir(settings.log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    formatter = logging.Formatter(_LOG_FORMAT)

    handlers: list[logging.Handler] = [_rotating_handler(log_dir / LOG_FILE_NAME, formatter)]
    if console:
        stream = logging.StreamHandler()
        stream.setFormatter(formatter)
        handlers.append(stream)
    logging.basicConfig(level=level, handlers=handlers, force=True)

    _configure_payload_logger(log_dir, formatter, enabled=settings.debug_logging)
    # HTTP client chatter stays at WARNING even in debug mode.
    for name in _HTTP_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    _log_path = log_dir / LOG_FILE_NAME
    logging.getLogger(__name__).debug("Logging configured at %s (debug=%s)", _log_path, settings.debug_logging)
    return _log_path


def _configure_payload_logger(log_dir: Path, formatter: logging.Formatter, *, enabled: bool) -> None:
    payload_logger = logging.getLogger(PAYLOAD_LOGGER_NAME)
    for handler in list(payload_logger.handlers):
        payload_logger.removeHandler(handler)
        handler.close()
    payload_logger.propagate = False
    if enabled:
        payload_logger.setLevel(logging.DEBUG)
        payload_logger.addHandler(_rotating_handler(log_dir / PAYLOAD_LOG_FILE_NAME, formatter))
    else:
        payload_logger.setLevel(logging.CRITICAL + 1)


def _rotating_handler(path: Path, formatter: logging.Formatter) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        path, maxBytes=_MAX_BYTES, backupCount=_BACKUP_COUNT, encoding="utf-8"
    )
    handler.setFormatter(formatter)
    return handler


def _resolve_log_dir(log_dir: str | None) -> Path:
    configured = log_dir or os.environ.get("PANDARESEARCH_LOG_DIR")
    if configured:
        return Path(configured).expanduser()
    return Path.home() / ".pandaresearch" / "logs"
