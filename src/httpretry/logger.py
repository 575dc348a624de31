# httpretry/logger.py
from __future__ import annotations

import logging
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional
from urllib.parse import urlsplit

LOGGER_NAME = "httpretry"
FILE_HANDLER_NAME = "httpretry.file"
CONSOLE_HANDLER_NAME = "httpretry.console"

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def log_stem(source: Optional[str]) -> str:
    """File name stem for a download: the last path segment of a URL or path."""
    if not source:
        return LOGGER_NAME
    name = Path(urlsplit(source).path).name
    return name or LOGGER_NAME


def setup_logger(
    log_dir: str | Path,
    *,
    download: Optional[str] = None,
    level: int = logging.INFO,
    console: bool = False,
    max_bytes: int = 0,
    backup_count: int = 3,
) -> Path:
    """
    Send the ``httpretry`` loggers to a timestamped file in ``log_dir``.

    ``log_dir`` is always a directory and is created if missing. The file is
    named after ``download`` (a URL or destination path) when one is given.
    Handlers go on the ``httpretry`` logger, not the root logger, and a
    second call replaces the ones installed by the first. ``max_bytes > 0``
    rotates the file.

    Returns the path of the log file.
    """
    log_dir = Path(log_dir).expanduser()
    log_dir.mkdir(parents=True, exist_ok=True)
    ts = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_path = log_dir / f"{log_stem(download)}_{ts}.log"

    pkg_logger = logging.getLogger(LOGGER_NAME)
    for handler in list(pkg_logger.handlers):
        if handler.get_name() in (FILE_HANDLER_NAME, CONSOLE_HANDLER_NAME):
            pkg_logger.removeHandler(handler)
            handler.close()
    pkg_logger.setLevel(level)

    fmt = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    handlers = []
    if max_bytes > 0:
        file_handler = RotatingFileHandler(
            log_path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
        )
    else:
        file_handler = logging.FileHandler(log_path, mode="w", encoding="utf-8")
    file_handler.set_name(FILE_HANDLER_NAME)
    handlers.append(file_handler)

    if console:
        console_handler = logging.StreamHandler()
        console_handler.set_name(CONSOLE_HANDLER_NAME)
        handlers.append(console_handler)

    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(fmt)
        pkg_logger.addHandler(handler)

    pkg_logger.info("Logging to: %s", log_path)
    return log_path


def log_response(
    log: Optional[logging.Logger] = None,
    *,
    level: int = logging.INFO,
):
    """
    Build an ``on_response`` observer that logs every attempt.

    Responses are logged at ``level``; transport errors at WARNING.
    """
    log = log or logging.getLogger(LOGGER_NAME + ".responses")

    def _observe(response, error) -> None:
        if error is not None:
            log.warning("HTTP error: %s", error)
            return
        log.log(
            level,
            "HTTP %d %s (Content-Length=%s, Content-Range=%s)",
            response.status_code,
            response.url,
            response.headers.get("Content-Length"),
            response.headers.get("Content-Range"),
        )

    return _observe
