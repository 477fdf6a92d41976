"""Logging setup for swarm-ai.

The coordinator loop and every task executor log through the ``swarm_ai``
logger tree. Console output stays terse; the rotating file records the
thread of each line (``mission-coordinator`` or ``task-<id>``) so interleaved
executor logs can be told apart.
"""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Union

__all__ = ["setup_logger", "get_logger"]

DEFAULT_LOG_FILE = Path("~/.swarm-ai/logs/swarm.log").expanduser()
CONSOLE_FORMAT = "[%(levelname).1s] %(message)s"
FILE_FORMAT = "%(asctime)s %(threadName)-20s %(levelname)-7s %(name)s: %(message)s"
MAX_LOG_BYTES = 5 * 1024 * 1024  # 5MB
LOG_BACKUP_COUNT = 3

# Client libraries that log every request at INFO.
_QUIET_LOGGERS = ("litellm", "LiteLLM", "httpx", "httpcore", "openai")
_DISABLED_VALUES = ("", "off", "false", "no", "none")

# Marks handlers installed here, so a second setup replaces only those.
_OWNED_ATTR = "_swarm_ai_handler"

LogTarget = Union[str, Path, bool, None]


def setup_logger(
    name: str = "swarm_ai",
    verbose: bool = False,
    log_file: LogTarget = None,
) -> logging.Logger:
    """Configure and return the project logger.

    Args:
        name: Logger name; the default configures every module logger.
        verbose: ``True`` shows dispatch, retry and verdict lines (INFO).
        log_file: ``None``/``True`` writes ``~/.swarm-ai/logs/swarm.log``;
            ``False`` or a word like ``"off"`` turns file logging off;
            any other value is the log path.
    """
    level = logging.INFO if verbose else logging.WARNING
    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.propagate = False

    for stale in [h for h in logger.handlers if getattr(h, _OWNED_ATTR, False)]:
        logger.removeHandler(stale)
        stale.close()

    handlers = [_console_handler(level)]
    log_path = _resolve_log_path(log_file)
    if log_path is not None:
        handlers.append(_file_handler(log_path, level))
    for handler in handlers:
        setattr(handler, _OWNED_ATTR, True)
        logger.addHandler(handler)

    _quiet_client_libraries()
    return logger


def get_logger(name: str) -> logging.Logger:
    """Return a logger by name without changing its configuration."""
    return logging.getLogger(name)


def _console_handler(level: int) -> logging.Handler:
    handler = logging.StreamHandler()
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    return handler


def _file_handler(path: Path, level: int) -> logging.Handler:
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        path, maxBytes=MAX_LOG_BYTES, backupCount=LOG_BACKUP_COUNT, encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(FILE_FORMAT))
    return handler


def _quiet_client_libraries() -> None:
    for lib in _QUIET_LOGGERS:
        lib_logger = logging.getLogger(lib)
        if lib_logger.level == logging.NOTSET or lib_logger.level < logging.WARNING:
            lib_logger.setLevel(logging.WARNING)


def _resolve_log_path(log_file: LogTarget) -> Path | None:
    if log_file is None or log_file is True:
        return DEFAULT_LOG_FILE
    if log_file is False:
        return None
    if isinstance(log_file, str) and log_file.strip().lower() in _DISABLED_VALUES:
        return None
    return Path(log_file).expanduser()
