# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Structured JSON logger for pushpkg.

Every log entry is a single JSON line with a timestamp, level, source module
and message. Build stages attach context (stage name, file counts, paths)
through the `extra` kwarg, so a failed build can be diagnosed from its log
alone.

The JSON structure looks like:
  {"ts": "2026-...", "level": "INFO", "module": "pushpkg.package.pipeline", "msg": "Stage started", "stage": "SIGNING"}
"""

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

# LogRecord internals we never want to dump into the JSON entry.
_STANDARD_RECORD_ATTRS: frozenset[str] = frozenset(
    {
        "name",
        "msg",
        "args",
        "created",
        "relativeCreated",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "pathname",
        "filename",
        "module",
        "levelno",
        "levelname",
        "processName",
        "process",
        "threadName",
        "thread",
        "message",
        "msecs",
        "taskName",
    }
)


class JsonFormatter(logging.Formatter):
    """
    Formats log records as single-line JSON objects.

    Mandatory fields:
      ts     — ISO 8601 UTC timestamp
      level  — log level name
      module — the logger name
      msg    — the formatted message string

    Anything passed through `extra` is merged in as additional fields. When
    the record carries exception info, the formatted traceback goes under
    "exc".
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, object] = {
            "ts": datetime.now(tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "module": record.name,
            "msg": record.getMessage(),
        }

        for key, value in record.__dict__.items():
            if key not in _STANDARD_RECORD_ATTRS and not key.startswith("_"):
                entry[key] = value

        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


_VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def _resolve_log_level(level_name: str) -> int:
    """Turn a level name string into the corresponding logging constant."""
    upper = level_name.upper()
    if upper not in _VALID_LOG_LEVELS:
        raise ValueError(
            f"Invalid log level '{level_name}'. Must be one of: {', '.join(sorted(_VALID_LOG_LEVELS))}"
        )
    return getattr(logging, upper)


def get_logger(
    name: str,
    log_level: str = "INFO",
    log_file: Optional[Path] = None,
) -> logging.Logger:
    """
    Create a structured JSON logger.

    This is the only sanctioned way to get a logger in pushpkg. Module-level
    loggers are children of the "pushpkg" logger, so `configure_logging`
    controls all of them at once.

    For names under "pushpkg." the returned logger is a bare child: it gets
    no handlers or level of its own. `log_level` only takes effect if this
    call is the one that creates the package logger, and `log_file` is ignored.
    Use `configure_logging` to change level or file output for the package.

    Args:
        name: Logger name, typically __name__ of the calling module.
        log_level: One of DEBUG, INFO, WARNING, ERROR, CRITICAL. Validated
                   for every name.
        log_file: Optional path to a log file. If provided, logs go to both
                  stdout and the file. Ignored for "pushpkg." children.

    Returns:
        A configured logging.Logger that outputs structured JSON.
    """
    level = _resolve_log_level(log_level)

    # Children of "pushpkg" inherit level and handlers from the package logger.
    if name.startswith("pushpkg."):
        package_logger = logging.getLogger("pushpkg")
        if not package_logger.handlers:
            get_logger("pushpkg", log_level=log_level)
        return logging.getLogger(name)

    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Avoid stacking handlers if get_logger is called multiple times for the
    # same name (happens in tests).
    if logger.handlers:
        return logger

    formatter = JsonFormatter()

    stdout_handler = logging.StreamHandler(stream=sys.stdout)
    stdout_handler.setFormatter(formatter)
    logger.addHandler(stdout_handler)

    if log_file is not None:
        _attach_file_handler(logger, log_file, formatter)

    logger.propagate = False

    return logger


def _attach_file_handler(logger: logging.Logger, log_file: Path, formatter: logging.Formatter) -> None:
    log_file.parent.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(str(log_file), encoding="utf-8")
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)


def configure_logging(log_level: str = "INFO", log_file: Optional[Path] = None) -> logging.Logger:
    """
    Set the level (and optional file output) for every pushpkg logger.

    Called once by the runtime bootstrap after the config has been loaded.
    """
    root = get_logger("pushpkg", log_level=log_level)
    root.setLevel(_resolve_log_level(log_level))

    if log_file is not None:
        target = str(log_file.resolve())
        already_attached = any(
            isinstance(h, logging.FileHandler) and h.baseFilename == target
            for h in root.handlers
        )
        if not already_attached:
            _attach_file_handler(root, log_file, JsonFormatter())

    return root
