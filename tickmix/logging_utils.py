"""Console and file logging for the tickmix command line.

Console output goes to stderr only, because stdout carries the echoed event
text that ``tickmix play`` passes through. The file log is the long-lived
record: every line in it is tagged with the current run context (sample rate,
sink) so a report about choppy audio can be matched to the setup that made it.
"""

from __future__ import annotations

import logging
import os
import sys
import traceback
from datetime import datetime
from pathlib import Path

_LOGGER = logging.getLogger("tickmix.logging")
LOG_DIR_ENV = "TICKMIX_LOG_DIR"
DEBUG_ENV = "TICKMIX_DEBUG"
_LOG_FILE = "tickmix.log"
_FILE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s%(run_context)s: %(message)s"
_FILE_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
_LEVEL_PREFIXES = {
    logging.DEBUG: "🐛",
    logging.INFO: "ℹ️",
    logging.WARNING: "⚠️",
    logging.ERROR: "❌",
    logging.CRITICAL: "💥",
}
# Marks handlers installed here so a second configure_logging() replaces them.
_HANDLER_MARK = "_tickmix_handler"

_run_context: dict[str, object] = {}


def debug_enabled() -> bool:
    return bool(os.environ.get(DEBUG_ENV))


def get_log_dir() -> Path:
    configured = os.environ.get(LOG_DIR_ENV)
    if configured:
        return Path(configured).expanduser()
    return Path.home() / ".cache" / "tickmix" / "logs"


def set_run_context(**fields: object) -> None:
    """Tag subsequent file log lines (and exception reports) with ``fields``.

    ``None`` values remove a field.
    """
    for key, value in fields.items():
        if value is None:
            _run_context.pop(key, None)
        else:
            _run_context[key] = value


def clear_run_context() -> None:
    _run_context.clear()


def format_run_context() -> str:
    if not _run_context:
        return ""
    return " [" + " ".join(f"{key}={value}" for key, value in _run_context.items()) + "]"


class _RunContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.run_context = format_run_context()
        return True


class _ConsoleFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        prefix = _LEVEL_PREFIXES.get(record.levelno, "")
        return f"{prefix} {record.name}: {record.getMessage()}"


def configure_logging() -> Path | None:
    """Install the tickmix console and file handlers, replacing earlier ones.

    Returns the log file path, or ``None`` when the log directory is not
    writable.
    """
    logger = logging.getLogger("tickmix")
    logger.setLevel(logging.DEBUG)
    for handler in list(logger.handlers):
        if getattr(handler, _HANDLER_MARK, False):
            logger.removeHandler(handler)
            handler.close()

    # Records propagate to root; a configured root already prints them.
    if not logging.getLogger().handlers:
        console = logging.StreamHandler(stream=sys.__stderr__)
        console.setLevel(logging.DEBUG if debug_enabled() else logging.WARNING)
        console.setFormatter(_ConsoleFormatter())
        setattr(console, _HANDLER_MARK, True)
        logger.addHandler(console)

    path = get_log_dir() / _LOG_FILE
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path, encoding="utf-8")
    except OSError as exc:
        _LOGGER.warning("Failed to configure file logging: %s", exc)
        return None
    file_handler.setLevel(logging.DEBUG)
    file_handler.addFilter(_RunContextFilter())
    file_handler.setFormatter(logging.Formatter(_FILE_FORMAT, datefmt=_FILE_DATE_FORMAT))
    setattr(file_handler, _HANDLER_MARK, True)
    logger.addHandler(file_handler)
    return path


def log_exception(context: str, exc: BaseException) -> Path | None:
    """Append ``exc`` with its traceback and the run context to the log file."""
    path = get_log_dir() / _LOG_FILE
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now().isoformat()
        with path.open("a", encoding="utf-8") as handle:
            handle.write(
                f"[{timestamp}]{format_run_context()} {context} failed: "
                f"{type(exc).__name__}: {exc}\n"
            )
            traceback.print_exception(type(exc), exc, exc.__traceback__, file=handle)
            handle.write("\n")
    except OSError as log_exc:
        _LOGGER.warning("Failed to write log file: %s", log_exc)
        return None
    return path
