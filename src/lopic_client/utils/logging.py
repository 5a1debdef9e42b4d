"""structlog front end routed into loguru sinks.

Modules call :func:`get_logger` and log key/value events; every string value
passes through credential redaction before it reaches a sink, so bearer
tokens and ``token=`` query strings never land on disk.
"""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Literal, cast

import structlog
from loguru import logger as loguru_logger
from structlog.exceptions import DropEvent
from structlog.stdlib import BoundLogger
from structlog.typing import EventDict, Processor, WrappedLogger

from lopic_client.config.settings import log_dir
from lopic_client.utils.sanitize import redact_credentials


LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {message} | {extra}"
LOG_FILENAME = "lopic-client.log"

Level = Literal["DEBUG", "INFO", "WARNING", "ERROR"]


@dataclass(slots=True)
class LoggingOptions:
    level: Level = "INFO"
    debug: bool = False
    file_logging: bool = True
    log_path: Path | None = None
    rotation: str = "10 MB"
    retention: str = "14 days"

    @property
    def console_level(self) -> Level:
        return "DEBUG" if self.debug else self.level


_state: dict[str, Path | bool | None] = {"configured": False, "log_path": None}


def configure_logging(options: LoggingOptions | None = None) -> Path | None:
    """Install sinks and processors; returns the log file path if one is used."""
    opts = options or LoggingOptions()

    loguru_logger.remove()
    loguru_logger.add(
        sys.stderr,
        level=opts.console_level,
        format=LOG_FORMAT,
        colorize=True,
        backtrace=opts.debug,
        diagnose=opts.debug,
    )
    log_path = _add_file_sink(opts) if opts.file_logging else None

    structlog.configure(
        processors=_processors(),
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, opts.console_level)
        ),
        cache_logger_on_first_use=True,
    )

    _state["configured"] = True
    _state["log_path"] = log_path
    return log_path


def _add_file_sink(opts: LoggingOptions) -> Path:
    path = opts.log_path or log_dir() / LOG_FILENAME
    loguru_logger.add(
        path,
        level="DEBUG",
        format=LOG_FORMAT,
        rotation=opts.rotation,
        retention=opts.retention,
        encoding="utf-8",
        enqueue=True,
    )
    return path


def _processors() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.format_exc_info,
        _redact_strings,
        _forward_to_loguru,
    ]


def _redact_strings(_: WrappedLogger, __: str, event_dict: EventDict) -> EventDict:
    for key, value in event_dict.items():
        if isinstance(value, str):
            event_dict[key] = redact_credentials(value)
    return event_dict


def _forward_to_loguru(_: WrappedLogger, __: str, event_dict: EventDict) -> EventDict:
    level = str(event_dict.pop("level", "info")).upper()
    message = str(event_dict.pop("event", ""))
    event_dict.pop("timestamp", None)
    traceback_text = event_dict.pop("exception", None)
    if traceback_text:
        message = f"{message}\n{traceback_text}"
    loguru_logger.bind(**event_dict).opt(depth=6).log(level, message)
    # structlog has nothing left to render.
    raise DropEvent


def get_logger(*initial_values: object, **initial_kw: object) -> BoundLogger:
    if not _state["configured"]:
        configure_logging(LoggingOptions(file_logging=False))
    return cast(BoundLogger, structlog.get_logger(*initial_values, **initial_kw))


def log_file_path() -> Path | None:
    path = _state["log_path"]
    return path if isinstance(path, Path) else None


__all__ = ["LoggingOptions", "configure_logging", "get_logger", "log_file_path"]
