"""Shared utility helpers for the Lopic client."""

from .background import BackgroundTask, run_background
from .hooks import EventHook
from .logging import LoggingOptions, configure_logging, get_logger, log_file_path
from .sanitize import redact_credentials, sanitize_log_message

__all__ = [
    "BackgroundTask",
    "EventHook",
    "LoggingOptions",
    "configure_logging",
    "get_logger",
    "log_file_path",
    "redact_credentials",
    "run_background",
    "sanitize_log_message",
]
