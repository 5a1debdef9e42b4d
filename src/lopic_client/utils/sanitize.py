from __future__ import annotations

import re
from typing import Final

_TOKEN_QUERY_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"((?:access_|refresh_)?token=)(?:Bearer(?:%20|\+|\s))?[^&\s\"']+",
    flags=re.IGNORECASE,
)

_BEARER_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"(Bearer\s+)[A-Za-z0-9\-_\.=+/]+",
    flags=re.IGNORECASE,
)

_CONTROL_CHARS: Final[frozenset[str]] = frozenset(
    chr(code) for code in range(0x00, 0x20) if chr(code) not in {"\t", "\n"}
)

REDACTED: Final[str] = "***"


def redact_credentials(value: str) -> str:
    """Mask bearer values and ``token=`` query parameters in free text."""

    masked = _TOKEN_QUERY_PATTERN.sub(rf"\g<1>{REDACTED}", value)
    return _BEARER_PATTERN.sub(rf"\g<1>{REDACTED}", masked)


def sanitize_log_message(value: str) -> str:
    """Normalise log messages by stripping control characters and CR sequences."""

    normalised = value.replace("\r\n", "\n").replace("\r", "\n")
    return "".join(ch for ch in normalised if ch not in _CONTROL_CHARS)


__all__ = ["REDACTED", "redact_credentials", "sanitize_log_message"]
