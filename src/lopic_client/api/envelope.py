"""Normalisation of the ``{message, data}`` response envelope.

Every Lopic endpoint either answers with an envelope already (``{"message":
..., "data": ...}``) or with a bare body. Callers always receive the envelope
shape so they can read ``["data"]`` without caring which one the endpoint
chose.
"""

from __future__ import annotations

from typing import Any

DEFAULT_MESSAGE = "Success"


def is_envelope(body: Any) -> bool:
    # A JSON null still counts as a defined ``data`` value.
    return isinstance(body, dict) and "data" in body


def normalize_envelope(body: Any) -> dict[str, Any]:
    """Return ``body`` unchanged if it carries ``data``, otherwise wrap it."""

    if is_envelope(body):
        return body
    return {"message": DEFAULT_MESSAGE, "data": body}


__all__ = ["DEFAULT_MESSAGE", "is_envelope", "normalize_envelope"]
