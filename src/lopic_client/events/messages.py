"""Tagged messages pushed by the server over the upload event channel.

Every frame is a JSON object ``{"type": <wire tag>, "payload": {...}}``. The
set of tags is closed: :func:`decode_frame` maps each wire tag to an
:class:`EventTag` and validates the payload against that tag's model.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Final

from pydantic import BaseModel, ConfigDict, ValidationError

from lopic_client.api.errors import DecodeError, UnknownMessageTag


class EventTag(StrEnum):
    UPLOAD_START = "upload_start"
    UPLOAD_PROGRESS = "upload_progress"
    UPLOAD_ERROR = "upload_error"
    UPLOAD_COMPLETE = "upload_complete"
    PROCESSING_START = "upload_processing_start"
    PROCESSING_ERROR = "upload_processing_error"
    PROCESSING_COMPLETE = "upload_processing_complete"
    DELETE_SUCCESS = "delete_success"
    DELETE_ERROR = "delete_error"
    DELETE_USER_SUCCESS = "delete_user_success"
    DELETE_USER_ERROR = "delete_user_error"


class ChannelEvent(StrEnum):
    OPEN = "open"
    CLOSE = "close"
    ERROR = "error"


# Wire tags that share a listener slot with another tag.
WIRE_ALIASES: Final[dict[str, EventTag]] = {
    "delete_exist_error": EventTag.DELETE_ERROR,
}

# Sent by the server on upload_progress for the aggregate of a batch.
TOTAL_UPLOAD_ID: Final[str] = "total"


class _Payload(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)


class UploadStart(_Payload):
    upload_id: str
    file_name: str
    file_size: int


class UploadProgress(_Payload):
    upload_id: str
    file_name: str
    progress: float
    read: int
    total: int

    @property
    def is_total(self) -> bool:
        return self.upload_id == TOTAL_UPLOAD_ID


class UploadError(_Payload):
    upload_id: str
    file_name: str
    error: str


class UploadComplete(_Payload):
    upload_id: str
    file_name: str
    file_url: str
    thumbnail_url: str = ""
    image_id: int


class BatchNotice(_Payload):
    message: str
    file_count: int


class ProcessingStart(BatchNotice):
    pass


class ProcessingComplete(BatchNotice):
    pass


class DeleteSuccess(_Payload):
    message: str
    file_count: int | None = None


class OperationError(_Payload):
    message: str
    error: str
    code: str = ""


class ProcessingError(OperationError):
    pass


class DeleteError(OperationError):
    pass


class DeleteUserError(OperationError):
    pass


class DeleteUserSuccess(_Payload):
    message: str
    user_count: int | None = None


PAYLOAD_MODELS: Final[dict[EventTag, type[_Payload]]] = {
    EventTag.UPLOAD_START: UploadStart,
    EventTag.UPLOAD_PROGRESS: UploadProgress,
    EventTag.UPLOAD_ERROR: UploadError,
    EventTag.UPLOAD_COMPLETE: UploadComplete,
    EventTag.PROCESSING_START: ProcessingStart,
    EventTag.PROCESSING_ERROR: ProcessingError,
    EventTag.PROCESSING_COMPLETE: ProcessingComplete,
    EventTag.DELETE_SUCCESS: DeleteSuccess,
    EventTag.DELETE_ERROR: DeleteError,
    EventTag.DELETE_USER_SUCCESS: DeleteUserSuccess,
    EventTag.DELETE_USER_ERROR: DeleteUserError,
}


class _Frame(BaseModel):
    model_config = ConfigDict(extra="ignore")

    type: str
    payload: Any = None


@dataclass(frozen=True, slots=True)
class EventMessage:
    tag: EventTag
    payload: _Payload
    wire_tag: str


def lookup_tag(wire_tag: str) -> EventTag | None:
    alias = WIRE_ALIASES.get(wire_tag)
    if alias is not None:
        return alias
    try:
        return EventTag(wire_tag)
    except ValueError:
        return None


def resolve_listener_key(key: str) -> EventTag | ChannelEvent:
    """Accept an enum member, its value, or a wire alias; reject anything else."""
    if isinstance(key, (EventTag, ChannelEvent)):
        return key
    tag = lookup_tag(key)
    if tag is not None:
        return tag
    try:
        return ChannelEvent(key)
    except ValueError:
        raise ValueError(f"Unknown event tag: {key!r}") from None


def decode_frame(raw: str | bytes) -> EventMessage:
    try:
        frame = _Frame.model_validate_json(raw)
    except ValidationError as exc:
        raise DecodeError("Malformed event frame", inner_error=exc) from exc

    tag = lookup_tag(frame.type)
    if tag is None:
        raise UnknownMessageTag(frame.type)

    try:
        payload = PAYLOAD_MODELS[tag].model_validate(frame.payload)
    except ValidationError as exc:
        raise DecodeError(
            f"Invalid payload for {frame.type}", inner_error=exc
        ) from exc
    return EventMessage(tag=tag, payload=payload, wire_tag=frame.type)


__all__ = [
    "BatchNotice",
    "ChannelEvent",
    "DeleteError",
    "DeleteSuccess",
    "DeleteUserError",
    "DeleteUserSuccess",
    "EventMessage",
    "EventTag",
    "OperationError",
    "PAYLOAD_MODELS",
    "ProcessingComplete",
    "ProcessingError",
    "ProcessingStart",
    "UploadComplete",
    "UploadError",
    "UploadProgress",
    "UploadStart",
    "WIRE_ALIASES",
    "decode_frame",
    "lookup_tag",
    "resolve_listener_key",
]
