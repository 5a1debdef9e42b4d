"""Real-time event channel and its message types."""

from .messages import (
    ChannelEvent,
    DeleteError,
    DeleteSuccess,
    DeleteUserError,
    DeleteUserSuccess,
    EventMessage,
    EventTag,
    ProcessingComplete,
    ProcessingError,
    ProcessingStart,
    UploadComplete,
    UploadError,
    UploadProgress,
    UploadStart,
    decode_frame,
)
from .registry import ListenerRegistry
from .channel import ConnectionState, EventChannel, EventTransport, build_channel_url

__all__ = [
    "ChannelEvent",
    "ConnectionState",
    "DeleteError",
    "DeleteSuccess",
    "DeleteUserError",
    "DeleteUserSuccess",
    "EventChannel",
    "EventMessage",
    "EventTag",
    "EventTransport",
    "ListenerRegistry",
    "ProcessingComplete",
    "ProcessingError",
    "ProcessingStart",
    "UploadComplete",
    "UploadError",
    "UploadProgress",
    "UploadStart",
    "build_channel_url",
    "decode_frame",
]
