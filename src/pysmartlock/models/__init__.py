"""Models for pysmartlock commands, device events and sync state."""

from pysmartlock.models.commands import DeviceCommand, build_command
from pysmartlock.models.events import DeviceEvent, DeviceEventKind, TagsSnapshot
from pysmartlock.models.state import (
    IDLE,
    NOTICE_MESSAGES,
    AddSlot,
    DeleteSlot,
    IdleSlot,
    Notice,
    NoticeKind,
    OperationKind,
    PendingAdd,
    PendingDelete,
    TagSyncSnapshot,
)

__all__ = [
    "IDLE",
    "NOTICE_MESSAGES",
    "AddSlot",
    "DeleteSlot",
    "DeviceCommand",
    "DeviceEvent",
    "DeviceEventKind",
    "IdleSlot",
    "Notice",
    "NoticeKind",
    "OperationKind",
    "PendingAdd",
    "PendingDelete",
    "TagSyncSnapshot",
    "TagsSnapshot",
    "build_command",
]
