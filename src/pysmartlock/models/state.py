"""Slot state, user-facing notices and observable snapshots."""

from __future__ import annotations

import enum

from pydantic import BaseModel, ConfigDict, Field


class OperationKind(enum.StrEnum):
    ADD = "add"
    DELETE = "delete"


class IdleSlot(BaseModel):
    """No operation in flight for this slot."""

    model_config = ConfigDict(frozen=True)


class PendingAdd(BaseModel):
    """An ``addTag`` was published and awaits resolution."""

    model_config = ConfigDict(frozen=True)

    op_id: int
    started_at: float
    deadline: float


class PendingDelete(BaseModel):
    """A ``deleteTag:<id>`` was published and awaits resolution."""

    model_config = ConfigDict(frozen=True)

    op_id: int
    tag_id: str
    started_at: float
    deadline: float


AddSlot = IdleSlot | PendingAdd
DeleteSlot = IdleSlot | PendingDelete

IDLE = IdleSlot()


class NoticeKind(enum.StrEnum):
    ADD_FAILED = "add_failed"
    ADD_TIMEOUT = "add_timeout"
    DELETE_FAILED = "delete_failed"
    DELETE_TIMEOUT = "delete_timeout"


NOTICE_MESSAGES: dict[NoticeKind, str] = {
    NoticeKind.ADD_FAILED: "Add failed or timed out on device.",
    NoticeKind.ADD_TIMEOUT: "Add timeout - device may not have received tag or timed out.",
    NoticeKind.DELETE_FAILED: "Delete failed on device.",
    NoticeKind.DELETE_TIMEOUT: "Delete timeout - device did not confirm the deletion.",
}


class Notice(BaseModel):
    """A failure the operator should be told about."""

    model_config = ConfigDict(frozen=True)

    kind: NoticeKind
    operation: OperationKind
    tag_id: str | None = None
    message: str = ""

    @classmethod
    def for_kind(cls, kind: NoticeKind, *, tag_id: str | None = None) -> Notice:
        add_kinds = (NoticeKind.ADD_FAILED, NoticeKind.ADD_TIMEOUT)
        operation = OperationKind.ADD if kind in add_kinds else OperationKind.DELETE
        return cls(kind=kind, operation=operation, tag_id=tag_id, message=NOTICE_MESSAGES[kind])

    @property
    def is_timeout(self) -> bool:
        return self.kind in (NoticeKind.ADD_TIMEOUT, NoticeKind.DELETE_TIMEOUT)


class TagSyncSnapshot(BaseModel):
    """Read-only view of the sync state for a UI layer."""

    model_config = ConfigDict(frozen=True)

    connected: bool = False
    tags: tuple[str, ...] = Field(default=(), description="Authoritative tag list in device order")
    snapshot_received: bool = False
    adding: bool = False
    deleting_tag: str | None = None

    def is_deleting(self, tag_id: str) -> bool:
        return self.deleting_tag == tag_id
