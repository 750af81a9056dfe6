"""Typed inbound device events.

Both inbound channels (plain-text operation events and the structured tag
list document) decode into :class:`DeviceEvent`. Only the sync state
machine is allowed to act on them.
"""

from __future__ import annotations

import enum
from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class DeviceEventKind(enum.StrEnum):
    ADD_SUCCEEDED = "add_succeeded"
    ADD_FAILED = "add_failed"
    DELETE_SUCCEEDED = "delete_succeeded"
    DELETE_FAILED = "delete_failed"
    ADD_MODE_ACKNOWLEDGED = "add_mode_acknowledged"
    TAGS_SNAPSHOT = "tags_snapshot"
    UNKNOWN = "unknown"


_KINDS_WITH_TAG_ID = frozenset({DeviceEventKind.ADD_SUCCEEDED, DeviceEventKind.DELETE_SUCCEEDED})


class DeviceEvent(BaseModel):
    """A decoded event received from the device."""

    model_config = ConfigDict(frozen=True)

    kind: DeviceEventKind
    tag_id: str | None = Field(default=None, description="Tag id for *_SUCCEEDED events")
    tags: tuple[str, ...] = Field(default=(), description="Full tag list for TAGS_SNAPSHOT")
    raw: str = Field(default="", description="Payload text as received")
    received_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @field_validator("tag_id")
    @classmethod
    def _normalize_tag_id(cls, value: str | None) -> str | None:
        if value is None:
            return None
        tag_id = value.strip()
        if not tag_id:
            raise ValueError("tag_id must be non-empty")
        return tag_id

    @model_validator(mode="after")
    def _check_tag_id_presence(self) -> DeviceEvent:
        if self.kind in _KINDS_WITH_TAG_ID and self.tag_id is None:
            raise ValueError(f"{self.kind} requires a tag_id")
        return self


class TagsSnapshot(BaseModel):
    """The ``tags`` topic document: ``{"tags": ["<id>", ...]}``."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    tags: tuple[str, ...] = ()

    @field_validator("tags", mode="before")
    @classmethod
    def _none_is_empty(cls, value: object) -> object:
        # The device omits or nulls the field when no tags are enrolled.
        return () if value is None else value

    def to_event(self, raw: str = "") -> DeviceEvent:
        return DeviceEvent(kind=DeviceEventKind.TAGS_SNAPSHOT, tags=self.tags, raw=raw)
