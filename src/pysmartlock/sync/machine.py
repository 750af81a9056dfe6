"""Deterministic tag synchronization state machine.

Given the same sequence of intents, device events and timeout firings the
machine produces the same state and the same effects. It performs no I/O:
transitions return :class:`Effects` describing commands to publish and
notices to surface, and the caller carries them out after the slot has
already been updated.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from pysmartlock.exceptions import SmartLockOperationPendingError
from pysmartlock.models.commands import DeviceCommand, build_command
from pysmartlock.models.events import DeviceEvent, DeviceEventKind
from pysmartlock.models.state import (
    IDLE,
    AddSlot,
    DeleteSlot,
    Notice,
    NoticeKind,
    OperationKind,
    PendingAdd,
    PendingDelete,
    TagSyncSnapshot,
)

_logger = logging.getLogger(__name__)

_REFRESH = build_command(DeviceCommand.FETCH_TAGS)


@dataclass(frozen=True)
class Effects:
    """Side effects requested by a transition."""

    commands: tuple[str, ...] = ()
    notices: tuple[Notice, ...] = ()
    state_changed: bool = False


NO_EFFECTS = Effects()


@dataclass
class _SlotHistory:
    # Set when the last operation on a slot ended by timeout, so that a
    # late success still triggers a refresh.
    timed_out_add: bool = False
    timed_out_delete: str | None = None


class TagSyncMachine:
    """Owns the tag list plus one add slot and one delete slot.

    The two slots are independent: an add and a delete may be in flight
    at the same time.
    """

    def __init__(
        self,
        *,
        add_timeout: float = 25.0,
        delete_timeout: float = 25.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._add_timeout = add_timeout
        self._delete_timeout = delete_timeout
        self._clock = clock
        self._tags: tuple[str, ...] = ()
        self._snapshot_received = False
        self._add: AddSlot = IDLE
        self._delete: DeleteSlot = IDLE
        self._next_op_id = 1
        self._history = _SlotHistory()

    @property
    def tags(self) -> tuple[str, ...]:
        return self._tags

    @property
    def add_slot(self) -> AddSlot:
        return self._add

    @property
    def delete_slot(self) -> DeleteSlot:
        return self._delete

    def snapshot(self, *, connected: bool) -> TagSyncSnapshot:
        return TagSyncSnapshot(
            connected=connected,
            tags=self._tags,
            snapshot_received=self._snapshot_received,
            adding=isinstance(self._add, PendingAdd),
            deleting_tag=self._delete.tag_id if isinstance(self._delete, PendingDelete) else None,
        )

    # ------------------------------------------------------------------
    # Opening slots (called by the command issuer)
    # ------------------------------------------------------------------

    def require_add_idle(self) -> None:
        if isinstance(self._add, PendingAdd):
            raise SmartLockOperationPendingError(
                "An add operation is already in progress",
                operation=OperationKind.ADD,
            )

    def require_delete_idle(self) -> None:
        if isinstance(self._delete, PendingDelete):
            raise SmartLockOperationPendingError(
                f"Deletion of tag {self._delete.tag_id} is already in progress",
                operation=OperationKind.DELETE,
                tag_id=self._delete.tag_id,
            )

    def open_add(self) -> PendingAdd:
        """Mark an add as in flight. The ``addTag`` command must already be published."""
        self.require_add_idle()
        now = self._clock()
        pending = PendingAdd(op_id=self._take_op_id(), started_at=now, deadline=now + self._add_timeout)
        self._add = pending
        self._history.timed_out_add = False
        _logger.debug("Add slot opened op_id=%d deadline=%.3f", pending.op_id, pending.deadline)
        return pending

    def open_delete(self, tag_id: str) -> PendingDelete:
        """Mark a delete of *tag_id* as in flight."""
        self.require_delete_idle()
        now = self._clock()
        pending = PendingDelete(
            op_id=self._take_op_id(),
            tag_id=tag_id,
            started_at=now,
            deadline=now + self._delete_timeout,
        )
        self._delete = pending
        self._history.timed_out_delete = None
        _logger.debug("Delete slot opened op_id=%d tag=%s deadline=%.3f", pending.op_id, tag_id, pending.deadline)
        return pending

    def _take_op_id(self) -> int:
        op_id = self._next_op_id
        self._next_op_id += 1
        return op_id

    # ------------------------------------------------------------------
    # Closing slots
    # ------------------------------------------------------------------

    def apply(self, event: DeviceEvent) -> Effects:
        """Apply a decoded device event."""
        kind = event.kind
        if kind == DeviceEventKind.TAGS_SNAPSHOT:
            return self._apply_snapshot(event)
        if kind == DeviceEventKind.ADD_SUCCEEDED:
            return self._resolve_add(success=True, tag_id=event.tag_id)
        if kind == DeviceEventKind.ADD_FAILED:
            return self._resolve_add(success=False)
        if kind == DeviceEventKind.DELETE_SUCCEEDED:
            return self._resolve_delete(success=True, tag_id=event.tag_id)
        if kind == DeviceEventKind.DELETE_FAILED:
            return self._resolve_delete(success=False)
        if kind == DeviceEventKind.ADD_MODE_ACKNOWLEDGED:
            _logger.info("Device ready for scanning")
            return NO_EFFECTS
        _logger.debug("Unknown device event ignored: %r", event.raw)
        return NO_EFFECTS

    def expire(self, operation: OperationKind, op_id: int) -> Effects:
        """Handle a timeout scheduled for operation *op_id*.

        A timeout whose operation was already resolved (or superseded) is a
        no-op.
        """
        if operation == OperationKind.ADD:
            slot = self._add
            if not isinstance(slot, PendingAdd) or slot.op_id != op_id:
                return NO_EFFECTS
            self._add = IDLE
            self._history.timed_out_add = True
            _logger.info("Add timed out op_id=%d", op_id)
            return Effects(notices=(Notice.for_kind(NoticeKind.ADD_TIMEOUT),), state_changed=True)

        slot_d = self._delete
        if not isinstance(slot_d, PendingDelete) or slot_d.op_id != op_id:
            return NO_EFFECTS
        self._delete = IDLE
        self._history.timed_out_delete = slot_d.tag_id
        _logger.info("Delete of tag %s timed out op_id=%d", slot_d.tag_id, op_id)
        return Effects(
            notices=(Notice.for_kind(NoticeKind.DELETE_TIMEOUT, tag_id=slot_d.tag_id),),
            state_changed=True,
        )

    def _apply_snapshot(self, event: DeviceEvent) -> Effects:
        changed = event.tags != self._tags or not self._snapshot_received
        self._tags = event.tags
        self._snapshot_received = True
        _logger.debug("Tag list replaced count=%d", len(event.tags))
        return Effects(state_changed=changed)

    def _resolve_add(self, *, success: bool, tag_id: str | None = None) -> Effects:
        if not isinstance(self._add, PendingAdd):
            if success and self._history.timed_out_add:
                # Late success after a timeout: refresh once, no notice.
                self._history.timed_out_add = False
                _logger.info("Late add confirmation for tag %s after timeout; refreshing", tag_id)
                return Effects(commands=(_REFRESH,))
            _logger.debug("Add %s ignored: no add in flight", "success" if success else "failure")
            return NO_EFFECTS

        op_id = self._add.op_id
        self._add = IDLE
        self._history.timed_out_add = False
        if success:
            _logger.info("Tag %s added op_id=%d", tag_id, op_id)
            return Effects(commands=(_REFRESH,), state_changed=True)
        _logger.info("Add failed on device op_id=%d", op_id)
        return Effects(notices=(Notice.for_kind(NoticeKind.ADD_FAILED),), state_changed=True)

    def _resolve_delete(self, *, success: bool, tag_id: str | None = None) -> Effects:
        slot = self._delete
        if not isinstance(slot, PendingDelete):
            if success and tag_id is not None and self._history.timed_out_delete == tag_id:
                self._history.timed_out_delete = None
                _logger.info("Late delete confirmation for tag %s after timeout; refreshing", tag_id)
                return Effects(commands=(_REFRESH,))
            _logger.debug("Delete %s ignored: no delete in flight", "success" if success else "failure")
            return NO_EFFECTS

        if success and tag_id != slot.tag_id:
            _logger.warning("Delete confirmation for tag %s does not match pending tag %s", tag_id, slot.tag_id)
            return NO_EFFECTS

        self._delete = IDLE
        self._history.timed_out_delete = None
        if success:
            _logger.info("Tag %s deleted op_id=%d", slot.tag_id, slot.op_id)
            return Effects(commands=(_REFRESH,), state_changed=True)
        _logger.info("Delete of tag %s failed on device op_id=%d", slot.tag_id, slot.op_id)
        return Effects(
            notices=(Notice.for_kind(NoticeKind.DELETE_FAILED, tag_id=slot.tag_id),),
            state_changed=True,
        )
