"""Command issuer: turns operator intents into guarded ``cmd`` publishes."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Protocol

from pysmartlock.exceptions import SmartLockNotConnectedError
from pysmartlock.models.commands import DeviceCommand, build_command
from pysmartlock.models.state import OperationKind, PendingAdd, PendingDelete
from pysmartlock.sync.machine import TagSyncMachine

_logger = logging.getLogger(__name__)

ScheduleTimeout = Callable[[OperationKind, int, float], None]
"""``(operation, op_id, delay_seconds)`` -> arrange for ``machine.expire`` to run."""


class CommandTransport(Protocol):
    """Structural transport interface used by the issuer.

    ``SmartLockMqttRuntime`` implements it; tests pass small doubles.
    """

    @property
    def connected(self) -> bool: ...

    def publish(self, topic: str, payload: str) -> bool: ...


class CommandIssuer:
    """Guards every outbound intent on connection and slot state.

    Checks run in a fixed order (connection, slot, publish, open slot) with
    no await in between, so nothing can interleave on the event loop.
    """

    def __init__(
        self,
        *,
        transport: CommandTransport,
        machine: TagSyncMachine,
        topic: str,
        schedule_timeout: ScheduleTimeout,
    ) -> None:
        self._transport = transport
        self._machine = machine
        self._topic = topic
        self._schedule_timeout = schedule_timeout

    def require_connected(self) -> None:
        if not self._transport.connected:
            raise SmartLockNotConnectedError()

    def _publish(self, payload: str) -> None:
        if not self._transport.publish(self._topic, payload):
            raise SmartLockNotConnectedError()

    def open_door(self) -> None:
        """Fire-and-forget door release."""
        self.require_connected()
        self._publish(build_command(DeviceCommand.OPEN_DOOR))
        _logger.info("Open door requested")

    def refresh(self) -> None:
        """Ask the device to republish its tag list."""
        self.require_connected()
        self._publish(build_command(DeviceCommand.FETCH_TAGS))

    def check_add(self) -> None:
        self.require_connected()
        self._machine.require_add_idle()

    def start_add(self) -> PendingAdd:
        """Put the device in enrolment mode and open the add slot."""
        self.check_add()
        self._publish(build_command(DeviceCommand.ADD_TAG))
        pending = self._machine.open_add()
        self._schedule_timeout(OperationKind.ADD, pending.op_id, pending.deadline - pending.started_at)
        return pending

    def check_delete(self, tag_id: str) -> str:
        """Validate a delete intent; returns the normalized tag id."""
        normalized = tag_id.strip()
        if not normalized:
            raise ValueError("tag_id must be non-empty")
        self.require_connected()
        self._machine.require_delete_idle()
        return normalized

    def start_delete(self, tag_id: str) -> PendingDelete:
        """Publish ``deleteTag:<id>`` and open the delete slot.

        Operator confirmation is the caller's job and must happen first.
        """
        normalized = self.check_delete(tag_id)
        self._publish(build_command(DeviceCommand.DELETE_TAG, normalized))
        pending = self._machine.open_delete(normalized)
        self._schedule_timeout(OperationKind.DELETE, pending.op_id, pending.deadline - pending.started_at)
        return pending
