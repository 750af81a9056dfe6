"""Custom exception hierarchy for pysmartlock."""

from __future__ import annotations


class SmartLockError(Exception):
    """Base exception for all pysmartlock errors."""


class SmartLockConfigError(SmartLockError):
    """Invalid or missing configuration."""


class SmartLockClientError(SmartLockError):
    """Client used outside of its lifecycle (e.g. before ``async with``)."""


class SmartLockDecodeError(SmartLockError):
    """Inbound payload could not be decoded."""

    def __init__(self, message: str, *, topic: str = "") -> None:
        self.topic = topic
        super().__init__(message)


class SmartLockCommandRejectedError(SmartLockError):
    """A user intent was refused locally and nothing was published.

    Rejections are user-facing, not fatal: the session stays usable and
    the next intent may be issued immediately.
    """

    def __init__(self, message: str, *, reason: str = "") -> None:
        self.reason = reason
        super().__init__(message)


class SmartLockNotConnectedError(SmartLockCommandRejectedError):
    """The MQTT transport is not connected."""

    def __init__(self, message: str = "MQTT not connected") -> None:
        super().__init__(message, reason="not_connected")


class SmartLockOperationPendingError(SmartLockCommandRejectedError):
    """An add or delete operation is already in flight.

    The device tracks a single add and a single delete at a time, so a
    second request is refused instead of queued.
    """

    def __init__(
        self,
        message: str,
        *,
        operation: str,
        tag_id: str | None = None,
    ) -> None:
        self.operation = operation
        self.tag_id = tag_id
        super().__init__(message, reason="operation_pending")
