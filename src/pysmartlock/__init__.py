"""pysmartlock - Async Python client for managing RFID tags on an MQTT smart lock."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pysmartlock")
except PackageNotFoundError:
    __version__ = "0+local"
from pysmartlock.client import SmartLockClient
from pysmartlock.config import SmartLockConfig
from pysmartlock.exceptions import (
    SmartLockClientError,
    SmartLockCommandRejectedError,
    SmartLockConfigError,
    SmartLockDecodeError,
    SmartLockError,
    SmartLockNotConnectedError,
    SmartLockOperationPendingError,
)
from pysmartlock.models import (
    DeviceCommand,
    DeviceEvent,
    DeviceEventKind,
    Notice,
    NoticeKind,
    OperationKind,
    TagSyncSnapshot,
)

__all__ = [
    "__version__",
    "DeviceCommand",
    "DeviceEvent",
    "DeviceEventKind",
    "Notice",
    "NoticeKind",
    "OperationKind",
    "SmartLockClient",
    "SmartLockClientError",
    "SmartLockCommandRejectedError",
    "SmartLockConfig",
    "SmartLockConfigError",
    "SmartLockDecodeError",
    "SmartLockError",
    "SmartLockNotConnectedError",
    "SmartLockOperationPendingError",
    "TagSyncSnapshot",
]
