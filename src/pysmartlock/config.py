"""Client configuration for pysmartlock."""

from __future__ import annotations

import dataclasses
import os
import secrets
from typing import Any

from pysmartlock.exceptions import SmartLockConfigError

DEFAULT_BROKER_URL = "wss://localhost:8884/mqtt"
DEFAULT_TOPIC_CMD = "smartlock/esp32/cmd"
DEFAULT_TOPIC_EVENTS = "smartlock/esp32/events"
DEFAULT_TOPIC_TAGS = "smartlock/esp32/tags"


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def _random_client_id() -> str:
    return f"web-client-{secrets.token_hex(3)}"


@dataclasses.dataclass(frozen=True)
class SmartLockConfig:
    """Client configuration.

    Parameters
    ----------
    broker_url : str
        Broker URL. ``mqtt://``, ``mqtts://``, ``ws://`` and ``wss://``
        schemes are supported; the path is used as the websocket path.
    username : str or None
        Broker username.
    password : str or None
        Broker password.
    client_id : str
        MQTT client identifier. Defaults to ``web-client-<6 hex>``.
    topic_cmd : str
        Topic commands are published to.
    topic_events : str
        Topic carrying plain-text operation events from the device.
    topic_tags : str
        Topic carrying the full tag list document from the device.
    keepalive : int
        MQTT keepalive in seconds.
    reconnect_interval : int
        Fixed delay in seconds between reconnect attempts.
    add_timeout : float
        Seconds to wait for the device to resolve an add before giving up.
    delete_timeout : float
        Seconds to wait for the device to resolve a delete before giving up.
    tls_insecure : bool
        Skip broker certificate hostname verification.
    """

    broker_url: str = DEFAULT_BROKER_URL
    username: str | None = None
    password: str | None = None
    client_id: str = dataclasses.field(default_factory=_random_client_id)
    topic_cmd: str = DEFAULT_TOPIC_CMD
    topic_events: str = DEFAULT_TOPIC_EVENTS
    topic_tags: str = DEFAULT_TOPIC_TAGS
    keepalive: int = 60
    reconnect_interval: int = 3
    add_timeout: float = 25.0
    delete_timeout: float = 25.0
    tls_insecure: bool = False

    def __post_init__(self) -> None:
        if not self.broker_url.strip():
            raise SmartLockConfigError("broker_url must be non-empty")
        if not self.client_id.strip():
            raise SmartLockConfigError("client_id must be non-empty")
        for name in ("topic_cmd", "topic_events", "topic_tags"):
            if not getattr(self, name).strip():
                raise SmartLockConfigError(f"{name} must be non-empty")
        if self.reconnect_interval < 1:
            raise SmartLockConfigError("reconnect_interval must be at least 1 second")
        if self.add_timeout <= 0 or self.delete_timeout <= 0:
            raise SmartLockConfigError("operation timeouts must be positive")

    @classmethod
    def from_env(cls, **overrides: Any) -> SmartLockConfig:
        """Create configuration from environment variables.

        Reads ``SMARTLOCK_BROKER_URL``, ``SMARTLOCK_USERNAME``,
        ``SMARTLOCK_PASSWORD`` and the other optional ``SMARTLOCK_*``
        variables. Explicit keyword arguments override environment values.
        """
        env = os.environ

        _ENV_CONFIG_MAP = {
            "SMARTLOCK_BROKER_URL": "broker_url",
            "SMARTLOCK_USERNAME": "username",
            "SMARTLOCK_PASSWORD": "password",
            "SMARTLOCK_CLIENT_ID": "client_id",
            "SMARTLOCK_TOPIC_CMD": "topic_cmd",
            "SMARTLOCK_TOPIC_EVENTS": "topic_events",
            "SMARTLOCK_TOPIC_TAGS": "topic_tags",
        }
        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_CONFIG_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        _ENV_NUMERIC_MAP: dict[str, tuple[str, type]] = {
            "SMARTLOCK_KEEPALIVE": ("keepalive", int),
            "SMARTLOCK_RECONNECT_INTERVAL": ("reconnect_interval", int),
            "SMARTLOCK_ADD_TIMEOUT": ("add_timeout", float),
            "SMARTLOCK_DELETE_TIMEOUT": ("delete_timeout", float),
        }
        for env_key, (field_name, caster) in _ENV_NUMERIC_MAP.items():
            val = env.get(env_key)
            if val is None or field_name in overrides:
                continue
            try:
                config_kwargs[field_name] = caster(val)
            except ValueError as exc:
                raise SmartLockConfigError(f"{env_key} is not a valid number: {val!r}") from exc

        if "tls_insecure" not in overrides:
            config_kwargs["tls_insecure"] = _env_bool(env.get("SMARTLOCK_TLS_INSECURE"), False)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
