"""Internal MQTT transport runtime."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, cast
from urllib.parse import urlsplit

import paho.mqtt.client as mqtt

from pysmartlock._redact import connection_params_for_log
from pysmartlock.config import SmartLockConfig
from pysmartlock.exceptions import SmartLockConfigError
from pysmartlock.models.commands import DeviceCommand, build_command

_DEFAULT_PORTS: dict[str, int] = {
    "mqtt": 1883,
    "tcp": 1883,
    "mqtts": 8883,
    "ssl": 8883,
    "ws": 80,
    "wss": 443,
}


@dataclass(frozen=True)
class BrokerEndpoint:
    """Broker address resolved from a broker URL."""

    host: str
    port: int
    transport: str
    tls: bool
    path: str = "/mqtt"


@dataclass(frozen=True)
class MqttMessage:
    """Raw inbound message as handed over from the paho thread."""

    topic: str
    payload: bytes


def parse_broker_url(raw_url: str) -> BrokerEndpoint:
    """Resolve ``scheme://host[:port][/path]`` into connection parameters."""
    value = raw_url.strip()
    if not value:
        raise SmartLockConfigError("Broker URL is empty")
    if "://" not in value:
        value = f"mqtt://{value}"

    parts = urlsplit(value)
    scheme = parts.scheme.lower()
    if scheme not in _DEFAULT_PORTS:
        raise SmartLockConfigError(f"Unsupported broker URL scheme: {scheme!r}")
    host = parts.hostname
    if not host:
        raise SmartLockConfigError(f"Broker URL has no host: {raw_url!r}")
    try:
        port = parts.port or _DEFAULT_PORTS[scheme]
    except ValueError as exc:
        raise SmartLockConfigError(f"Broker URL has an invalid port: {raw_url!r}") from exc

    websockets = scheme in {"ws", "wss"}
    return BrokerEndpoint(
        host=host,
        port=port,
        transport="websockets" if websockets else "tcp",
        tls=scheme in {"mqtts", "ssl", "wss"},
        path=(parts.path or "/mqtt") if websockets else "/mqtt",
    )


class SmartLockMqttRuntime:
    """Threaded paho-mqtt runtime that hands inbound messages to an asyncio loop.

    paho's network thread owns the connection and its fixed-interval
    reconnect loop; every callback that touches client state is marshalled
    onto *loop* with ``call_soon_threadsafe``.
    """

    def __init__(
        self,
        *,
        loop: asyncio.AbstractEventLoop,
        config: SmartLockConfig,
        on_message: Callable[[MqttMessage], None],
        on_connection_change: Callable[[bool], None] | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._loop = loop
        self._config = config
        self._on_message = on_message
        self._on_connection_change = on_connection_change
        self._logger = logger or logging.getLogger(__name__)
        self._client: mqtt.Client | None = None
        self._running = False
        self._connected = False

    @property
    def is_running(self) -> bool:
        """Whether the network loop has been started."""
        return self._running

    @property
    def connected(self) -> bool:
        """Whether the broker session is currently established."""
        return self._connected

    def start(self) -> None:
        """Begin connecting in the background; reconnects are automatic."""
        self.stop()
        endpoint = parse_broker_url(self._config.broker_url)
        self._logger.debug(
            "MQTT runtime start requested endpoint=%s params=%s",
            endpoint,
            connection_params_for_log(self._config),
        )

        client = mqtt.Client(
            callback_api_version=cast(Any, mqtt).CallbackAPIVersion.VERSION2,
            client_id=self._config.client_id,
            protocol=mqtt.MQTTv311,
            transport=endpoint.transport,
        )
        client.enable_logger(self._logger)
        if endpoint.transport == "websockets":
            client.ws_set_options(path=endpoint.path)
        if endpoint.tls:
            client.tls_set()
            if self._config.tls_insecure:
                client.tls_insecure_set(True)
        if self._config.username:
            client.username_pw_set(self._config.username, self._config.password)
        interval = self._config.reconnect_interval
        client.reconnect_delay_set(min_delay=interval, max_delay=interval)

        client.on_connect = self._handle_connect
        client.on_disconnect = self._handle_disconnect
        client.on_message = self._handle_message

        client.connect_async(endpoint.host, endpoint.port, keepalive=self._config.keepalive)
        client.loop_start()

        self._client = client
        self._running = True
        self._logger.debug("MQTT network loop started")

    def stop(self) -> None:
        """Stop and disconnect the current client if running."""
        client = self._client
        self._client = None
        was_running = self._running
        self._running = False
        self._set_connected(False)

        if client is None:
            return
        try:
            if was_running:
                self._logger.debug("MQTT disconnect requested")
                client.disconnect()
        finally:
            client.loop_stop()
            self._logger.debug("MQTT network loop stopped")

    def publish(self, topic: str, payload: str) -> bool:
        """Publish *payload* on *topic*; returns ``False`` instead of raising."""
        client = self._client
        if client is None or not self._connected:
            self._logger.warning("MQTT publish dropped (not connected) topic=%s payload=%s", topic, payload)
            return False
        try:
            info = client.publish(topic, payload, qos=0)
        except Exception:
            self._logger.warning("MQTT publish failed topic=%s payload=%s", topic, payload, exc_info=True)
            return False
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            self._logger.warning("MQTT publish rejected rc=%s topic=%s payload=%s", info.rc, topic, payload)
            return False
        self._logger.debug("MQTT published topic=%s payload=%s", topic, payload)
        return True

    # ------------------------------------------------------------------
    # paho callbacks (network thread)
    # ------------------------------------------------------------------

    def _handle_connect(
        self,
        client: mqtt.Client,
        _userdata: Any,
        _flags: Any,
        reason_code: Any,
        _properties: Any,
    ) -> None:
        if reason_code.value != 0:
            self._logger.warning("MQTT connect failed: %s", reason_code)
            return
        self._logger.info("MQTT connected")
        self._connected = True
        for topic in (self._config.topic_events, self._config.topic_tags):
            self._logger.debug("MQTT subscribing topic=%s", topic)
            client.subscribe(topic, qos=0)
        client.publish(self._config.topic_cmd, build_command(DeviceCommand.FETCH_TAGS), qos=0)
        self._post_connection_change(True)

    def _handle_disconnect(
        self,
        _client: mqtt.Client,
        _userdata: Any,
        _disconnect_flags: Any,
        reason_code: Any,
        _properties: Any,
    ) -> None:
        if self._running:
            self._logger.info(
                "MQTT disconnected: %s (retrying every %ss)",
                reason_code,
                self._config.reconnect_interval,
            )
        self._set_connected(False)

    def _handle_message(self, _client: mqtt.Client, _userdata: Any, msg: mqtt.MQTTMessage) -> None:
        self._logger.debug("Received PUBLISH topic=%s bytes=%d", msg.topic, len(msg.payload))
        self._post(self._on_message, MqttMessage(topic=msg.topic, payload=bytes(msg.payload)))

    def _set_connected(self, connected: bool) -> None:
        if self._connected == connected:
            return
        self._connected = connected
        self._post_connection_change(connected)

    def _post_connection_change(self, connected: bool) -> None:
        if self._on_connection_change is not None:
            self._post(self._on_connection_change, connected)

    def _post(self, callback: Callable[[Any], None], arg: Any) -> None:
        try:
            self._loop.call_soon_threadsafe(callback, arg)
        except RuntimeError:
            # Loop already closed during shutdown.
            self._logger.debug("Dropping MQTT callback after loop shutdown")
