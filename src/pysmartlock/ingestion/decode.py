"""Decoders for the two inbound device channels.

The ``events`` topic carries plain text from a fixed vocabulary; the
``tags`` topic carries a JSON document holding the full tag list. Decode
failures are logged and dropped here so that a malformed payload never
reaches the state machine.
"""

from __future__ import annotations

import json
import logging

from pydantic import ValidationError

from pysmartlock._mqtt import MqttMessage
from pysmartlock.exceptions import SmartLockDecodeError
from pysmartlock.models.events import DeviceEvent, DeviceEventKind, TagsSnapshot

_logger = logging.getLogger(__name__)

_EXACT_EVENTS: dict[str, DeviceEventKind] = {
    "tagAddFailed": DeviceEventKind.ADD_FAILED,
    "tagDeleteFailed": DeviceEventKind.DELETE_FAILED,
    "AddModeStarted": DeviceEventKind.ADD_MODE_ACKNOWLEDGED,
}

_PREFIX_EVENTS: tuple[tuple[str, DeviceEventKind], ...] = (
    ("tagAdded:", DeviceEventKind.ADD_SUCCEEDED),
    ("tagDeleted:", DeviceEventKind.DELETE_SUCCEEDED),
)


def _payload_text(payload: bytes | str) -> str:
    if isinstance(payload, bytes):
        return payload.decode("utf-8", errors="replace").strip()
    return payload.strip()


def decode_event_text(payload: bytes | str) -> DeviceEvent:
    """Decode an ``events`` topic payload.

    Anything outside the vocabulary decodes as ``UNKNOWN``.
    """
    text = _payload_text(payload)

    kind = _EXACT_EVENTS.get(text)
    if kind is not None:
        return DeviceEvent(kind=kind, raw=text)

    for prefix, kind in _PREFIX_EVENTS:
        if text.startswith(prefix):
            tag_id = text[len(prefix) :].strip()
            if not tag_id:
                break
            return DeviceEvent(kind=kind, tag_id=tag_id, raw=text)

    return DeviceEvent(kind=DeviceEventKind.UNKNOWN, raw=text)


def parse_tags_document(payload: bytes | str) -> TagsSnapshot:
    """Parse a ``tags`` topic payload, raising on malformed documents."""
    text = _payload_text(payload)
    try:
        document = json.loads(text)
    except ValueError as exc:
        raise SmartLockDecodeError(f"Tag list payload is not JSON: {exc}") from exc
    if not isinstance(document, dict):
        raise SmartLockDecodeError("Tag list payload is not a JSON object")
    try:
        return TagsSnapshot.model_validate(document)
    except ValidationError as exc:
        raise SmartLockDecodeError(f"Tag list payload failed validation: {exc.error_count()} error(s)") from exc


def decode_tags_payload(payload: bytes | str) -> DeviceEvent | None:
    """Decode a ``tags`` topic payload, or ``None`` when malformed."""
    try:
        snapshot = parse_tags_document(payload)
    except SmartLockDecodeError as exc:
        _logger.warning("Failed to parse tags: %s (payload=%r)", exc, _payload_text(payload)[:200])
        return None
    return snapshot.to_event(raw=_payload_text(payload))


def decode_message(message: MqttMessage, *, events_topic: str, tags_topic: str) -> DeviceEvent | None:
    """Route a raw MQTT message to the decoder for its topic."""
    if message.topic == tags_topic:
        return decode_tags_payload(message.payload)
    if message.topic == events_topic:
        event = decode_event_text(message.payload)
        if event.kind == DeviceEventKind.UNKNOWN:
            _logger.info("Ignoring unrecognized device event: %r", event.raw)
        return event
    _logger.debug("Ignoring message on unexpected topic=%s", message.topic)
    return None
