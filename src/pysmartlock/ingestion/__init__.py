"""Ingestion layer.

Translates raw MQTT messages from the device into typed
:class:`~pysmartlock.models.events.DeviceEvent` values.
"""
