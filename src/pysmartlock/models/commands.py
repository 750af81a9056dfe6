"""Outbound command vocabulary for the ``cmd`` topic."""

from __future__ import annotations

import enum


class DeviceCommand(enum.StrEnum):
    """Plain-text commands understood by the lock firmware."""

    FETCH_TAGS = "fetchTags"
    ADD_TAG = "addTag"
    DELETE_TAG = "deleteTag"
    OPEN_DOOR = "OPEN"


def build_command(command: DeviceCommand, tag_id: str | None = None) -> str:
    """Render *command* as its wire payload.

    Only ``DELETE_TAG`` takes an argument and renders as ``deleteTag:<id>``.
    """
    if command == DeviceCommand.DELETE_TAG:
        if tag_id is None or not tag_id.strip():
            raise ValueError("deleteTag requires a tag id")
        return f"{command.value}:{tag_id.strip()}"
    if tag_id is not None:
        raise ValueError(f"{command.value} does not take a tag id")
    return command.value
