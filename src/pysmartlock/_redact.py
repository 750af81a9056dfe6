"""Log-safe rendering of broker connection parameters."""

from __future__ import annotations

from typing import Any
from urllib.parse import urlsplit, urlunsplit

from pysmartlock.config import SmartLockConfig

REDACTED = "<redacted>"


def _strip_userinfo(url: str) -> str:
    parts = urlsplit(url)
    if parts.password is None and parts.username is None:
        return url
    host = parts.hostname or ""
    if parts.port is not None:
        host = f"{host}:{parts.port}"
    return urlunsplit(parts._replace(netloc=f"{REDACTED}@{host}"))


def connection_params_for_log(config: SmartLockConfig) -> dict[str, Any]:
    """Connection parameters with the password and any URL credentials masked."""
    return {
        "broker_url": _strip_userinfo(config.broker_url),
        "client_id": config.client_id,
        "username": config.username,
        "password": REDACTED if config.password else config.password,
        "tls_insecure": config.tls_insecure,
    }
