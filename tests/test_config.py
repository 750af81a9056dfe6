from __future__ import annotations

import pytest

from pysmartlock.config import SmartLockConfig
from pysmartlock.exceptions import SmartLockConfigError


def test_defaults_match_device_topics() -> None:
    config = SmartLockConfig()
    assert config.topic_cmd == "smartlock/esp32/cmd"
    assert config.topic_events == "smartlock/esp32/events"
    assert config.topic_tags == "smartlock/esp32/tags"
    assert config.reconnect_interval == 3
    assert config.add_timeout == 25.0
    assert config.client_id.startswith("web-client-")
    assert len(config.client_id) == len("web-client-") + 6


def test_client_ids_are_randomized() -> None:
    assert SmartLockConfig().client_id != SmartLockConfig().client_id


def test_from_env_reads_variables_and_overrides_win(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SMARTLOCK_BROKER_URL", "wss://broker.example:8884/mqtt")
    monkeypatch.setenv("SMARTLOCK_USERNAME", "smart_lock_web")
    monkeypatch.setenv("SMARTLOCK_PASSWORD", "secret")
    monkeypatch.setenv("SMARTLOCK_ADD_TIMEOUT", "30")
    monkeypatch.setenv("SMARTLOCK_RECONNECT_INTERVAL", "5")
    monkeypatch.setenv("SMARTLOCK_TLS_INSECURE", "yes")

    config = SmartLockConfig.from_env(reconnect_interval=7)

    assert config.broker_url == "wss://broker.example:8884/mqtt"
    assert config.username == "smart_lock_web"
    assert config.password == "secret"
    assert config.add_timeout == 30.0
    assert config.reconnect_interval == 7
    assert config.tls_insecure is True


def test_from_env_rejects_bad_numbers(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SMARTLOCK_KEEPALIVE", "soon")
    with pytest.raises(SmartLockConfigError):
        SmartLockConfig.from_env()


@pytest.mark.parametrize(
    "kwargs",
    [
        {"broker_url": " "},
        {"topic_cmd": ""},
        {"reconnect_interval": 0},
        {"add_timeout": 0},
        {"delete_timeout": -1.0},
    ],
)
def test_invalid_values_rejected(kwargs: dict[str, object]) -> None:
    with pytest.raises(SmartLockConfigError):
        SmartLockConfig(**kwargs)  # type: ignore[arg-type]
