from __future__ import annotations

from pathlib import Path

import pytest

from glowbridge.core.config import default_config_path, load_config
from glowbridge.core.errors import ConfigError

CONFIG = """\
mqtt:
  host: broker.local
  port: 1884
  topic_root: /home/lights/
timing:
  connect_timeout_s: 5
devices:
  - address: "aa:bb:cc:dd:ee:01"
    name: Hall Spot
    unique_id: hall_spot
"""


def _write(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "config.yaml"
    path.write_text(text, encoding="utf-8")
    return path


def test_load_config_applies_defaults_and_normalizes(tmp_path: Path) -> None:
    config = load_config(_write(tmp_path, CONFIG))

    assert config.mqtt.host == "broker.local"
    assert config.mqtt.port == 1884
    assert config.mqtt.topic_root == "home/lights"
    assert config.mqtt.discovery_prefix == "homeassistant"
    assert config.mqtt.username is None
    assert config.timing.connect_timeout_s == 5.0
    assert config.timing.keep_alive_interval_s == 2.0
    assert [(d.address, d.unique_id) for d in config.devices] == [("AA:BB:CC:DD:EE:01", "hall_spot")]


def test_credentials_come_from_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GLOWBRIDGE_MQTT_USERNAME", "bridge")
    monkeypatch.setenv("GLOWBRIDGE_MQTT_PASSWORD", "secret")

    config = load_config(_write(tmp_path, CONFIG))

    assert (config.mqtt.username, config.mqtt.password) == ("bridge", "secret")


def test_default_path_follows_xdg(isolated_xdg: Path) -> None:
    path = default_config_path()
    assert path == isolated_xdg / "cfg" / "glowbridge" / "config.yaml"

    with pytest.raises(ConfigError, match="does not exist"):
        load_config()

    path.parent.mkdir(parents=True)
    path.write_text(CONFIG, encoding="utf-8")
    assert load_config().devices[0].unique_id == "hall_spot"


@pytest.mark.parametrize(
    ("second", "message"),
    [
        ('{address: "AA:BB:CC:DD:EE:02", name: Other, unique_id: hall_spot}', "Duplicate unique_id"),
        ('{address: "AA:BB:CC:DD:EE:01", name: Other, unique_id: other}', "Duplicate address"),
    ],
)
def test_duplicate_devices_are_rejected(tmp_path: Path, second: str, message: str) -> None:
    with pytest.raises(ConfigError, match=message):
        load_config(_write(tmp_path, CONFIG + f"  - {second}\n"))


@pytest.mark.parametrize(
    "text",
    [
        "mqtt: {host: x}\n",
        "devices: []\nextra: true\n",
        "devices:\n  - {address: AA, name: Bad, unique_id: 'has space'}\n",
        "devices: [\n",
    ],
)
def test_invalid_config_raises_config_error(tmp_path: Path, text: str) -> None:
    with pytest.raises(ConfigError):
        load_config(_write(tmp_path, text))
