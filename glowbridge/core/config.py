"""Bridge configuration: MQTT broker, timing and configured devices."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from jsonschema import ValidationError

from glowbridge.core.errors import ConfigError
from glowbridge.core.model import DeviceConfig
from glowbridge.core.profile_loader import load_schema_validator, read_yaml

ENV_MQTT_USERNAME = "GLOWBRIDGE_MQTT_USERNAME"
ENV_MQTT_PASSWORD = "GLOWBRIDGE_MQTT_PASSWORD"


@dataclass(frozen=True)
class MqttSettings:
    host: str = "localhost"
    port: int = 1883
    username: str | None = None
    password: str | None = None
    client_id: str = "glowbridge"
    topic_root: str = "home/lights"
    discovery_prefix: str = "homeassistant"


@dataclass(frozen=True)
class TimingSettings:
    connect_timeout_s: float = 10.0
    keep_alive_interval_s: float = 2.0


@dataclass(frozen=True)
class BridgeConfig:
    mqtt: MqttSettings = field(default_factory=MqttSettings)
    timing: TimingSettings = field(default_factory=TimingSettings)
    devices: tuple[DeviceConfig, ...] = ()


def default_config_path() -> Path:
    xdg_config = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    return xdg_config / "glowbridge/config.yaml"


def _build_devices(entries: list[dict[str, Any]], source: Path) -> tuple[DeviceConfig, ...]:
    devices: list[DeviceConfig] = []
    seen_ids: set[str] = set()
    seen_addresses: set[str] = set()
    for entry in entries:
        device = DeviceConfig(
            address=entry["address"].strip().upper(),
            name=entry["name"],
            unique_id=entry["unique_id"],
        )
        if device.unique_id in seen_ids:
            raise ConfigError(f"Duplicate unique_id '{device.unique_id}' in {source}")
        if device.address in seen_addresses:
            raise ConfigError(f"Duplicate address '{device.address}' in {source}")
        seen_ids.add(device.unique_id)
        seen_addresses.add(device.address)
        devices.append(device)
    return tuple(devices)


def build_config(doc: dict[str, Any], source: Path) -> BridgeConfig:
    validator = load_schema_validator("config.schema.json")
    try:
        validator.validate(doc)
    except ValidationError as exc:
        path = ".".join(str(p) for p in exc.path)
        where = f" ({path})" if path else ""
        raise ConfigError(f"Schema validation failed for {source}{where}: {exc.message}") from exc

    mqtt_doc = dict(doc.get("mqtt", {}))
    if os.environ.get(ENV_MQTT_USERNAME):
        mqtt_doc["username"] = os.environ[ENV_MQTT_USERNAME]
    if os.environ.get(ENV_MQTT_PASSWORD):
        mqtt_doc["password"] = os.environ[ENV_MQTT_PASSWORD]
    if "topic_root" in mqtt_doc:
        mqtt_doc["topic_root"] = mqtt_doc["topic_root"].strip("/")

    timing_doc = doc.get("timing", {})
    return BridgeConfig(
        mqtt=MqttSettings(**mqtt_doc),
        timing=TimingSettings(
            connect_timeout_s=float(timing_doc.get("connect_timeout_s", 10.0)),
            keep_alive_interval_s=float(timing_doc.get("keep_alive_interval_s", 2.0)),
        ),
        devices=_build_devices(doc["devices"], source),
    )


def load_config(path: Path | None = None) -> BridgeConfig:
    source = path or default_config_path()
    if not source.exists():
        raise ConfigError(f"Config file {source} does not exist")
    doc = read_yaml(source, unreadable=ConfigError, invalid=ConfigError)
    return build_config(doc, source)
