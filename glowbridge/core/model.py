"""Core data models used across loader, encoder, manager, and CLI."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union


class CommandKind(str, Enum):
    POWER = "power"
    BRIGHTNESS = "brightness"
    COLOR = "color"
    COLOR_TEMPERATURE = "color_temperature"
    KEEP_ALIVE = "keep_alive"


class NegotiationStage(str, Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    DISCOVERING_SERVICES = "discovering_services"
    DISCOVERING_CHARACTERISTICS = "discovering_characteristics"
    READY = "ready"
    FAILED = "failed"


class NegotiationFailure(str, Enum):
    CONNECT_TIMEOUT = "connect_timeout"
    CONNECT_ERROR = "connect_error"
    SERVICE_DISCOVERY_ERROR = "service_discovery_error"
    CHARACTERISTIC_DISCOVERY_ERROR = "characteristic_discovery_error"
    MISSING_WRITE_ENDPOINT = "missing_write_endpoint"
    DROPPED = "dropped"


@dataclass(frozen=True)
class Literal:
    value: int


@dataclass(frozen=True)
class Placeholder:
    name: str


Slot = Union[Literal, Placeholder]


@dataclass(frozen=True)
class CommandTemplate:
    kind: CommandKind
    slots: tuple[Slot, ...]


@dataclass(frozen=True)
class MatchRules:
    name_contains: tuple[str, ...]


@dataclass(frozen=True)
class EndpointSpec:
    service_uuid: str
    write_char_uuid: str
    read_char_uuid: str | None = None
    write_with_response: bool = False


@dataclass(frozen=True)
class PowerValues:
    on: int
    off: int


@dataclass(frozen=True)
class BrightnessRange:
    min: int
    max: int


@dataclass(frozen=True)
class DeviceProfile:
    id: str
    name: str
    manufacturer: str
    model: str
    match: MatchRules
    endpoints: EndpointSpec
    commands: dict[CommandKind, CommandTemplate]
    power: PowerValues
    brightness: BrightnessRange

    def supports(self, kind: CommandKind) -> bool:
        return kind in self.commands


@dataclass(frozen=True)
class DeviceConfig:
    address: str
    name: str
    unique_id: str


@dataclass(frozen=True)
class DiscoveredPeripheral:
    address: str
    name: str
    handle: Any = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class PendingConnection:
    peripheral: DiscoveredPeripheral
    config: DeviceConfig
    profile: DeviceProfile
