from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

import pytest

from glowbridge.core.errors import TransportConnectError, TransportError, TransportSendError
from glowbridge.core.model import DeviceConfig, DeviceProfile, DiscoveredPeripheral
from glowbridge.core.profile_loader import load_profiles
from glowbridge.core.registry import DeviceRegistry

GOVEE_NAME = "ihoment_H6008_A1B2"
DEVICES = (
    DeviceConfig(address="AA:00:00:00:00:01", name="Lamp A", unique_id="lamp_a"),
    DeviceConfig(address="AA:00:00:00:00:02", name="Lamp B", unique_id="lamp_b"),
    DeviceConfig(address="AA:00:00:00:00:03", name="Lamp C", unique_id="lamp_c"),
)


@dataclass(frozen=True)
class FakeCharacteristic:
    uuid: str


class FakeRadio:
    def __init__(self) -> None:
        self.events: list[tuple[str, str]] = []
        self.writes: list[tuple[str, bytes]] = []
        self.fail: dict[str, str] = {}
        self.connect_delay: dict[str, float] = {}
        self.fail_writes = False
        self.scan_starts = 0
        self.scanning = False
        self.on_discover: Callable[[DiscoveredPeripheral], None] | None = None
        self._disconnect_callbacks: dict[str, Callable[[], None]] = {}

    async def start_scan(self, on_discover: Callable[[DiscoveredPeripheral], None]) -> None:
        self.scan_starts += 1
        self.scanning = True
        self.on_discover = on_discover

    async def stop_scan(self) -> None:
        self.scanning = False

    async def connect(self, peripheral: DiscoveredPeripheral, on_disconnect: Callable[[], None]) -> None:
        self.events.append(("connect", peripheral.address))
        self._disconnect_callbacks[peripheral.address] = on_disconnect
        await asyncio.sleep(self.connect_delay.get(peripheral.address, 0))
        if self.fail.get(peripheral.address) == "connect":
            raise TransportConnectError("refused")

    async def discover_services(self, peripheral: DiscoveredPeripheral, uuids) -> list[str]:
        self.events.append(("services", peripheral.address))
        await asyncio.sleep(0)
        failure = self.fail.get(peripheral.address)
        if failure == "services":
            raise TransportError("gatt error")
        if failure == "no_service":
            return []
        if failure == "drop":
            self.drop(peripheral.address)
        return [f"service:{uuids[0]}"]

    async def discover_characteristics(self, peripheral: DiscoveredPeripheral, service, uuids) -> list[FakeCharacteristic]:
        self.events.append(("characteristics", peripheral.address))
        await asyncio.sleep(0)
        failure = self.fail.get(peripheral.address)
        if failure == "characteristics":
            raise TransportError("gatt error")
        if failure == "missing_write":
            return [FakeCharacteristic(uuid) for uuid in uuids[1:]]
        return [FakeCharacteristic(uuid) for uuid in uuids]

    async def write(self, peripheral: DiscoveredPeripheral, characteristic, data: bytes, *, with_response: bool = False) -> None:
        if self.fail_writes:
            raise TransportSendError("write failed")
        self.writes.append((peripheral.address, data))

    async def disconnect(self, peripheral: DiscoveredPeripheral) -> None:
        self.events.append(("disconnect", peripheral.address))
        self.drop(peripheral.address)

    def drop(self, address: str) -> None:
        callback = self._disconnect_callbacks.pop(address, None)
        if callback is not None:
            callback()

    def connects(self) -> list[str]:
        return [address for event, address in self.events if event == "connect"]


class FakeBus:
    def __init__(self) -> None:
        self.published: list[tuple[str, str, bool]] = []
        self.subscriptions: list[str] = []
        self.handler = None
        self.started = False

    def set_message_handler(self, handler) -> None:
        self.handler = handler

    def start(self, loop) -> None:
        self.started = True

    def stop(self) -> None:
        self.started = False

    def subscribe(self, topic: str) -> None:
        self.subscriptions.append(topic)

    def publish(self, topic: str, payload: str, *, retain: bool = False) -> None:
        self.published.append((topic, payload, retain))


def peripheral(config: DeviceConfig, name: str = GOVEE_NAME) -> DiscoveredPeripheral:
    return DiscoveredPeripheral(address=config.address, name=name, handle=object())


async def settle(rounds: int = 100) -> None:
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture(autouse=True)
def isolated_xdg(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "cfg"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    monkeypatch.delenv("GLOWBRIDGE_MQTT_USERNAME", raising=False)
    monkeypatch.delenv("GLOWBRIDGE_MQTT_PASSWORD", raising=False)
    return tmp_path


@pytest.fixture
def govee() -> DeviceProfile:
    return load_profiles().profiles["govee_gu10"]


@pytest.fixture
def registry(govee: DeviceProfile) -> DeviceRegistry:
    return DeviceRegistry({govee.id: govee}, DEVICES)


@pytest.fixture
def radio() -> FakeRadio:
    return FakeRadio()


@pytest.fixture
def bus() -> FakeBus:
    return FakeBus()
