"""BLE GATT radio implementation on top of bleak."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from types import ModuleType
from typing import Any

from glowbridge.core.errors import TransportConnectError, TransportError, TransportSendError
from glowbridge.core.model import DiscoveredPeripheral
from glowbridge.transports.base import Characteristic, DiscoveryCallback

LOGGER = logging.getLogger(__name__)


def _bleak() -> ModuleType:
    try:
        import bleak  # type: ignore
    except Exception as exc:  # pragma: no cover - import failure path
        raise TransportConnectError(
            "BLE radio requires 'bleak'. Install dependency and retry."
        ) from exc
    return bleak


class BLEGATTRadio:
    """Scans and talks GATT to several peripherals through one adapter."""

    def __init__(self, *, adapter: str | None = None) -> None:
        self.adapter = adapter
        self._scanner: Any = None
        self._clients: dict[str, Any] = {}

    @property
    def scanning(self) -> bool:
        return self._scanner is not None

    async def start_scan(self, on_discover: DiscoveryCallback) -> None:
        if self._scanner is not None:
            return
        bleak = _bleak()

        def _detection_callback(device: Any, advertisement: Any) -> None:
            name = advertisement.local_name or device.name or ""
            on_discover(DiscoveredPeripheral(address=device.address, name=name, handle=device))

        kwargs: dict[str, Any] = {"detection_callback": _detection_callback}
        if self.adapter:
            kwargs["adapter"] = self.adapter
        scanner = bleak.BleakScanner(**kwargs)
        self._scanner = scanner
        try:
            await scanner.start()
        except Exception as exc:
            self._scanner = None
            raise TransportError(f"BLE scan could not start: {exc}") from exc
        LOGGER.info("Scanning started")

    async def stop_scan(self) -> None:
        scanner, self._scanner = self._scanner, None
        if scanner is None:
            return
        try:
            await scanner.stop()
        except Exception as exc:
            raise TransportError(f"BLE scan could not stop: {exc}") from exc
        LOGGER.info("Scanning stopped")

    async def connect(self, peripheral: DiscoveredPeripheral, on_disconnect: Callable[[], None]) -> None:
        bleak = _bleak()

        def _disconnected_callback(_: Any) -> None:
            on_disconnect()

        kwargs: dict[str, Any] = {"disconnected_callback": _disconnected_callback}
        if self.adapter:
            kwargs["adapter"] = self.adapter
        client = bleak.BleakClient(peripheral.handle or peripheral.address, **kwargs)
        self._clients[peripheral.address] = client
        try:
            await client.connect()
        except Exception as exc:
            raise TransportConnectError(f"BLE connect failed for {peripheral.address}: {exc}") from exc

    def _client(self, peripheral: DiscoveredPeripheral) -> Any:
        client = self._clients.get(peripheral.address)
        if client is None or not client.is_connected:
            raise TransportConnectError(f"{peripheral.address} is not connected")
        return client

    async def discover_services(self, peripheral: DiscoveredPeripheral, uuids: Sequence[str]) -> Sequence[Any]:
        client = self._client(peripheral)
        try:
            services = client.services
            found = [services.get_service(uuid) for uuid in uuids]
        except Exception as exc:
            raise TransportError(f"Service discovery failed for {peripheral.address}: {exc}") from exc
        return [service for service in found if service is not None]

    async def discover_characteristics(
        self,
        peripheral: DiscoveredPeripheral,
        service: Any,
        uuids: Sequence[str],
    ) -> Sequence[Characteristic]:
        self._client(peripheral)
        wanted = {uuid.lower() for uuid in uuids}
        try:
            return [char for char in service.characteristics if char.uuid.lower() in wanted]
        except Exception as exc:
            raise TransportError(
                f"Characteristic discovery failed for {peripheral.address}: {exc}"
            ) from exc

    async def write(
        self,
        peripheral: DiscoveredPeripheral,
        characteristic: Characteristic,
        data: bytes,
        *,
        with_response: bool = False,
    ) -> None:
        client = self._client(peripheral)
        try:
            await client.write_gatt_char(characteristic, data, response=with_response)
        except Exception as exc:
            raise TransportSendError(f"BLE write to {peripheral.address} failed: {exc}") from exc

    async def disconnect(self, peripheral: DiscoveredPeripheral) -> None:
        client = self._clients.pop(peripheral.address, None)
        if client is None:
            return
        try:
            await client.disconnect()
        except Exception as exc:
            raise TransportError(f"BLE disconnect failed for {peripheral.address}: {exc}") from exc
