"""Transport interfaces."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence
from typing import Any, Protocol

from glowbridge.core.model import DiscoveredPeripheral

DiscoveryCallback = Callable[[DiscoveredPeripheral], None]
MessageHandler = Callable[[str, str], None]


class Characteristic(Protocol):
    uuid: str


class Radio(Protocol):
    async def start_scan(self, on_discover: DiscoveryCallback) -> None:
        """Start scanning (duplicates allowed); no-op if already scanning."""

    async def stop_scan(self) -> None:
        """Stop scanning; no-op if not scanning."""

    async def connect(self, peripheral: DiscoveredPeripheral, on_disconnect: Callable[[], None]) -> None:
        """Connect to a peripheral; ``on_disconnect`` fires when the link drops."""

    async def discover_services(self, peripheral: DiscoveredPeripheral, uuids: Sequence[str]) -> Sequence[Any]:
        """Return the services of a connected peripheral matching ``uuids``."""

    async def discover_characteristics(
        self,
        peripheral: DiscoveredPeripheral,
        service: Any,
        uuids: Sequence[str],
    ) -> Sequence[Characteristic]:
        """Return the characteristics of ``service`` matching ``uuids``."""

    async def write(
        self,
        peripheral: DiscoveredPeripheral,
        characteristic: Characteristic,
        data: bytes,
        *,
        with_response: bool = False,
    ) -> None:
        """Write ``data`` to a characteristic."""

    async def disconnect(self, peripheral: DiscoveredPeripheral) -> None:
        """Disconnect a peripheral."""


class MessageBus(Protocol):
    def set_message_handler(self, handler: MessageHandler) -> None:
        """Register the callback for inbound ``(topic, payload)`` messages."""

    def subscribe(self, topic: str) -> None:
        """Subscribe to a topic."""

    def publish(self, topic: str, payload: str, *, retain: bool = False) -> None:
        """Publish a payload to a topic."""

    def start(self, loop: asyncio.AbstractEventLoop) -> None:
        """Connect and deliver inbound messages on ``loop``."""

    def stop(self) -> None:
        """Disconnect from the broker."""
