"""Live state of one connected device and its keep-alive loop."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

from glowbridge.core.commands import frame_for, keep_alive_frame
from glowbridge.core.errors import TransportError
from glowbridge.core.model import CommandKind, DeviceConfig, DeviceProfile, DiscoveredPeripheral
from glowbridge.transports.base import Characteristic, Radio

LOGGER = logging.getLogger(__name__)


@dataclass(eq=False)
class DeviceSession:
    config: DeviceConfig
    profile: DeviceProfile
    peripheral: DiscoveredPeripheral
    characteristic: Characteristic
    radio: Radio
    keep_alive_task: asyncio.Task[None] | None = field(default=None, repr=False)

    @property
    def unique_id(self) -> str:
        return self.config.unique_id

    async def send(self, frame: bytes) -> bool:
        """Write a frame to the control endpoint. Failures are logged, not raised."""
        try:
            await self.radio.write(
                self.peripheral,
                self.characteristic,
                frame,
                with_response=self.profile.endpoints.write_with_response,
            )
        except TransportError as exc:
            LOGGER.error("Error writing to %s: %s", self.config.name, exc)
            return False
        return True

    async def send_command(self, kind: CommandKind, payload: str) -> bytes:
        """Encode ``payload`` for ``kind`` and write it. Raises ``EncodingError``."""
        frame = frame_for(self.profile, kind, payload)
        await self.send(frame)
        return frame

    def start_keep_alive(self, interval_s: float) -> None:
        if self.keep_alive_task is not None:
            return
        self.keep_alive_task = asyncio.get_running_loop().create_task(
            self._keep_alive_loop(interval_s),
            name=f"keep-alive-{self.unique_id}",
        )

    def stop_keep_alive(self) -> bool:
        task, self.keep_alive_task = self.keep_alive_task, None
        if task is None:
            return False
        task.cancel()
        return True

    async def _keep_alive_loop(self, interval_s: float) -> None:
        frame = keep_alive_frame(self.profile)
        while True:
            LOGGER.debug("Keep-alive to %s", self.config.name)
            await self.send(frame)
            await asyncio.sleep(interval_s)
