"""Service layer wiring registry, connection manager, radio, and MQTT."""

from __future__ import annotations

import asyncio
import json
import logging

from glowbridge.core.config import BridgeConfig
from glowbridge.core.errors import CommandError, GlowbridgeError
from glowbridge.core.manager import ConnectionManager
from glowbridge.core.model import CommandKind, DeviceProfile
from glowbridge.core.profile_loader import load_profiles
from glowbridge.core.registry import DeviceRegistry
from glowbridge.core.session import DeviceSession
from glowbridge.core.topics import TopicScheme, discovery_payload
from glowbridge.transports.base import MessageBus, Radio
from glowbridge.transports.ble_gatt import BLEGATTRadio
from glowbridge.transports.mqtt import MQTTBus

LOGGER = logging.getLogger(__name__)


class BridgeService:
    def __init__(
        self,
        config: BridgeConfig,
        *,
        radio: Radio | None = None,
        bus: MessageBus | None = None,
        profiles: dict[str, DeviceProfile] | None = None,
        adapter: str | None = None,
    ) -> None:
        self.config = config
        self.load_warnings: tuple[str, ...] = ()
        if profiles is None:
            loaded = load_profiles()
            profiles = loaded.profiles
            self.load_warnings = loaded.warnings
        self.registry = DeviceRegistry(profiles, config.devices)
        self.topics = TopicScheme(
            root=config.mqtt.topic_root,
            discovery_prefix=config.mqtt.discovery_prefix,
        )
        if radio is None:
            radio = BLEGATTRadio(adapter=adapter)
        if bus is None:
            bus = MQTTBus(config.mqtt)
        self.radio = radio
        self.bus = bus
        self.bus.set_message_handler(self.handle_message)
        self.manager = ConnectionManager(
            self.registry,
            radio,
            announcer=self,
            connect_timeout_s=config.timing.connect_timeout_s,
            keep_alive_interval_s=config.timing.keep_alive_interval_s,
        )
        self._tasks: set[asyncio.Task[bytes | None]] = set()

    def announce(self, session: DeviceSession) -> None:
        """Publish the discovery document and listen for the device's commands."""
        payload = discovery_payload(self.topics, session.config, session.profile)
        self.bus.publish(
            self.topics.discovery_topic(session.unique_id),
            json.dumps(payload),
            retain=True,
        )
        for topic in self.topics.command_topics(session.unique_id, session.profile):
            self.bus.subscribe(topic)

    async def dispatch(self, unique_id: str, kind: CommandKind, payload: str) -> bytes:
        """Encode and write a command for a connected device, then echo its state."""
        session = self.manager.session(unique_id)
        if session is None:
            raise CommandError(f"Unknown device ID: {unique_id}")
        frame = await session.send_command(kind, payload)
        self.bus.publish(self.topics.state_topic(unique_id, kind), payload, retain=True)
        return frame

    def handle_message(self, topic: str, payload: str) -> None:
        try:
            unique_id, kind = self.topics.parse_command_topic(topic)
        except CommandError as exc:
            LOGGER.warning("%s", exc)
            return
        task = asyncio.get_running_loop().create_task(self._dispatch_logged(unique_id, kind, payload))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _dispatch_logged(self, unique_id: str, kind: CommandKind, payload: str) -> bytes | None:
        try:
            return await self.dispatch(unique_id, kind, payload)
        except GlowbridgeError as exc:
            LOGGER.warning("Dropped %s command for %s: %s", kind.value, unique_id, exc)
            return None

    async def run(self, stop: asyncio.Event | None = None) -> None:
        """Run until ``stop`` is set (or forever)."""
        stop = stop or asyncio.Event()
        self.bus.start(asyncio.get_running_loop())
        try:
            await self.manager.start()
            await stop.wait()
        finally:
            await self.manager.close()
            self.bus.stop()
