"""MQTT message bus implementation on top of paho-mqtt."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import paho.mqtt.client as mqtt
from paho.mqtt.enums import CallbackAPIVersion

from glowbridge.core.config import MqttSettings
from glowbridge.core.errors import TransportConnectError
from glowbridge.transports.base import MessageHandler

LOGGER = logging.getLogger(__name__)


class MQTTBus:
    """paho client whose network loop runs on its own thread.

    Inbound messages are handed to the asyncio loop passed to :meth:`start`,
    so handlers always run on the event loop thread.
    """

    def __init__(self, settings: MqttSettings, *, client: Any = None) -> None:
        self.settings = settings
        self._client = client or mqtt.Client(
            callback_api_version=CallbackAPIVersion.VERSION2,
            client_id=settings.client_id,
            protocol=mqtt.MQTTv311,
        )
        if settings.username:
            self._client.username_pw_set(settings.username, settings.password)
        self._client.on_connect = self._on_connect
        self._client.on_message = self._on_message
        self._handler: MessageHandler | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._subscriptions: set[str] = set()

    def set_message_handler(self, handler: MessageHandler) -> None:
        self._handler = handler

    def start(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop
        try:
            self._client.connect(self.settings.host, self.settings.port, keepalive=60)
        except OSError as exc:
            raise TransportConnectError(
                f"Unable to connect to MQTT broker at {self.settings.host}:{self.settings.port}: {exc}"
            ) from exc
        self._client.loop_start()

    def stop(self) -> None:
        self._client.loop_stop()
        self._client.disconnect()

    def subscribe(self, topic: str) -> None:
        self._subscriptions.add(topic)
        self._client.subscribe(topic)

    def publish(self, topic: str, payload: str, *, retain: bool = False) -> None:
        self._client.publish(topic, payload, qos=0, retain=retain)

    def _on_connect(self, client: Any, userdata: Any, flags: Any, reason_code: Any, properties: Any = None) -> None:
        LOGGER.info("Connected to MQTT broker %s:%s (%s)", self.settings.host, self.settings.port, reason_code)
        for topic in sorted(self._subscriptions):
            client.subscribe(topic)

    def _on_message(self, client: Any, userdata: Any, message: Any) -> None:
        if self._handler is None or self._loop is None:
            return
        payload = (message.payload or b"").decode("utf-8", "replace")
        self._loop.call_soon_threadsafe(self._handler, message.topic, payload)
