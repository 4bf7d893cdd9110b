"""MQTT topic scheme and Home Assistant discovery payloads."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from glowbridge.core.codec import mired_bounds
from glowbridge.core.commands import POWER_OFF, POWER_ON
from glowbridge.core.errors import CommandError
from glowbridge.core.model import CommandKind, DeviceConfig, DeviceProfile

# Sub-topic per capability; power lives directly under the device.
_CAPABILITY_SEGMENTS: dict[CommandKind, str] = {
    CommandKind.POWER: "",
    CommandKind.BRIGHTNESS: "brightness",
    CommandKind.COLOR: "color",
    CommandKind.COLOR_TEMPERATURE: "color_temp",
}
_SEGMENT_KINDS = {segment: kind for kind, segment in _CAPABILITY_SEGMENTS.items() if segment}

COMMANDABLE_KINDS = tuple(_CAPABILITY_SEGMENTS)


@dataclass(frozen=True)
class TopicScheme:
    root: str = "home/lights"
    discovery_prefix: str = "homeassistant"

    def _base(self, unique_id: str, kind: CommandKind) -> str:
        segment = _CAPABILITY_SEGMENTS.get(kind)
        if segment is None:
            raise CommandError(f"{kind.value} is not commandable over MQTT")
        return f"{self.root}/{unique_id}/{segment}" if segment else f"{self.root}/{unique_id}"

    def command_topic(self, unique_id: str, kind: CommandKind) -> str:
        return f"{self._base(unique_id, kind)}/set"

    def state_topic(self, unique_id: str, kind: CommandKind) -> str:
        return f"{self._base(unique_id, kind)}/state"

    def discovery_topic(self, unique_id: str) -> str:
        return f"{self.discovery_prefix}/light/{unique_id}/config"

    def command_topics(self, unique_id: str, profile: DeviceProfile) -> list[str]:
        return [
            self.command_topic(unique_id, kind)
            for kind in COMMANDABLE_KINDS
            if profile.supports(kind)
        ]

    def parse_command_topic(self, topic: str) -> tuple[str, CommandKind]:
        """Split ``root/<uid>/[<capability>/]set`` into unique id and kind."""
        prefix = f"{self.root}/"
        if not topic.startswith(prefix):
            raise CommandError(f"Unknown topic format: {topic}")
        parts = topic[len(prefix):].split("/")
        if len(parts) == 2 and parts[1] == "set" and parts[0]:
            return parts[0], CommandKind.POWER
        if len(parts) == 3 and parts[2] == "set" and parts[0]:
            kind = _SEGMENT_KINDS.get(parts[1])
            if kind is None:
                raise CommandError(f"Unknown command type: {parts[1]}")
            return parts[0], kind
        raise CommandError(f"Unknown topic format: {topic}")


def discovery_payload(scheme: TopicScheme, config: DeviceConfig, profile: DeviceProfile) -> dict[str, Any]:
    uid = config.unique_id
    payload: dict[str, Any] = {
        # Empty so the hub does not prefix the entity name with the device name.
        "name": "",
        "unique_id": uid,
        "command_topic": scheme.command_topic(uid, CommandKind.POWER),
        "state_topic": scheme.state_topic(uid, CommandKind.POWER),
        "payload_on": POWER_ON,
        "payload_off": POWER_OFF,
    }
    if profile.supports(CommandKind.BRIGHTNESS):
        payload["brightness_command_topic"] = scheme.command_topic(uid, CommandKind.BRIGHTNESS)
        payload["brightness_state_topic"] = scheme.state_topic(uid, CommandKind.BRIGHTNESS)
        payload["brightness_scale"] = 100

    color_modes: list[str] = []
    if profile.supports(CommandKind.COLOR):
        payload["rgb_command_topic"] = scheme.command_topic(uid, CommandKind.COLOR)
        payload["rgb_state_topic"] = scheme.state_topic(uid, CommandKind.COLOR)
        color_modes.append("rgb")
    if profile.supports(CommandKind.COLOR_TEMPERATURE):
        payload["color_temp_command_topic"] = scheme.command_topic(uid, CommandKind.COLOR_TEMPERATURE)
        payload["color_temp_state_topic"] = scheme.state_topic(uid, CommandKind.COLOR_TEMPERATURE)
        payload["min_mireds"], payload["max_mireds"] = mired_bounds()
        color_modes.append("color_temp")
    if not color_modes:
        color_modes.append("brightness" if profile.supports(CommandKind.BRIGHTNESS) else "onoff")
    payload["supported_color_modes"] = color_modes

    payload["device"] = {
        "identifiers": [uid],
        "name": config.name,
        "manufacturer": profile.manufacturer,
        "model": profile.model,
    }
    return payload
