"""Semantic command values to encoded frames for a device profile."""

from __future__ import annotations

from glowbridge.core.codec import encode, kelvin_bytes, mireds_to_kelvin, scale_brightness
from glowbridge.core.errors import EncodingError
from glowbridge.core.model import CommandKind, CommandTemplate, DeviceProfile

POWER_ON = "ON"
POWER_OFF = "OFF"


def _template(profile: DeviceProfile, kind: CommandKind) -> CommandTemplate:
    template = profile.commands.get(kind)
    if template is None:
        raise EncodingError(f"Profile '{profile.id}' does not support {kind.value} commands")
    return template


def power_frame(profile: DeviceProfile, state: str) -> bytes:
    if state == POWER_ON:
        value = profile.power.on
    elif state == POWER_OFF:
        value = profile.power.off
    else:
        raise EncodingError(f"Power state must be {POWER_ON} or {POWER_OFF}, got {state!r}")
    return encode(_template(profile, CommandKind.POWER), {"state": value})


def brightness_frame(profile: DeviceProfile, percentage: int) -> bytes:
    level = scale_brightness(percentage, profile.brightness.min, profile.brightness.max)
    return encode(_template(profile, CommandKind.BRIGHTNESS), {"brightness": level})


def color_frame(profile: DeviceProfile, red: int, green: int, blue: int) -> bytes:
    return encode(
        _template(profile, CommandKind.COLOR),
        {"red": red, "green": green, "blue": blue},
    )


def color_temperature_frame(profile: DeviceProfile, mireds: int) -> bytes:
    high, low = kelvin_bytes(mireds_to_kelvin(mireds))
    return encode(
        _template(profile, CommandKind.COLOR_TEMPERATURE),
        {"temp_high_byte": high, "temp_low_byte": low},
    )


def keep_alive_frame(profile: DeviceProfile) -> bytes:
    return encode(_template(profile, CommandKind.KEEP_ALIVE))


def parse_int(payload: str, *, what: str) -> int:
    try:
        return int(payload.strip(), 10)
    except ValueError:
        raise EncodingError(f"Invalid {what} payload: {payload!r}") from None


def parse_rgb(payload: str) -> tuple[int, int, int]:
    parts = payload.split(",")
    if len(parts) != 3:
        raise EncodingError(f"Invalid color payload: {payload!r}")
    red, green, blue = (parse_int(part, what="color") for part in parts)
    return red, green, blue


def frame_for(profile: DeviceProfile, kind: CommandKind, payload: str) -> bytes:
    """Encode a raw textual payload (as received on the bus) for ``kind``."""
    if kind is CommandKind.POWER:
        return power_frame(profile, payload.strip())
    if kind is CommandKind.BRIGHTNESS:
        return brightness_frame(profile, parse_int(payload, what="brightness"))
    if kind is CommandKind.COLOR:
        return color_frame(profile, *parse_rgb(payload))
    if kind is CommandKind.COLOR_TEMPERATURE:
        return color_temperature_frame(profile, parse_int(payload, what="color temperature"))
    if kind is CommandKind.KEEP_ALIVE:
        return keep_alive_frame(profile)
    raise EncodingError(f"Unsupported command kind '{kind}'")
