"""Command frame encoding from profile templates.

Templates are ordered slots, each either a literal byte or a named
placeholder. Two checksum families exist on the wire:

* tagged XOR (power, brightness, color, keep-alive): XOR over the whole
  substituted frame, written into the ``checksum`` slot when the template has
  one;
* trailing XOR (color temperature): XOR over every byte but the last, always
  written into the last slot.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from enum import Enum
from functools import reduce

from glowbridge.core.errors import EncodingError
from glowbridge.core.model import CommandKind, CommandTemplate, Literal, Placeholder

CHECKSUM_SLOT = "checksum"
KELVIN_MIN = 2700
KELVIN_MAX = 6500


class ChecksumRule(str, Enum):
    TAGGED_XOR = "tagged_xor"
    TRAILING_XOR = "trailing_xor"


_CHECKSUM_RULES: dict[CommandKind, ChecksumRule] = {
    CommandKind.POWER: ChecksumRule.TAGGED_XOR,
    CommandKind.BRIGHTNESS: ChecksumRule.TAGGED_XOR,
    CommandKind.COLOR: ChecksumRule.TAGGED_XOR,
    CommandKind.KEEP_ALIVE: ChecksumRule.TAGGED_XOR,
    CommandKind.COLOR_TEMPERATURE: ChecksumRule.TRAILING_XOR,
}


def checksum_rule(kind: CommandKind) -> ChecksumRule:
    return _CHECKSUM_RULES[kind]


def xor_bytes(values: list[int] | bytes) -> int:
    return reduce(lambda acc, byte: acc ^ byte, values, 0)


def _check_byte(value: int, *, context: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise EncodingError(f"{context} must be an integer byte, got {value!r}")
    if not 0 <= value <= 0xFF:
        raise EncodingError(f"{context} must be in 0..255, got {value}")
    return value


def _substitute(template: CommandTemplate, values: Mapping[str, int]) -> tuple[list[int], int | None]:
    frame: list[int] = []
    checksum_index: int | None = None
    for index, slot in enumerate(template.slots):
        if isinstance(slot, Literal):
            frame.append(slot.value)
        elif isinstance(slot, Placeholder):
            if slot.name in values:
                frame.append(_check_byte(values[slot.name], context=f"{template.kind.value}.{slot.name}"))
            elif slot.name == CHECKSUM_SLOT:
                if checksum_index is None:
                    checksum_index = index
                frame.append(0)
            else:
                raise EncodingError(
                    f"No value for placeholder '{slot.name}' in {template.kind.value} template"
                )
    return frame, checksum_index


def encode(template: CommandTemplate, values: Mapping[str, int] | None = None) -> bytes:
    """Build the frame for ``template`` with ``values`` substituted.

    The checksum is applied according to the rule of the template's kind.
    """
    frame, checksum_index = _substitute(template, values or {})
    if not frame:
        raise EncodingError(f"{template.kind.value} template is empty")

    rule = checksum_rule(template.kind)
    if rule is ChecksumRule.TAGGED_XOR:
        if checksum_index is not None:
            frame[checksum_index] = xor_bytes(frame)
    elif rule is ChecksumRule.TRAILING_XOR:
        frame[-1] = xor_bytes(frame[:-1])
    return bytes(frame)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def scale_brightness(percentage: int, minimum: int, maximum: int) -> int:
    """Map 0..100 percent onto the device range ``[minimum, maximum]``."""
    if not 0 <= percentage <= 100:
        raise EncodingError(f"Brightness must be within 0..100, got {percentage}")
    return round_half_up((maximum - minimum) * percentage / 100 + minimum)


def mireds_to_kelvin(mireds: int) -> int:
    if mireds <= 0:
        raise EncodingError(f"Color temperature must be a positive mired value, got {mireds}")
    kelvin = round_half_up(1_000_000 / mireds)
    return max(KELVIN_MIN, min(kelvin, KELVIN_MAX))


def kelvin_bytes(kelvin: int) -> tuple[int, int]:
    return (kelvin >> 8) & 0xFF, kelvin & 0xFF


def mired_bounds() -> tuple[int, int]:
    """Mired range matching the kelvin clamp, as advertised to the hub."""
    return int(1_000_000 / KELVIN_MAX), int(1_000_000 / KELVIN_MIN)
