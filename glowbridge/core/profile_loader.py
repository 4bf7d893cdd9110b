"""Profile loading and validation for YAML-based product profiles."""

from __future__ import annotations

import json
import logging
import os
import re
from dataclasses import dataclass
from importlib import resources
from importlib.resources.abc import Traversable
from pathlib import Path
from typing import Any

import yaml
from jsonschema import ValidationError, validators

from glowbridge.core.codec import CHECKSUM_SLOT
from glowbridge.core.errors import GlowbridgeError, ProfileLoadError, ProfileValidationError
from glowbridge.core.model import (
    BrightnessRange,
    CommandKind,
    CommandTemplate,
    DeviceProfile,
    EndpointSpec,
    Literal,
    MatchRules,
    Placeholder,
    PowerValues,
    Slot,
)

_BYTE_RE = re.compile(r"^[0-9a-f]{2}$")
_PLACEHOLDER_RE = re.compile(r"^\{([a-z_]+)\}$")
_UUID_RE = re.compile(r"^[0-9a-f]{4}$|^[0-9a-f]{8}$|^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$")
_MAX_FRAME_BYTES = 512
_REQUIRED_PLACEHOLDERS: dict[CommandKind, frozenset[str]] = {
    CommandKind.POWER: frozenset({"state"}),
    CommandKind.BRIGHTNESS: frozenset({"brightness"}),
    CommandKind.COLOR: frozenset({"red", "green", "blue"}),
    CommandKind.COLOR_TEMPERATURE: frozenset({"temp_high_byte", "temp_low_byte"}),
    CommandKind.KEEP_ALIVE: frozenset(),
}
LOGGER = logging.getLogger(__name__)


class UniqueKeyLoader(yaml.SafeLoader):
    """YAML loader that rejects duplicate mapping keys."""


# "on"/"off" are power keys, not booleans.
UniqueKeyLoader.yaml_implicit_resolvers = {
    key: list(value) for key, value in yaml.SafeLoader.yaml_implicit_resolvers.items()
}

for first_char, mappings in list(UniqueKeyLoader.yaml_implicit_resolvers.items()):
    UniqueKeyLoader.yaml_implicit_resolvers[first_char] = [
        (tag, regexp)
        for tag, regexp in mappings
        if tag != "tag:yaml.org,2002:bool"
    ]


def _construct_mapping(loader: UniqueKeyLoader, node: yaml.Node, deep: bool = False) -> dict[str, Any]:
    mapping: dict[str, Any] = {}
    for key_node, value_node in node.value:
        key = loader.construct_object(key_node, deep=deep)
        if key in mapping:
            raise ProfileValidationError(f"Duplicate key '{key}' in YAML document")
        mapping[key] = loader.construct_object(value_node, deep=deep)
    return mapping


UniqueKeyLoader.add_constructor(
    yaml.resolver.BaseResolver.DEFAULT_MAPPING_TAG,
    _construct_mapping,
)


@dataclass(frozen=True)
class LoadedProfiles:
    profiles: dict[str, DeviceProfile]
    warnings: tuple[str, ...]


def load_schema_validator(name: str) -> Any:
    schema_text = resources.files("glowbridge.schemas").joinpath(name).read_text(
        encoding="utf-8"
    )
    schema = json.loads(schema_text)
    validator_cls = validators.validator_for(schema)
    validator_cls.check_schema(schema)
    return validator_cls(schema)


def _profile_dirs() -> tuple[Path, Path]:
    xdg_config = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    xdg_data = Path(os.environ.get("XDG_DATA_HOME", Path.home() / ".local/share"))
    return xdg_config / "glowbridge/profiles", xdg_data / "glowbridge/profiles"


def read_yaml(
    path: Path | Traversable,
    *,
    unreadable: type[GlowbridgeError] = ProfileLoadError,
    invalid: type[GlowbridgeError] = ProfileValidationError,
) -> dict[str, Any]:
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise unreadable(f"Could not read {path}: {exc}") from exc

    try:
        loaded = yaml.load(content, Loader=UniqueKeyLoader)
    except yaml.YAMLError as exc:
        raise invalid(f"Invalid YAML in {path}: {exc}") from exc
    except ProfileValidationError as exc:
        raise invalid(f"{exc} in {path}") from exc

    if not isinstance(loaded, dict):
        raise invalid(f"File {path} must contain a mapping at root")
    return loaded


def parse_frame(text: str, *, kind: CommandKind, context: str) -> CommandTemplate:
    """Parse ``"33 01 {state} ... {checksum}"`` into a command template."""
    tokens = text.strip().lower().split()
    if not tokens:
        raise ProfileValidationError(f"{context} must not be empty")
    if len(tokens) > _MAX_FRAME_BYTES:
        raise ProfileValidationError(
            f"{context} exceeds max frame size {_MAX_FRAME_BYTES} bytes"
        )

    slots: list[Slot] = []
    for token in tokens:
        if _BYTE_RE.match(token):
            slots.append(Literal(int(token, 16)))
            continue
        match = _PLACEHOLDER_RE.match(token)
        if match is None:
            raise ProfileValidationError(
                f"{context} token '{token}' is neither a hex byte nor a {{placeholder}}"
            )
        slots.append(Placeholder(match.group(1)))

    names = {slot.name for slot in slots if isinstance(slot, Placeholder)}
    allowed = _REQUIRED_PLACEHOLDERS[kind] | {CHECKSUM_SLOT}
    unknown = names - allowed
    if unknown:
        raise ProfileValidationError(
            f"{context} uses unknown placeholder(s): {', '.join(sorted(unknown))}"
        )
    missing = _REQUIRED_PLACEHOLDERS[kind] - names
    if missing:
        raise ProfileValidationError(
            f"{context} is missing placeholder(s): {', '.join(sorted(missing))}"
        )
    return CommandTemplate(kind=kind, slots=tuple(slots))


def _normalize_uuid(value: str, *, context: str) -> str:
    normalized = value.strip().lower()
    if not _UUID_RE.match(normalized):
        raise ProfileValidationError(
            f"{context} must be a 16-bit, 32-bit, or 128-bit UUID string"
        )
    return normalized


def _normalize_bool(value: Any, *, context: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered == "true":
            return True
        if lowered == "false":
            return False
    raise ProfileValidationError(f"{context} must be boolean true/false")


def _build_profile(doc: dict[str, Any], source: Path | Traversable) -> DeviceProfile:
    validator = load_schema_validator("profile.schema.json")
    try:
        validator.validate(doc)
    except ValidationError as exc:
        path = ".".join(str(p) for p in exc.path)
        where = f" ({path})" if path else ""
        raise ProfileValidationError(f"Schema validation failed for {source}{where}: {exc.message}") from exc

    profile_id = doc["id"]
    commands: dict[CommandKind, CommandTemplate] = {}
    for kind_name, command_spec in doc["commands"].items():
        kind = CommandKind(kind_name)
        commands[kind] = parse_frame(
            command_spec["frame"],
            kind=kind,
            context=f"{profile_id}.commands.{kind_name}.frame",
        )

    power_spec = doc["commands"]["power"]
    brightness_spec = doc["commands"].get("brightness", {})
    brightness = BrightnessRange(
        min=int(brightness_spec.get("min", 0)),
        max=int(brightness_spec.get("max", 0xFF)),
    )
    if brightness.min > brightness.max:
        raise ProfileValidationError(
            f"{profile_id}.commands.brightness min must not exceed max"
        )

    endpoints = doc["endpoints"]
    return DeviceProfile(
        id=profile_id,
        name=doc["name"],
        manufacturer=doc.get("manufacturer", ""),
        model=doc.get("model", ""),
        match=MatchRules(name_contains=tuple(doc["match"]["name_contains"])),
        endpoints=EndpointSpec(
            service_uuid=_normalize_uuid(
                endpoints["service_uuid"],
                context=f"{profile_id}.endpoints.service_uuid",
            ),
            write_char_uuid=_normalize_uuid(
                endpoints["write_char_uuid"],
                context=f"{profile_id}.endpoints.write_char_uuid",
            ),
            read_char_uuid=_normalize_uuid(
                endpoints["read_char_uuid"],
                context=f"{profile_id}.endpoints.read_char_uuid",
            )
            if "read_char_uuid" in endpoints
            else None,
            write_with_response=_normalize_bool(
                endpoints.get("write_with_response", False),
                context=f"{profile_id}.endpoints.write_with_response",
            ),
        ),
        commands=commands,
        power=PowerValues(on=int(power_spec["on"]), off=int(power_spec["off"])),
        brightness=brightness,
    )


def _iter_packaged_profile_paths() -> list[Traversable]:
    profile_root = resources.files("glowbridge.profiles")
    return [item for item in profile_root.iterdir() if item.name.endswith((".yml", ".yaml"))]


def _iter_user_profile_paths() -> list[Path]:
    paths: list[Path] = []
    for directory in _profile_dirs():
        if not directory.exists() or not directory.is_dir():
            continue
        paths.extend(sorted(p for p in directory.iterdir() if p.suffix in {".yml", ".yaml"}))
    return paths


def load_profiles() -> LoadedProfiles:
    profiles: dict[str, DeviceProfile] = {}
    warnings: list[str] = []

    for path in sorted(_iter_packaged_profile_paths(), key=lambda p: p.name):
        doc = read_yaml(path)
        profile = _build_profile(doc, path)
        profiles[profile.id] = profile

    for path in _iter_user_profile_paths():
        doc = read_yaml(path)
        profile = _build_profile(doc, path)
        if profile.id in profiles:
            warning = f"User profile '{profile.id}' overrides packaged profile"
            LOGGER.warning(warning)
            warnings.append(warning)
        profiles[profile.id] = profile

    return LoadedProfiles(profiles=profiles, warnings=tuple(warnings))
