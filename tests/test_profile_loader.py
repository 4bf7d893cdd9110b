from __future__ import annotations

from pathlib import Path

import pytest

from glowbridge.core.errors import ProfileValidationError
from glowbridge.core.model import CommandKind, Literal, Placeholder
from glowbridge.core.profile_loader import load_profiles, parse_frame

_USER_PROFILE = """
id: {id}
name: {name}
match:
  name_contains: ["Strip"]
endpoints:
  service_uuid: "ffe0"
  write_char_uuid: "ffe1"
  write_with_response: true
commands:
  power:
    frame: "{power_frame}"
    on: 240
    off: 15
  keep_alive:
    frame: "aa 00"
"""


def _write_profile(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


def _user_dir(tmp_path: Path) -> Path:
    return tmp_path / "cfg" / "glowbridge" / "profiles"


def test_load_packaged_profile() -> None:
    loaded = load_profiles()
    assert "govee_gu10" in loaded.profiles
    profile = loaded.profiles["govee_gu10"]
    assert profile.endpoints.service_uuid == "00010203-0405-0607-0809-0a0b0c0d1910"
    assert profile.endpoints.write_with_response is False
    assert profile.power.on == 1
    assert profile.power.off == 0
    assert (profile.brightness.min, profile.brightness.max) == (1, 100)
    assert set(profile.commands) == set(CommandKind)
    assert loaded.warnings == ()


def test_parse_frame_builds_tagged_slots() -> None:
    template = parse_frame("33 01 {state} {checksum}", kind=CommandKind.POWER, context="t")
    assert template.slots == (Literal(0x33), Literal(0x01), Placeholder("state"), Placeholder("checksum"))


def test_parse_frame_rejects_bad_tokens() -> None:
    with pytest.raises(ProfileValidationError):
        parse_frame("33 xyz", kind=CommandKind.KEEP_ALIVE, context="t")
    with pytest.raises(ProfileValidationError):
        parse_frame("33 {brightness}", kind=CommandKind.POWER, context="t")
    with pytest.raises(ProfileValidationError):
        parse_frame("33 01", kind=CommandKind.POWER, context="t")


def test_user_profile_loads(tmp_path: Path) -> None:
    _write_profile(
        _user_dir(tmp_path) / "strip.yaml",
        _USER_PROFILE.format(id="my_strip", name="My Strip", power_frame="7e {state} ef"),
    )

    profile = load_profiles().profiles["my_strip"]
    assert profile.endpoints.write_char_uuid == "ffe1"
    assert profile.endpoints.write_with_response is True
    assert profile.power.on == 240
    assert not profile.supports(CommandKind.COLOR)


def test_invalid_frame_in_user_profile_rejected(tmp_path: Path) -> None:
    _write_profile(
        _user_dir(tmp_path) / "bad.yaml",
        _USER_PROFILE.format(id="bad", name="Bad", power_frame="7e {state} zz"),
    )

    with pytest.raises(ProfileValidationError):
        load_profiles()


def test_missing_required_keys_rejected(tmp_path: Path) -> None:
    _write_profile(
        _user_dir(tmp_path) / "missing.yaml",
        """
id: missing
name: Missing
match:
  name_contains: ["Missing"]
endpoints:
  service_uuid: "ffe0"
  write_char_uuid: "ffe1"
commands:
  power:
    frame: "7e {state} ef"
    on: 1
    off: 0
""",
    )

    with pytest.raises(ProfileValidationError):
        load_profiles()


def test_user_profile_override_packaged(tmp_path: Path) -> None:
    _write_profile(
        _user_dir(tmp_path) / "override.yaml",
        _USER_PROFILE.format(id="govee_gu10", name="User Override", power_frame="7e {state} ef"),
    )

    loaded = load_profiles()
    assert loaded.profiles["govee_gu10"].name == "User Override"
    assert any("overrides" in warning for warning in loaded.warnings)


def test_duplicate_yaml_keys_rejected(tmp_path: Path) -> None:
    _write_profile(
        _user_dir(tmp_path) / "dup.yaml",
        """
id: dup
name: Duplicate
match:
  name_contains: ["Duplicate"]
endpoints:
  service_uuid: "ffe0"
  write_char_uuid: "ffe1"
commands:
  power:
    frame: "7e {state} ef"
    on: 1
    on: 2
    off: 0
  keep_alive:
    frame: "aa"
""",
    )

    with pytest.raises(ProfileValidationError):
        load_profiles()
