"""Static lookup from advertisements to profiles and device configs."""

from __future__ import annotations

from collections.abc import Iterable

from glowbridge.core.model import DeviceConfig, DeviceProfile


def _normalize_address(address: str) -> str:
    return address.strip().upper()


def name_matches(advertised_name: str, profile: DeviceProfile) -> bool:
    lower_name = advertised_name.lower()
    return any(token.lower() in lower_name for token in profile.match.name_contains)


class DeviceRegistry:
    def __init__(self, profiles: dict[str, DeviceProfile], devices: Iterable[DeviceConfig]) -> None:
        self.profiles = profiles
        self._by_address = {_normalize_address(d.address): d for d in devices}

    @property
    def devices(self) -> list[DeviceConfig]:
        return list(self._by_address.values())

    def resolve_profile(self, advertised_name: str | None) -> DeviceProfile | None:
        if not advertised_name:
            return None
        for profile_id in sorted(self.profiles):
            profile = self.profiles[profile_id]
            if name_matches(advertised_name, profile):
                return profile
        return None

    def resolve_config(self, address: str) -> DeviceConfig | None:
        return self._by_address.get(_normalize_address(address))
