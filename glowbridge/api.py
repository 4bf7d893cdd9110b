"""Stable public API for building tooling on top of glowbridge.

This module is the supported integration surface for third-party callers.
Avoid importing from private/internal modules unless intentionally depending on
non-stable internals.
"""

from __future__ import annotations

from glowbridge.core.codec import encode
from glowbridge.core.commands import frame_for
from glowbridge.core.config import BridgeConfig, MqttSettings, TimingSettings, load_config
from glowbridge.core.errors import (
    CommandError,
    ConfigError,
    EncodingError,
    GlowbridgeError,
    NegotiationError,
    ProfileLoadError,
    ProfileValidationError,
    TransportConnectError,
    TransportError,
    TransportSendError,
    TransportTimeoutError,
)
from glowbridge.core.manager import ConnectionManager
from glowbridge.core.model import (
    CommandKind,
    CommandTemplate,
    DeviceConfig,
    DeviceProfile,
    DiscoveredPeripheral,
    Literal,
    NegotiationFailure,
    NegotiationStage,
    Placeholder,
)
from glowbridge.core.profile_loader import load_profiles
from glowbridge.core.registry import DeviceRegistry
from glowbridge.core.service import BridgeService
from glowbridge.core.session import DeviceSession
from glowbridge.transports.base import MessageBus, Radio

__all__ = [
    "GlowbridgeError",
    "CommandError",
    "ConfigError",
    "EncodingError",
    "NegotiationError",
    "ProfileLoadError",
    "ProfileValidationError",
    "TransportError",
    "TransportConnectError",
    "TransportSendError",
    "TransportTimeoutError",
    "BridgeConfig",
    "MqttSettings",
    "TimingSettings",
    "CommandKind",
    "CommandTemplate",
    "DeviceConfig",
    "DeviceProfile",
    "DiscoveredPeripheral",
    "Literal",
    "Placeholder",
    "NegotiationFailure",
    "NegotiationStage",
    "BridgeService",
    "ConnectionManager",
    "DeviceRegistry",
    "DeviceSession",
    "MessageBus",
    "Radio",
    "encode",
    "encode_command",
    "load_config",
    "load_profiles",
]


def encode_command(profile: DeviceProfile | str, kind: CommandKind | str, payload: str) -> bytes:
    """Encode a bus-style textual payload for a profile.

    ``profile`` may be a loaded profile or the id of a packaged/user profile.
    """
    if isinstance(profile, str):
        profiles = load_profiles().profiles
        resolved = profiles.get(profile)
        if resolved is None:
            available = ", ".join(sorted(profiles))
            raise EncodingError(f"Unknown profile '{profile}'. Available: {available}")
        profile = resolved
    try:
        kind = CommandKind(kind)
    except ValueError:
        allowed = ", ".join(k.value for k in CommandKind)
        raise EncodingError(f"Unknown command kind '{kind}'. Allowed: {allowed}") from None
    return frame_for(profile, kind, payload)
