"""Domain-specific errors for glowbridge."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from glowbridge.core.model import NegotiationFailure


class GlowbridgeError(Exception):
    """Base error for glowbridge."""


class ProfileValidationError(GlowbridgeError):
    """Raised when a profile file does not conform to schema or semantics."""


class ProfileLoadError(GlowbridgeError):
    """Raised when loading profile sources fails."""


class ConfigError(GlowbridgeError):
    """Raised when the bridge configuration cannot be read or is invalid."""


class EncodingError(GlowbridgeError):
    """Raised when a command frame cannot be built from a template."""


class CommandError(GlowbridgeError):
    """Raised when an inbound command cannot be routed or parsed."""


class NegotiationError(GlowbridgeError):
    """Raised when a connection negotiation stage fails."""

    def __init__(self, failure: NegotiationFailure, detail: str) -> None:
        super().__init__(f"{failure.value}: {detail}")
        self.failure = failure
        self.detail = detail


class TransportError(GlowbridgeError):
    """Base transport error."""


class TransportConnectError(TransportError):
    """Raised on BLE connect failures."""


class TransportSendError(TransportError):
    """Raised when payload sending fails."""


class TransportTimeoutError(TransportError):
    """Raised when a transport operation times out."""
