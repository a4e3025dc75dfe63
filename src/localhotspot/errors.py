"""
Error types for localhotspot.

Configuration problems, activation failures and radio backend errors all
derive from HotspotError so callers can catch them in one place.
"""

from enum import Enum
from typing import Optional


class FailureReason(str, Enum):
    """Why the radio refused or abandoned an activation."""

    NO_CHANNEL = "no_channel"
    """No usable channel for the requested band."""

    GENERIC = "generic"
    """Unspecified failure reported by the radio."""

    INCOMPATIBLE_MODE = "incompatible_mode"
    """The radio is in a mode that cannot host an access point."""

    TETHERING_DISALLOWED = "tethering_disallowed"
    """Tethering is disabled by policy."""

    BUSY = "busy"
    """Another access point session already owns the radio."""

    TIMEOUT = "timeout"
    """The radio never answered the activation request."""

    @classmethod
    def from_code(cls, code: int) -> "FailureReason":
        """Map a platform integer failure code to a reason.

        Unknown codes map to GENERIC.
        """
        return _CODES.get(code, cls.GENERIC)


_CODES = {
    1: FailureReason.NO_CHANNEL,
    2: FailureReason.GENERIC,
    3: FailureReason.INCOMPATIBLE_MODE,
    4: FailureReason.TETHERING_DISALLOWED,
}


class HotspotError(Exception):
    """Base class for all localhotspot errors."""


class ConfigError(HotspotError):
    """Invalid or contradictory hotspot configuration."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class ActivationFailure(HotspotError):
    """The radio reported that an activation failed."""

    def __init__(self, reason: FailureReason, message: Optional[str] = None):
        super().__init__(message or f"Hotspot activation failed: {reason.value}")
        self.reason = reason


class StuckActivation(ActivationFailure):
    """An activation did not resolve within the configured timeout."""

    def __init__(self, timeout: float):
        super().__init__(
            FailureReason.TIMEOUT,
            f"Hotspot activation did not complete within {timeout:g}s",
        )
        self.timeout = timeout


class RadioError(HotspotError):
    """A radio backend command failed."""

    def __init__(self, message: str, reason: FailureReason = FailureReason.GENERIC):
        super().__init__(message)
        self.reason = reason
