"""
Configuration models for localhotspot.

Uses Pydantic for the immutable hotspot configuration handed to the radio
and for the controller settings loaded from YAML.
"""

from enum import Enum, IntFlag
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# Default settings file location
DEFAULT_CONFIG_PATH = Path("/etc/localhotspot/config.yaml")


class SecurityMode(str, Enum):
    """Access point security type."""

    OPEN = "open"
    WPA2_PSK = "wpa2_psk"
    WPA3_SAE_TRANSITION = "wpa3_sae_transition"
    WPA3_SAE = "wpa3_sae"
    WPA3_OWE_TRANSITION = "wpa3_owe_transition"
    WPA3_OWE = "wpa3_owe"

    @property
    def requires_passphrase(self) -> bool:
        """Whether clients authenticate with a passphrase in this mode."""
        return self not in _PASSPHRASE_FREE


_PASSPHRASE_FREE = frozenset(
    {SecurityMode.OPEN, SecurityMode.WPA3_OWE, SecurityMode.WPA3_OWE_TRANSITION}
)

# Modes using a WPA2-style pre-shared key with its 8..63 character limit
_PSK_MODES = frozenset({SecurityMode.WPA2_PSK, SecurityMode.WPA3_SAE_TRANSITION})


class Band(IntFlag):
    """Radio bands an access point may operate on."""

    GHZ_2 = 1
    GHZ_5 = 2
    GHZ_6 = 4
    GHZ_60 = 8
    ANY = 15


class MacRandomization(str, Enum):
    """Policy for randomizing the access point's hardware address."""

    NONE = "none"
    """Use the factory MAC address."""

    PERSISTENT = "persistent"
    """Randomized once and kept stable across sessions."""

    NON_PERSISTENT = "non_persistent"
    """Fresh random address for every session."""


class RadioBackend(str, Enum):
    """Which radio primitive drives the access point."""

    SIMULATED = "simulated"
    NMCLI = "nmcli"


# Inclusive channel number ranges per band
CHANNEL_RANGES = {
    Band.GHZ_2: (1, 14),
    Band.GHZ_5: (32, 177),
    Band.GHZ_6: (1, 233),
    Band.GHZ_60: (1, 6),
}


def is_single_band(band: int) -> bool:
    """Check whether a band value names exactly one band."""
    return band in CHANNEL_RANGES


def channel_in_band(channel: int, band: int) -> bool:
    """Check whether a channel number is valid within a single band."""
    if not is_single_band(band):
        return False
    low, high = CHANNEL_RANGES[Band(band)]
    return low <= channel <= high


def channel_band(channel: int, hint: int = Band.ANY) -> Band:
    """Infer the band a channel belongs to.

    Channel numbers overlap between bands, so a hint naming exactly one band
    wins when the channel is valid there. Otherwise the lowest band
    containing the channel is chosen, preferring bands the hint allows.

    Args:
        channel: Channel number
        hint: Band flags the caller asked for

    Returns:
        The single band implied by the channel

    Raises:
        ValueError: If no band contains the channel
    """
    if is_single_band(hint) and channel_in_band(channel, hint):
        return Band(hint)
    bands = sorted(CHANNEL_RANGES, key=lambda band: (not band & hint, band))
    for band in bands:
        if channel_in_band(channel, band):
            return band
    raise ValueError(f"Channel {channel} is not valid in any band")


def channel_frequency(channel: int, band: int) -> int:
    """Get the center frequency of a channel in MHz."""
    if not channel_in_band(channel, band):
        raise ValueError(f"Channel {channel} is not valid for band {int(band)}")
    if band == Band.GHZ_2:
        return 2484 if channel == 14 else 2407 + 5 * channel
    if band == Band.GHZ_5:
        return 5000 + 5 * channel
    if band == Band.GHZ_6:
        return 5935 if channel == 2 else 5950 + 5 * channel
    return 56160 + 2160 * channel


class HotspotConfig(BaseModel):
    """Immutable configuration for one access point session.

    Invalid combinations are rejected at construction time.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    ssid: str = Field(
        min_length=1,
        description="Network name to broadcast",
    )
    passphrase: str = Field(
        default="",
        description="Passphrase, empty for passphrase-free security modes",
    )
    security_mode: SecurityMode = Field(
        default=SecurityMode.WPA2_PSK,
        description="Security type clients must use",
    )
    band: int = Field(
        default=Band.GHZ_2,
        description="Band flags the radio may pick from",
    )
    channel: Optional[int] = Field(
        default=None,
        ge=1,
        description="Explicit channel, paired with exactly one band",
    )
    auto_shutdown_enabled: bool = Field(
        default=False,
        description="Let the radio shut the access point down when idle",
    )
    mac_randomization: MacRandomization = Field(
        default=MacRandomization.PERSISTENT,
        description="MAC address randomization policy",
    )

    @field_validator("ssid")
    @classmethod
    def validate_ssid(cls, v: str) -> str:
        """SSIDs are limited to 32 bytes on the air."""
        if len(v.encode("utf-8")) > 32:
            raise ValueError("SSID cannot exceed 32 bytes")
        return v

    @field_validator("band")
    @classmethod
    def validate_band(cls, v: int) -> Band:
        """Band must be a non-empty combination of known bands."""
        if not 0 < int(v) <= Band.ANY:
            raise ValueError(f"Unknown band value {v}")
        return Band(int(v))

    @model_validator(mode="after")
    def validate_combination(self) -> "HotspotConfig":
        """Check passphrase, channel and band against each other."""
        mode = self.security_mode
        if mode.requires_passphrase:
            if not self.passphrase:
                raise ValueError(f"Passphrase is required for {mode.value}")
            if mode in _PSK_MODES and not 8 <= len(self.passphrase) <= 63:
                raise ValueError(f"Passphrase for {mode.value} must be 8 to 63 characters")
        elif self.passphrase:
            raise ValueError(f"Passphrase must be empty for {mode.value}")

        if self.channel is not None:
            if not is_single_band(self.band):
                raise ValueError("A channel must be paired with exactly one band")
            if not channel_in_band(self.channel, self.band):
                raise ValueError(f"Channel {self.channel} is not valid for band {int(self.band)}")

        if self.band == Band.GHZ_6 and mode not in (SecurityMode.WPA3_SAE, SecurityMode.WPA3_OWE):
            raise ValueError("The 6 GHz band requires WPA3-SAE or WPA3-OWE")
        return self

    @property
    def frequency(self) -> Optional[int]:
        """Center frequency in MHz when an explicit channel is set."""
        if self.channel is None:
            return None
        return channel_frequency(self.channel, self.band)


class ControllerSettings(BaseModel):
    """Runtime settings for the hotspot controller and its front ends.

    All settings have defaults; a YAML file may override any of them.
    """

    # Radio
    radio_backend: RadioBackend = Field(
        default=RadioBackend.NMCLI,
        description="Radio primitive used to activate the access point",
    )
    wifi_interface: str = Field(
        default="wlan0",
        description="WiFi interface hosting the access point",
    )
    connection_name: str = Field(
        default="localhotspot",
        description="NetworkManager connection profile name",
    )
    feature_level: Optional[int] = Field(
        default=None,
        ge=1,
        description="Override the radio's detected feature level",
    )
    simulated_start_delay: float = Field(
        default=0.5,
        ge=0,
        description="Seconds the simulated radio takes to start",
    )
    monitor_interval: float = Field(
        default=2.0,
        gt=0,
        description="Seconds between checks for an externally stopped access point",
    )

    # Lifecycle
    start_timeout: float = Field(
        default=30.0,
        gt=0,
        description="Seconds to wait for the radio before abandoning an activation",
    )

    # Notification
    notification_id: int = Field(
        default=12345,
        description="Identifier of the persistent hotspot notification",
    )
    notification_title: str = Field(
        default="Local hotspot",
        description="Title of the persistent notification",
    )
    notification_message: str = Field(
        default="Local-only hotspot is active",
        description="Body of the persistent notification",
    )

    # Web server
    web_host: str = Field(
        default="127.0.0.1",
        description="Host for web server to bind to",
    )
    web_port: int = Field(
        default=8080,
        ge=1,
        le=65535,
        description="Port for web server",
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Root log level",
    )
    log_json: bool = Field(
        default=False,
        description="Emit log records as JSON lines",
    )

    model_config = {
        "extra": "ignore",
    }

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize and check the log level name."""
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {v}")
        return level


def load_config(config_path: Optional[Path] = None) -> ControllerSettings:
    """Load settings from a YAML file.

    Args:
        config_path: Optional path to YAML config file

    Returns:
        Validated settings, defaults when the file is missing
    """
    if config_path and config_path.exists():
        import yaml

        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        return ControllerSettings(**data)

    return ControllerSettings()
