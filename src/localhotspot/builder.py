"""
Configuration builders for localhotspot.

Translates user-supplied parameters into a HotspotConfig the radio can use.
Radios differ in what they support, so each feature level has its own
builder, picked once via select_builder().
"""

import logging
from abc import ABC
from typing import Optional

from pydantic import ValidationError

from localhotspot.config import Band, HotspotConfig, MacRandomization, SecurityMode, channel_band
from localhotspot.errors import ConfigError

logger = logging.getLogger(__name__)

# Lowest radio feature level that supports the full option set
STANDARD_FEATURE_LEVEL = 2


def check_credentials(
    ssid: str, passphrase: str, security_mode: SecurityMode = SecurityMode.WPA2_PSK
) -> Optional[str]:
    """Check the user-entered name and password before starting.

    Returns:
        Message to show the user, or None if both are acceptable
    """
    needs_passphrase = SecurityMode(security_mode).requires_passphrase
    if not ssid and not passphrase and needs_passphrase:
        return "SSID and Password cannot be empty"
    if not ssid:
        return "SSID cannot be empty"
    if not passphrase and needs_passphrase:
        return "Password cannot be empty"
    return None


class ConfigBuilder(ABC):
    """Builds HotspotConfig objects within a radio's capabilities."""

    name = "base"
    supported_bands: Band = Band.ANY
    supported_security: frozenset = frozenset(SecurityMode)
    supports_auto_shutdown = True

    def build(
        self,
        ssid: str,
        passphrase: str,
        security_mode: SecurityMode = SecurityMode.WPA2_PSK,
        channel: Optional[int] = None,
        band: int = Band.GHZ_2,
        auto_shutdown: bool = False,
        mac_randomization: MacRandomization = MacRandomization.PERSISTENT,
    ) -> HotspotConfig:
        """Build a validated hotspot configuration.

        Args:
            ssid: Network name
            passphrase: Passphrase, may be empty for open or OWE modes
            security_mode: Security type
            channel: Explicit channel, takes precedence over band
            band: Band flags to use when no channel is given
            auto_shutdown: Let the radio shut down an idle access point
            mac_randomization: MAC randomization policy

        Returns:
            Immutable configuration

        Raises:
            ConfigError: If the parameters are invalid or unsupported
        """
        try:
            security_mode = SecurityMode(security_mode)
            mac_randomization = MacRandomization(mac_randomization)
        except ValueError as e:
            raise ConfigError(str(e)) from e

        if not ssid:
            raise ConfigError("SSID cannot be empty", field="ssid")
        if security_mode.requires_passphrase and not passphrase:
            raise ConfigError(
                f"Password cannot be empty for {security_mode.value}", field="passphrase"
            )

        if channel is not None:
            try:
                band = channel_band(channel, band)
            except ValueError as e:
                raise ConfigError(str(e), field="channel") from e

        self._check_capabilities(security_mode, band, auto_shutdown)

        try:
            return HotspotConfig(
                ssid=ssid,
                passphrase=passphrase,
                security_mode=security_mode,
                band=band,
                channel=channel,
                auto_shutdown_enabled=auto_shutdown,
                mac_randomization=mac_randomization,
            )
        except ValidationError as e:
            error = e.errors()[0]
            field = ".".join(str(part) for part in error["loc"]) or None
            raise ConfigError(error["msg"], field=field) from e

    def _check_capabilities(self, security_mode: SecurityMode, band: int, auto_shutdown: bool) -> None:
        if security_mode not in self.supported_security:
            raise ConfigError(
                f"Security mode {security_mode.value} is not supported by this radio",
                field="security_mode",
            )
        if int(band) & ~int(self.supported_bands):
            raise ConfigError(f"Band {int(band)} is not supported by this radio", field="band")
        if auto_shutdown and not self.supports_auto_shutdown:
            raise ConfigError("Auto-shutdown is not supported by this radio", field="auto_shutdown")


class StandardConfigBuilder(ConfigBuilder):
    """Builder for radios supporting every band, security mode and option."""

    name = "standard"


class LegacyConfigBuilder(ConfigBuilder):
    """Builder for radios limited to 2.4/5 GHz and classic security modes."""

    name = "legacy"
    supported_bands = Band.GHZ_2 | Band.GHZ_5
    supported_security = frozenset(
        {SecurityMode.OPEN, SecurityMode.WPA2_PSK, SecurityMode.WPA3_SAE}
    )
    supports_auto_shutdown = False


def select_builder(feature_level: int) -> ConfigBuilder:
    """Pick the builder matching a radio's feature level."""
    if feature_level >= STANDARD_FEATURE_LEVEL:
        builder: ConfigBuilder = StandardConfigBuilder()
    else:
        builder = LegacyConfigBuilder()
    logger.debug("Using %s config builder for feature level %d", builder.name, feature_level)
    return builder


_standard_builder = StandardConfigBuilder()


def build_config(
    ssid: str,
    passphrase: str,
    security_mode: SecurityMode = SecurityMode.WPA2_PSK,
    channel: Optional[int] = None,
    band: int = Band.GHZ_2,
    auto_shutdown: bool = False,
    mac_randomization: MacRandomization = MacRandomization.PERSISTENT,
) -> HotspotConfig:
    """Build a configuration with the standard builder."""
    return _standard_builder.build(
        ssid,
        passphrase,
        security_mode=security_mode,
        channel=channel,
        band=band,
        auto_shutdown=auto_shutdown,
        mac_randomization=mac_randomization,
    )
