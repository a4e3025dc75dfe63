"""
Radio primitives for localhotspot.

A radio primitive accepts a HotspotConfig plus a callback and returns
nothing; the outcome arrives later through the callback, on whatever thread
the primitive uses. Two primitives are provided: an in-memory simulation
and a NetworkManager (nmcli) backend.
"""

import logging
import shutil
import subprocess
import threading
from abc import ABC, abstractmethod
from typing import Optional

from localhotspot.config import (
    Band,
    ControllerSettings,
    HotspotConfig,
    MacRandomization,
    RadioBackend,
    SecurityMode,
)
from localhotspot.errors import FailureReason, RadioError

logger = logging.getLogger(__name__)


class Reservation(ABC):
    """Platform token for a running access point. Closing it tears it down."""

    @abstractmethod
    def close(self) -> None:
        """Release the access point."""


class HotspotCallback(ABC):
    """Receives the outcome of one activation request."""

    @abstractmethod
    def on_started(self, reservation: Reservation) -> None:
        """The access point is up."""

    @abstractmethod
    def on_stopped(self) -> None:
        """The access point went down without the owner closing it."""

    @abstractmethod
    def on_failed(self, reason: FailureReason) -> None:
        """The access point could not be started."""


class RadioPrimitive(ABC):
    """Asynchronous 'start a local-only access point' capability."""

    feature_level = 1

    @abstractmethod
    def start_local_only_hotspot(self, config: HotspotConfig, callback: HotspotCallback) -> None:
        """Request an access point. Must return without waiting for the radio."""


class SimulatedReservation(Reservation):
    """Reservation handed out by SimulatedRadio."""

    def __init__(self, radio: "SimulatedRadio", config: HotspotConfig):
        self._radio = radio
        self.config = config
        self.closed = False

    def close(self) -> None:
        self._radio._release(self)


class SimulatedRadio(RadioPrimitive):
    """In-memory radio for development and demos.

    Only one access point can be up at a time; a second activation fails
    with BUSY until the first reservation is closed.
    """

    def __init__(self, start_delay: float = 0.0, feature_level: int = 2):
        self.start_delay = start_delay
        self.feature_level = feature_level
        self.start_count = 0
        self._lock = threading.Lock()
        self._active: Optional[tuple[SimulatedReservation, HotspotCallback]] = None
        self._fail_next: Optional[FailureReason] = None

    @property
    def is_active(self) -> bool:
        """Whether a simulated access point is up."""
        return self._active is not None

    @property
    def active_config(self) -> Optional[HotspotConfig]:
        """Configuration of the access point that is up, if any."""
        active = self._active
        return active[0].config if active else None

    def fail_next(self, reason: FailureReason = FailureReason.GENERIC) -> None:
        """Make the next activation fail with the given reason."""
        with self._lock:
            self._fail_next = reason

    def start_local_only_hotspot(self, config: HotspotConfig, callback: HotspotCallback) -> None:
        if self.start_delay > 0:
            timer = threading.Timer(self.start_delay, self._complete, args=(config, callback))
            timer.daemon = True
            timer.start()
        else:
            self._complete(config, callback)

    def _complete(self, config: HotspotConfig, callback: HotspotCallback) -> None:
        reservation = None
        with self._lock:
            self.start_count += 1
            reason = self._fail_next
            self._fail_next = None
            if reason is None and self._active is not None:
                reason = FailureReason.BUSY
            if reason is None:
                reservation = SimulatedReservation(self, config)
                self._active = (reservation, callback)

        if reservation is None:
            logger.info("Simulated access point '%s' failed: %s", config.ssid, reason.value)
            callback.on_failed(reason)
            return
        logger.info("Simulated access point '%s' is up", config.ssid)
        callback.on_started(reservation)

    def _release(self, reservation: SimulatedReservation) -> None:
        with self._lock:
            if reservation.closed:
                return
            reservation.closed = True
            if self._active is not None and self._active[0] is reservation:
                self._active = None
        logger.info("Simulated access point '%s' is down", reservation.config.ssid)

    def interrupt(self) -> bool:
        """Stop the running access point as if the system had done it.

        Returns:
            True if an access point was running
        """
        with self._lock:
            active = self._active
            self._active = None
            if active is not None:
                active[0].closed = True
        if active is None:
            return False
        logger.info("Simulated access point '%s' interrupted", active[0].config.ssid)
        active[1].on_stopped()
        return True


# nmcli property values
_BAND_NAMES = {Band.GHZ_2: "bg", Band.GHZ_5: "a"}
_CLONED_MAC = {
    MacRandomization.NONE: "permanent",
    MacRandomization.PERSISTENT: "stable",
    MacRandomization.NON_PERSISTENT: "random",
}
_KEY_MGMT = {
    SecurityMode.WPA2_PSK: "wpa-psk",
    SecurityMode.WPA3_SAE: "sae",
}

# Lowercased stderr fragments and the failure they indicate, first match wins
_ERROR_PATTERNS = [
    ("not authorized", FailureReason.TETHERING_DISALLOWED),
    ("insufficient privileges", FailureReason.TETHERING_DISALLOWED),
    ("busy", FailureReason.BUSY),
    ("already active", FailureReason.BUSY),
    ("ap mode", FailureReason.INCOMPATIBLE_MODE),
    ("no suitable device", FailureReason.INCOMPATIBLE_MODE),
    ("not available", FailureReason.INCOMPATIBLE_MODE),
    ("channel", FailureReason.NO_CHANNEL),
]


def classify_nmcli_error(message: str) -> FailureReason:
    """Map nmcli error output to a failure reason."""
    lowered = message.lower()
    for fragment, reason in _ERROR_PATTERNS:
        if fragment in lowered:
            return reason
    return FailureReason.GENERIC


class NmcliReservation(Reservation):
    """Reservation for a NetworkManager access point profile."""

    def __init__(self, radio: "NmcliRadio"):
        self._radio = radio
        self._lock = threading.Lock()
        self._closed = threading.Event()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def mark_closed(self) -> bool:
        """Flag the reservation closed. Returns True for the first caller only."""
        with self._lock:
            if self._closed.is_set():
                return False
            self._closed.set()
            return True

    def wait_closed(self, timeout: float) -> bool:
        return self._closed.wait(timeout)

    def close(self) -> None:
        self._radio._teardown(self)


class NmcliRadio(RadioPrimitive):
    """Access point driven through NetworkManager's nmcli.

    Activation runs on a worker thread which then keeps polling the active
    connections so an access point stopped outside this process is reported
    through on_stopped().
    """

    feature_level = 1

    def __init__(
        self,
        interface: str = "wlan0",
        connection_name: str = "localhotspot",
        monitor_interval: float = 2.0,
    ):
        self.interface = interface
        self.connection_name = connection_name
        self.monitor_interval = monitor_interval

    def check_dependencies(self) -> list[str]:
        """Check for required system tools.

        Returns:
            List of missing dependencies (empty if all present)
        """
        return [tool for tool in ("nmcli",) if shutil.which(tool) is None]

    def _run_command(self, args: list[str]) -> subprocess.CompletedProcess:
        """Run a command without raising on failure."""
        try:
            return subprocess.run(args, capture_output=True, text=True, check=False)
        except OSError as e:
            logger.warning("Could not run %s: %s", args[0], e)
            return subprocess.CompletedProcess(args, 127, stdout="", stderr=str(e))

    def _nmcli(self, *args: str) -> subprocess.CompletedProcess:
        """Run nmcli, raising RadioError when it fails."""
        logger.debug("Running nmcli %s", " ".join(args[:2]))
        result = self._run_command(["nmcli", *args])
        if result.returncode != 0:
            message = (result.stderr or result.stdout or "").strip() or f"exit {result.returncode}"
            raise RadioError(f"nmcli {args[0]} {args[1]} failed: {message}", classify_nmcli_error(message))
        return result

    def profile_args(self, config: HotspotConfig) -> list[str]:
        """Build the `nmcli connection add` arguments for a configuration.

        Raises:
            RadioError: If the configuration needs options nmcli cannot express
        """
        if config.band != (Band.GHZ_2 | Band.GHZ_5) and config.band not in _BAND_NAMES:
            raise RadioError(
                f"Band {int(config.band)} is not supported by NetworkManager",
                FailureReason.INCOMPATIBLE_MODE,
            )
        if config.security_mode != SecurityMode.OPEN and config.security_mode not in _KEY_MGMT:
            raise RadioError(
                f"Security mode {config.security_mode.value} is not supported by NetworkManager",
                FailureReason.INCOMPATIBLE_MODE,
            )

        args = [
            "connection", "add",
            "type", "wifi",
            "ifname", self.interface,
            "con-name", self.connection_name,
            "autoconnect", "no",
            "ssid", config.ssid,
            "802-11-wireless.mode", "ap",
            "ipv4.method", "shared",
            "802-11-wireless.cloned-mac-address", _CLONED_MAC[config.mac_randomization],
        ]
        if config.band in _BAND_NAMES:
            args += ["802-11-wireless.band", _BAND_NAMES[Band(config.band)]]
        if config.channel is not None:
            args += ["802-11-wireless.channel", str(config.channel)]
        if config.security_mode != SecurityMode.OPEN:
            args += [
                "802-11-wireless-security.key-mgmt", _KEY_MGMT[config.security_mode],
                "802-11-wireless-security.psk", config.passphrase,
            ]
        return args

    def start_local_only_hotspot(self, config: HotspotConfig, callback: HotspotCallback) -> None:
        profile = self.profile_args(config)
        thread = threading.Thread(
            target=self._activate,
            args=(config, profile, callback),
            name="nmcli-activate",
            daemon=True,
        )
        thread.start()

    def _activate(self, config: HotspotConfig, profile: list[str], callback: HotspotCallback) -> None:
        # A profile left behind by a crashed run would shadow ours
        self._delete_profile()
        try:
            self._nmcli(*profile)
            self._nmcli("connection", "up", self.connection_name)
        except RadioError as e:
            logger.warning("Access point '%s' failed to start: %s", config.ssid, e)
            self._delete_profile()
            callback.on_failed(e.reason)
            return

        logger.info("Access point '%s' is up on %s", config.ssid, self.interface)
        reservation = NmcliReservation(self)
        callback.on_started(reservation)
        self._monitor(reservation, callback)

    def _monitor(self, reservation: NmcliReservation, callback: HotspotCallback) -> None:
        while not reservation.wait_closed(self.monitor_interval):
            if self.is_connection_active():
                continue
            if reservation.mark_closed():
                logger.info("Access point profile '%s' went down", self.connection_name)
                self._delete_profile()
                callback.on_stopped()
            return

    def is_connection_active(self) -> bool:
        """Check whether our profile is among the active connections."""
        result = self._run_command(["nmcli", "-t", "-f", "NAME", "connection", "show", "--active"])
        if result.returncode != 0:
            # Unknown is not the same as down
            return True
        return self.connection_name in result.stdout.splitlines()

    def _delete_profile(self) -> None:
        self._run_command(["nmcli", "connection", "delete", self.connection_name])

    def _teardown(self, reservation: NmcliReservation) -> None:
        if not reservation.mark_closed():
            return
        try:
            self._nmcli("connection", "down", self.connection_name)
        finally:
            self._delete_profile()
        logger.info("Access point profile '%s' is down", self.connection_name)


def create_radio(settings: ControllerSettings) -> RadioPrimitive:
    """Create the radio primitive selected in the settings."""
    if settings.radio_backend == RadioBackend.SIMULATED:
        radio: RadioPrimitive = SimulatedRadio(start_delay=settings.simulated_start_delay)
    else:
        radio = NmcliRadio(
            interface=settings.wifi_interface,
            connection_name=settings.connection_name,
            monitor_interval=settings.monitor_interval,
        )
    if settings.feature_level is not None:
        radio.feature_level = settings.feature_level
    return radio
