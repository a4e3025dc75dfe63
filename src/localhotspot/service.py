"""
Service wiring for localhotspot.

Builds the radio, adapter and controller from settings and runs an access
point in the foreground.
"""

import signal
import sys
import time

from localhotspot.adapter import HotspotResourceAdapter
from localhotspot.config import Band, ControllerSettings
from localhotspot.controller import LifecycleController, Outcome
from localhotspot.notification import ConsoleNotificationBackend, TetherNotifier
from localhotspot.radio import create_radio

_BAND_LABELS = {
    Band.GHZ_2: "2.4 GHz",
    Band.GHZ_5: "5 GHz",
    Band.GHZ_6: "6 GHz",
    Band.GHZ_60: "60 GHz",
}


def describe_band(band: int) -> str:
    """Human readable list of the bands in a band value."""
    return ", ".join(label for flag, label in _BAND_LABELS.items() if band & flag)


def create_controller(settings: ControllerSettings) -> LifecycleController:
    """Create a lifecycle controller for the configured radio backend."""
    adapter = HotspotResourceAdapter(create_radio(settings))
    return LifecycleController(adapter, start_timeout=settings.start_timeout)


def run_hotspot(settings: ControllerSettings, ssid: str, passphrase: str, **options) -> None:
    """Run an access point until interrupted or stopped by the system.

    This is the main entry point for running localhotspot in the foreground.

    Args:
        settings: Controller settings
        ssid: Network name
        passphrase: Network passphrase
        **options: Further start_tethering() options
    """
    controller = create_controller(settings)
    notifier = TetherNotifier(
        ConsoleNotificationBackend(),
        title=settings.notification_title,
        message=settings.notification_message,
        notification_id=settings.notification_id,
    )
    notifier.attach(controller)

    def cleanup(_signum: int, _frame) -> None:
        print("\nShutting down...")
        controller.close()
        print("Cleanup complete.")
        sys.exit(0)

    signal.signal(signal.SIGINT, cleanup)
    signal.signal(signal.SIGTERM, cleanup)

    future = controller.start_tethering(ssid, passphrase, **options)
    result = future.result(timeout=settings.start_timeout + 5)
    if result.outcome is not Outcome.STARTED:
        print(f"Error: {result.error or result.outcome.value}", file=sys.stderr)
        controller.close()
        sys.exit(1)

    config = controller.session_config
    print("Hotspot is running!")
    print(f"  SSID: {config.ssid}")
    print(f"  Security: {config.security_mode.value}")
    print(f"  Band: {describe_band(config.band)}")
    print(f"  Channel: {config.channel or 'auto'}")
    print("\nPress Ctrl+C to stop")

    while controller.get_tether_state():
        time.sleep(1)

    print("Hotspot stopped.")
    controller.close()
