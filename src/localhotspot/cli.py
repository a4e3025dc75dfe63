"""
Command-line interface for localhotspot.

Provides commands to run the access point in the foreground, drive it from
an interactive menu, check system requirements and serve the web API.
"""

import sys
from functools import reduce
from pathlib import Path
from typing import Optional

import click

from localhotspot import __version__
from localhotspot.builder import check_credentials, select_builder
from localhotspot.config import (
    DEFAULT_CONFIG_PATH,
    Band,
    ControllerSettings,
    MacRandomization,
    RadioBackend,
    SecurityMode,
    load_config,
)
from localhotspot.controller import Outcome
from localhotspot.log import setup_logging
from localhotspot.notification import ConsoleNotificationBackend, TetherNotifier
from localhotspot.radio import NmcliRadio, create_radio
from localhotspot.service import create_controller, describe_band, run_hotspot

BAND_CHOICES = {
    "2ghz": Band.GHZ_2,
    "5ghz": Band.GHZ_5,
    "6ghz": Band.GHZ_6,
    "60ghz": Band.GHZ_60,
    "any": Band.ANY,
}

OUTCOME_MESSAGES = {
    Outcome.STARTED: "Hotspot started",
    Outcome.STOPPED: "Hotspot stopped",
    Outcome.ALREADY_STOPPED: "Hotspot already stopped",
    Outcome.TIMED_OUT: "Hotspot did not start in time",
    Outcome.FAILED: "Hotspot failed to start",
    Outcome.REJECTED: "Invalid hotspot configuration",
}


def _load_settings(
    config_path: Optional[Path] = None,
    backend: Optional[str] = None,
    interface: Optional[str] = None,
    timeout: Optional[float] = None,
) -> ControllerSettings:
    """Load settings from file and apply command-line overrides."""
    effective_path = config_path or DEFAULT_CONFIG_PATH
    if effective_path.exists():
        settings = load_config(effective_path)
        click.echo(f"Loaded config from {effective_path}")
    else:
        settings = ControllerSettings()
        if config_path:
            click.echo(f"Warning: Config file {config_path} not found, using defaults")

    overrides: dict[str, object] = {}
    if backend is not None:
        overrides["radio_backend"] = RadioBackend(backend)
    if interface is not None:
        overrides["wifi_interface"] = interface
    if timeout is not None:
        overrides["start_timeout"] = timeout

    if overrides:
        settings = ControllerSettings(**{**settings.model_dump(), **overrides})
    return settings


def _setup_logging(ctx: click.Context, settings: ControllerSettings) -> None:
    obj = ctx.find_root().obj or {}
    level = obj.get("log_level") or settings.log_level
    setup_logging(level, settings.log_json)


def _describe_result(result) -> str:
    message = OUTCOME_MESSAGES.get(result.outcome, result.outcome.value)
    if result.error is not None:
        message += f": {result.error}"
    return message


config_option = click.option(
    "--config",
    "config_path",
    type=click.Path(exists=False, path_type=Path),
    default=None,
    help="Path to config file (default: /etc/localhotspot/config.yaml)",
)
backend_option = click.option(
    "--backend",
    type=click.Choice([b.value for b in RadioBackend]),
    default=None,
    help="Radio backend (overrides config file)",
)


@click.group()
@click.version_option(version=__version__, prog_name="localhotspot")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default=None,
    help="Log level (overrides config file)",
)
@click.pass_context
def main(ctx: click.Context, log_level: Optional[str]) -> None:
    """localhotspot - local-only WiFi access point controller.

    Start, stop and watch a local-only access point.
    """
    ctx.ensure_object(dict)
    ctx.obj["log_level"] = log_level


@main.command()
@config_option
@backend_option
@click.option("--ssid", default="", help="Network name")
@click.option("--password", default="", help="Network passphrase")
@click.option(
    "--security",
    type=click.Choice([m.value for m in SecurityMode]),
    default=SecurityMode.WPA2_PSK.value,
    show_default=True,
    help="Security mode",
)
@click.option(
    "--band",
    "bands",
    type=click.Choice(list(BAND_CHOICES)),
    multiple=True,
    default=("2ghz",),
    show_default=True,
    help="Band to operate on (repeatable)",
)
@click.option("--channel", type=int, default=None, help="Explicit channel (overrides --band)")
@click.option("--auto-shutdown/--no-auto-shutdown", default=False, help="Shut down when idle")
@click.option(
    "--mac-randomization",
    type=click.Choice([m.value for m in MacRandomization]),
    default=MacRandomization.PERSISTENT.value,
    show_default=True,
    help="MAC address randomization",
)
@click.option("--interface", default=None, help="WiFi interface to use")
@click.option("--timeout", type=float, default=None, help="Seconds to wait for the radio")
@click.pass_context
def start(
    ctx: click.Context,
    config_path: Optional[Path],
    backend: Optional[str],
    ssid: str,
    password: str,
    security: str,
    bands: tuple[str, ...],
    channel: Optional[int],
    auto_shutdown: bool,
    mac_randomization: str,
    interface: Optional[str],
    timeout: Optional[float],
) -> None:
    """Start the access point.

    The access point runs until you press Ctrl+C, send SIGTERM, or the
    system stops it.
    """
    security_mode = SecurityMode(security)
    error = check_credentials(ssid, password, security_mode)
    if error:
        click.echo(error, err=True)
        sys.exit(1)

    settings = _load_settings(config_path, backend, interface, timeout)
    _setup_logging(ctx, settings)

    run_hotspot(
        settings,
        ssid,
        password,
        security_mode=security_mode,
        channel=channel,
        band=reduce(lambda acc, name: acc | BAND_CHOICES[name], bands, Band(0)),
        auto_shutdown=auto_shutdown,
        mac_randomization=MacRandomization(mac_randomization),
    )


@main.command()
@config_option
@backend_option
@click.pass_context
def interactive(ctx: click.Context, config_path: Optional[Path], backend: Optional[str]) -> None:
    """Run the interactive start/stop menu."""
    settings = _load_settings(config_path, backend)
    _setup_logging(ctx, settings)
    wait = settings.start_timeout + 5

    controller = create_controller(settings)
    notifier = TetherNotifier(
        ConsoleNotificationBackend(),
        title=settings.notification_title,
        message=settings.notification_message,
        notification_id=settings.notification_id,
    )
    notifier.attach(controller)

    try:
        while True:
            click.echo("\n" + "=" * 50)
            click.echo("  localhotspot - Interactive Menu")
            click.echo("=" * 50)
            click.echo("\n[1] Start hotspot")
            click.echo("[2] Stop hotspot")
            click.echo("[3] Show status")
            click.echo("[q] Quit")
            click.echo()

            choice = click.prompt("Select option", type=str).strip().lower()

            if choice == "1":
                ssid = click.prompt("SSID", default="", show_default=False).strip()
                password = click.prompt("Password", default="", show_default=False, hide_input=True)
                error = check_credentials(ssid, password)
                if error:
                    click.echo(error)
                    continue
                result = controller.start_tethering(ssid, password).result(timeout=wait)
                click.echo(_describe_result(result))

            elif choice == "2":
                result = controller.stop_tethering().result(timeout=wait)
                click.echo(_describe_result(result))

            elif choice == "3":
                config = controller.session_config
                if controller.get_tether_state() and config is not None:
                    click.echo(f"Hotspot: ACTIVE ({config.ssid}, {describe_band(config.band)})")
                else:
                    click.echo(f"Hotspot: INACTIVE ({controller.state.value})")

            elif choice == "q":
                break
    finally:
        controller.close()


@main.command()
@config_option
def check(config_path: Optional[Path]) -> None:
    """Check system requirements."""
    settings = _load_settings(config_path)
    radio = create_radio(settings)
    builder = select_builder(radio.feature_level)

    click.echo()
    click.echo("localhotspot System Check")
    click.echo("=" * 40)
    click.echo(f"[--] Radio backend: {settings.radio_backend.value}")

    missing: list[str] = []
    if isinstance(radio, NmcliRadio):
        missing = radio.check_dependencies()
        if missing:
            click.echo(f"[!!] Missing: {', '.join(missing)}")
            click.echo("     Install NetworkManager to provide nmcli")
        else:
            click.echo("[OK] All dependencies installed")

        interface = settings.wifi_interface
        if Path(f"/sys/class/net/{interface}").exists():
            click.echo(f"[OK] Interface {interface} exists")
        else:
            missing.append(interface)
            click.echo(f"[!!] Interface {interface} not found")

    click.echo(f"[--] Feature level: {radio.feature_level} ({builder.name} options)")

    click.echo()
    if not missing:
        click.echo("Ready to run: localhotspot start --ssid NAME --password PASS")
    else:
        click.echo("Please fix the issues above before running")


@main.command("list-security")
@click.option("--feature-level", type=int, default=2, show_default=True, help="Radio feature level")
def list_security(feature_level: int) -> None:
    """List security modes and whether they need a password."""
    builder = select_builder(feature_level)
    click.echo(f"Security Modes ({builder.name} radio)")
    click.echo("=" * 50)
    for mode in SecurityMode:
        password = "password" if mode.requires_passphrase else "no password"
        support = "" if mode in builder.supported_security else " [UNSUPPORTED]"
        click.echo(f"  {mode.value:22s} {password}{support}")


@main.command()
@click.option("--host", default=None, help="Host to bind to (default: from config)")
@click.option("--port", type=int, default=None, help="Port to listen on (default: from config)")
def web(host: Optional[str], port: Optional[int]) -> None:
    """Serve the JSON control API."""
    from localhotspot.web.app import run_server

    run_server(host=host, port=port)


if __name__ == "__main__":
    main()
