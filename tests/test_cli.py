"""Tests for CLI commands."""

from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from click.testing import CliRunner

from localhotspot.cli import check, interactive, list_security, main, start, web
from localhotspot.config import (
    Band,
    ControllerSettings,
    MacRandomization,
    RadioBackend,
    SecurityMode,
)


@pytest.fixture
def runner():
    """Create a CLI test runner."""
    return CliRunner()


@pytest.fixture(autouse=True)
def no_logging_setup():
    """Keep commands from replacing pytest's log handlers."""
    with patch("localhotspot.cli.setup_logging") as mock_setup:
        yield mock_setup


class TestMainCommand:
    """Tests for the main CLI group."""

    def test_help(self, runner: CliRunner):
        """Main --help should show available commands."""
        result = runner.invoke(main, ["--help"])
        assert result.exit_code == 0
        assert "localhotspot" in result.output
        assert "start" in result.output
        assert "interactive" in result.output

    def test_version(self, runner: CliRunner):
        """Main --version should show version."""
        result = runner.invoke(main, ["--version"])
        assert result.exit_code == 0
        assert "localhotspot" in result.output
        assert "1.0.0" in result.output

    @patch("localhotspot.cli.run_hotspot")
    def test_log_level_passed_to_setup(
        self, mock_run: MagicMock, runner: CliRunner, no_logging_setup: MagicMock
    ):
        """--log-level on the group overrides the configured level."""
        result = runner.invoke(
            main, ["--log-level", "debug", "start", "--ssid", "Net", "--password", "password1"]
        )
        assert result.exit_code == 0
        assert no_logging_setup.call_args[0][0].upper() == "DEBUG"


class TestStartCommand:
    """Tests for start command."""

    @patch("localhotspot.cli.run_hotspot")
    def test_start_default(self, mock_run: MagicMock, runner: CliRunner):
        """start should run the access point with default options."""
        result = runner.invoke(start, ["--ssid", "Net", "--password", "password1"])
        assert result.exit_code == 0
        settings, ssid, password = mock_run.call_args[0]
        assert ssid == "Net"
        assert password == "password1"
        assert settings.radio_backend == RadioBackend.NMCLI
        options = mock_run.call_args[1]
        assert options["security_mode"] == SecurityMode.WPA2_PSK
        assert options["band"] == Band.GHZ_2
        assert options["channel"] is None
        assert options["auto_shutdown"] is False
        assert options["mac_randomization"] == MacRandomization.PERSISTENT

    @pytest.mark.parametrize(
        "args,message",
        [
            ([], "SSID and Password cannot be empty"),
            (["--password", "password1"], "SSID cannot be empty"),
            (["--ssid", "Net"], "Password cannot be empty"),
        ],
    )
    @patch("localhotspot.cli.run_hotspot")
    def test_start_missing_credentials(
        self, mock_run: MagicMock, runner: CliRunner, args: list, message: str
    ):
        """start should refuse empty credentials before touching the radio."""
        result = runner.invoke(start, args)
        assert result.exit_code == 1
        assert message in result.output
        mock_run.assert_not_called()

    @patch("localhotspot.cli.run_hotspot")
    def test_start_open_network(self, mock_run: MagicMock, runner: CliRunner):
        """Open networks don't need a password."""
        result = runner.invoke(start, ["--ssid", "Net", "--security", "open"])
        assert result.exit_code == 0
        assert mock_run.call_args[1]["security_mode"] == SecurityMode.OPEN

    @patch("localhotspot.cli.run_hotspot")
    def test_start_multiple_bands(self, mock_run: MagicMock, runner: CliRunner):
        """Repeated --band options are combined."""
        result = runner.invoke(
            start, ["--ssid", "Net", "--password", "password1", "--band", "2ghz", "--band", "5ghz"]
        )
        assert result.exit_code == 0
        assert mock_run.call_args[1]["band"] == Band.GHZ_2 | Band.GHZ_5

    @patch("localhotspot.cli.run_hotspot")
    def test_start_with_options(self, mock_run: MagicMock, runner: CliRunner):
        """Options are passed through to the controller."""
        result = runner.invoke(
            start,
            [
                "--ssid", "Net",
                "--password", "password1",
                "--channel", "36",
                "--auto-shutdown",
                "--mac-randomization", "non_persistent",
            ],
        )
        assert result.exit_code == 0
        options = mock_run.call_args[1]
        assert options["channel"] == 36
        assert options["auto_shutdown"] is True
        assert options["mac_randomization"] == MacRandomization.NON_PERSISTENT

    @patch("localhotspot.cli.run_hotspot")
    def test_start_overrides(self, mock_run: MagicMock, runner: CliRunner):
        """--backend, --interface and --timeout override the settings."""
        result = runner.invoke(
            start,
            [
                "--ssid", "Net",
                "--password", "password1",
                "--backend", "simulated",
                "--interface", "wlan1",
                "--timeout", "5",
            ],
        )
        assert result.exit_code == 0
        settings = mock_run.call_args[0][0]
        assert settings.radio_backend == RadioBackend.SIMULATED
        assert settings.wifi_interface == "wlan1"
        assert settings.start_timeout == 5

    @patch("localhotspot.cli.run_hotspot")
    def test_start_with_config_file(self, mock_run: MagicMock, runner: CliRunner, temp_dir: Path):
        """start --config should load config file."""
        config_file = temp_dir / "config.yaml"
        config_file.write_text("radio_backend: simulated\nwifi_interface: wlan3\n")
        result = runner.invoke(
            start, ["--config", str(config_file), "--ssid", "Net", "--password", "password1"]
        )
        assert result.exit_code == 0
        assert f"Loaded config from {config_file}" in result.output
        assert mock_run.call_args[0][0].wifi_interface == "wlan3"

    @patch("localhotspot.cli.run_hotspot")
    def test_start_missing_config_file(
        self, mock_run: MagicMock, runner: CliRunner, temp_dir: Path
    ):
        """start --config with missing file should warn."""
        config_file = temp_dir / "missing.yaml"
        result = runner.invoke(
            start, ["--config", str(config_file), "--ssid", "Net", "--password", "password1"]
        )
        assert result.exit_code == 0
        assert "not found" in result.output
        assert mock_run.called


class TestInteractiveCommand:
    """Tests for the interactive menu."""

    def test_start_status_stop(self, runner: CliRunner):
        """The menu can start, inspect and stop a simulated access point."""
        with patch("localhotspot.cli._load_settings") as mock_settings:
            mock_settings.return_value = ControllerSettings(
                radio_backend=RadioBackend.SIMULATED, simulated_start_delay=0
            )
            result = runner.invoke(interactive, input="1\nNet\npassword1\n3\n2\n3\nq\n")

        assert result.exit_code == 0
        assert "localhotspot - Interactive Menu" in result.output
        assert "Hotspot started" in result.output
        assert "Hotspot: ACTIVE (Net, 2.4 GHz)" in result.output
        assert "Hotspot stopped" in result.output
        assert "Hotspot: INACTIVE (idle)" in result.output

    def test_empty_credentials(self, runner: CliRunner):
        """Empty credentials are reported and nothing starts."""
        result = runner.invoke(interactive, ["--backend", "simulated"], input="1\n\n\n3\nq\n")
        assert result.exit_code == 0
        assert "SSID and Password cannot be empty" in result.output
        assert "Hotspot: INACTIVE" in result.output

    def test_stop_when_idle(self, runner: CliRunner):
        """Stopping with nothing running says so."""
        result = runner.invoke(interactive, ["--backend", "simulated"], input="2\nq\n")
        assert result.exit_code == 0
        assert "Hotspot already stopped" in result.output


class TestCheckCommand:
    """Tests for check command."""

    def test_check_ready(self, runner: CliRunner):
        """check should pass when nmcli and the interface exist."""
        with patch("localhotspot.radio.shutil.which", return_value="/usr/bin/nmcli"), patch(
            "localhotspot.cli.Path"
        ) as mock_path:
            mock_path.return_value.exists.return_value = True
            result = runner.invoke(check)

        assert result.exit_code == 0
        assert "localhotspot System Check" in result.output
        assert "[OK] All dependencies installed" in result.output
        assert "[OK] Interface wlan0 exists" in result.output
        assert "Feature level: 1 (legacy options)" in result.output
        assert "Ready to run" in result.output

    def test_check_missing_nmcli(self, runner: CliRunner):
        """check should report missing tools."""
        with patch("localhotspot.radio.shutil.which", return_value=None), patch(
            "localhotspot.cli.Path"
        ) as mock_path:
            mock_path.return_value.exists.return_value = False
            result = runner.invoke(check)

        assert result.exit_code == 0
        assert "[!!] Missing: nmcli" in result.output
        assert "[!!] Interface wlan0 not found" in result.output
        assert "Please fix the issues above" in result.output


class TestListSecurityCommand:
    """Tests for list-security command."""

    def test_list_standard(self, runner: CliRunner):
        """Every mode is supported at the standard feature level."""
        result = runner.invoke(list_security)
        assert result.exit_code == 0
        assert "Security Modes (standard radio)" in result.output
        assert "wpa3_owe" in result.output
        assert "[UNSUPPORTED]" not in result.output

    def test_list_legacy(self, runner: CliRunner):
        """Legacy radios mark modes they cannot use."""
        result = runner.invoke(list_security, ["--feature-level", "1"])
        assert result.exit_code == 0
        assert "Security Modes (legacy radio)" in result.output
        assert "[UNSUPPORTED]" in result.output


class TestWebCommand:
    """Tests for web command."""

    @patch("localhotspot.web.app.run_server")
    def test_web_passes_options(self, mock_server: MagicMock, runner: CliRunner):
        """web should start the server with the given host and port."""
        result = runner.invoke(web, ["--host", "0.0.0.0", "--port", "9000"])
        assert result.exit_code == 0
        mock_server.assert_called_once_with(host="0.0.0.0", port=9000)
