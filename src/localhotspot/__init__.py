"""
localhotspot - Local-only WiFi access point controller

Start and stop a local-only access point, track whether it is active and
notify the user while it runs.
"""

__version__ = "1.0.0"
__author__ = "localhotspot Contributors"

from localhotspot.adapter import HotspotResourceAdapter, SessionHandle
from localhotspot.builder import ConfigBuilder, build_config, check_credentials, select_builder
from localhotspot.config import Band, ControllerSettings, HotspotConfig, SecurityMode
from localhotspot.controller import LifecycleController, LifecycleState, Outcome, TetherResult
from localhotspot.errors import ActivationFailure, ConfigError, FailureReason, HotspotError
from localhotspot.publisher import StatePublisher

__all__ = [
    # Version
    "__version__",
    # Config
    "Band",
    "ControllerSettings",
    "HotspotConfig",
    "SecurityMode",
    # Building
    "ConfigBuilder",
    "build_config",
    "check_credentials",
    "select_builder",
    # Lifecycle
    "HotspotResourceAdapter",
    "LifecycleController",
    "LifecycleState",
    "Outcome",
    "SessionHandle",
    "StatePublisher",
    "TetherResult",
    # Errors
    "ActivationFailure",
    "ConfigError",
    "FailureReason",
    "HotspotError",
]
