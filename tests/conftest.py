"""Pytest configuration and fixtures."""

import threading
import time
from dataclasses import dataclass
from pathlib import Path
from tempfile import TemporaryDirectory
from typing import Optional

import pytest

from localhotspot.adapter import HotspotResourceAdapter
from localhotspot.config import HotspotConfig
from localhotspot.controller import LifecycleController
from localhotspot.errors import FailureReason
from localhotspot.radio import HotspotCallback, RadioPrimitive, Reservation


class FakeReservation(Reservation):
    """Reservation that counts how often it was closed."""

    def __init__(self, error: Optional[Exception] = None):
        self.close_count = 0
        self.error = error

    @property
    def closed(self) -> bool:
        return self.close_count > 0

    def close(self) -> None:
        self.close_count += 1
        if self.error is not None:
            raise self.error


@dataclass
class Activation:
    """One start_local_only_hotspot() call seen by the scripted radio."""

    config: HotspotConfig
    callback: HotspotCallback


class ScriptedRadio(RadioPrimitive):
    """Radio that never answers on its own.

    Tests drive the outcome by calling the recorded callbacks directly.
    """

    def __init__(self, feature_level: int = 2):
        self.feature_level = feature_level
        self.activations: list[Activation] = []
        self.raise_on_start: Optional[Exception] = None
        self._cond = threading.Condition()

    def start_local_only_hotspot(self, config: HotspotConfig, callback: HotspotCallback) -> None:
        if self.raise_on_start is not None:
            raise self.raise_on_start
        with self._cond:
            self.activations.append(Activation(config, callback))
            self._cond.notify_all()

    def wait_for_activation(self, number: int = 1, timeout: float = 2.0) -> Activation:
        """Block until the given (1-based) activation has been requested."""
        with self._cond:
            if not self._cond.wait_for(lambda: len(self.activations) >= number, timeout):
                raise AssertionError(f"Activation {number} was never requested")
            return self.activations[number - 1]


class RecordingCallback(HotspotCallback):
    """Radio callback that records what it was told."""

    def __init__(self):
        self.events: list[tuple] = []
        self.reservation: Optional[Reservation] = None
        self.done = threading.Event()
        self.stopped = threading.Event()

    def on_started(self, reservation: Reservation) -> None:
        self.reservation = reservation
        self.events.append(("started", reservation))
        self.done.set()

    def on_stopped(self) -> None:
        self.events.append(("stopped",))
        self.stopped.set()

    def on_failed(self, reason: FailureReason) -> None:
        self.events.append(("failed", reason))
        self.done.set()


def wait_until(predicate, timeout: float = 2.0) -> bool:
    """Poll predicate until it holds or the timeout expires."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.005)
    return predicate()


@pytest.fixture
def temp_dir():
    """Provide a temporary directory."""
    with TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def radio() -> ScriptedRadio:
    """Provide a scripted radio at the standard feature level."""
    return ScriptedRadio()


@pytest.fixture
def adapter(radio: ScriptedRadio) -> HotspotResourceAdapter:
    """Provide a resource adapter over the scripted radio."""
    return HotspotResourceAdapter(radio)


@pytest.fixture
def make_controller(adapter: HotspotResourceAdapter):
    """Factory for controllers over the scripted radio, closed after the test."""
    controllers: list[LifecycleController] = []

    def factory(**kwargs) -> LifecycleController:
        kwargs.setdefault("start_timeout", None)
        controller = LifecycleController(adapter, **kwargs)
        controllers.append(controller)
        return controller

    yield factory
    for controller in controllers:
        controller.close()


@pytest.fixture
def controller(make_controller) -> LifecycleController:
    """Provide a controller without an activation timeout."""
    return make_controller()


@pytest.fixture
def recording_callback() -> RecordingCallback:
    """Provide a radio callback that records events."""
    return RecordingCallback()


@pytest.fixture
def waiter():
    """Provide the wait_until polling helper."""
    return wait_until
