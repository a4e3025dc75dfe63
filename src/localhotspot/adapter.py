"""
Hotspot resource adapter for localhotspot.

Wraps a radio primitive behind activate()/deactivate() and turns its three
callbacks into one event type, tagged with the activation they belong to.
"""

import itertools
import logging
import threading
from dataclasses import dataclass
from typing import Callable, Union

from localhotspot.config import HotspotConfig
from localhotspot.errors import FailureReason, RadioError
from localhotspot.radio import HotspotCallback, RadioPrimitive, Reservation

logger = logging.getLogger(__name__)


class SessionHandle:
    """Capability for one running access point.

    Closing is idempotent; a closed handle is never reopened.
    """

    def __init__(self, reservation: Reservation, activation_id: int):
        self._reservation = reservation
        self._activation_id = activation_id
        self._lock = threading.Lock()
        self._closed = False

    @property
    def activation_id(self) -> int:
        return self._activation_id

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> bool:
        """Release the access point.

        Returns:
            True if this call released it, False if it was already closed

        Raises:
            Exception: Whatever the reservation raised on teardown; the
                handle still counts as closed
        """
        with self._lock:
            if self._closed:
                return False
            self._closed = True
        self._reservation.close()
        return True

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open"
        return f"SessionHandle(activation_id={self._activation_id}, {state})"


@dataclass(frozen=True)
class Started:
    """The access point for an activation is up."""

    activation_id: int
    handle: SessionHandle


@dataclass(frozen=True)
class Stopped:
    """The access point for an activation went down."""

    activation_id: int


@dataclass(frozen=True)
class Failed:
    """An activation could not be completed."""

    activation_id: int
    reason: FailureReason


HotspotEvent = Union[Started, Stopped, Failed]
EventSink = Callable[[HotspotEvent], None]


class _ActivationCallback(HotspotCallback):
    """Normalizes radio callbacks for a single activation.

    Delivers one outcome, plus one Stopped after Started. Anything else the
    radio reports is dropped; a reservation arriving too late is closed.
    """

    def __init__(self, activation_id: int, sink: EventSink):
        self._activation_id = activation_id
        self._sink = sink
        self._lock = threading.Lock()
        self._outcome: type | None = None
        self._stopped = False

    def on_started(self, reservation: Reservation) -> None:
        with self._lock:
            accepted = self._outcome is None
            if accepted:
                self._outcome = Started
        if not accepted:
            logger.warning(
                "Activation %d reported started after %s; releasing reservation",
                self._activation_id,
                self._outcome.__name__,
            )
            try:
                reservation.close()
            except RadioError as e:
                logger.warning("Could not release late reservation: %s", e)
            return
        self._sink(Started(self._activation_id, SessionHandle(reservation, self._activation_id)))

    def on_stopped(self) -> None:
        with self._lock:
            if self._outcome is None:
                self._outcome = Stopped
            elif self._outcome is Started and not self._stopped:
                self._stopped = True
            else:
                logger.debug("Dropping duplicate stop for activation %d", self._activation_id)
                return
        self._sink(Stopped(self._activation_id))

    def on_failed(self, reason: FailureReason) -> None:
        with self._lock:
            accepted = self._outcome is None
            if accepted:
                self._outcome = Failed
        if not accepted:
            logger.debug("Dropping failure for resolved activation %d", self._activation_id)
            return
        self._sink(Failed(self._activation_id, reason))


class HotspotResourceAdapter:
    """The only component that talks to the radio primitive.

    It never retries; every failure is reported to the event sink.
    """

    def __init__(self, radio: RadioPrimitive):
        self._radio = radio
        self._ids = itertools.count(1)

    @property
    def radio(self) -> RadioPrimitive:
        return self._radio

    @property
    def feature_level(self) -> int:
        return self._radio.feature_level

    def activate(self, config: HotspotConfig, on_event: EventSink) -> int:
        """Ask the radio for an access point.

        Returns immediately; the outcome is delivered to on_event later,
        possibly on another thread.

        Args:
            config: Configuration to activate
            on_event: Receives Started, Stopped and Failed events

        Returns:
            Identifier carried by every event of this activation
        """
        activation_id = next(self._ids)
        callback = _ActivationCallback(activation_id, on_event)
        logger.info("Activating access point '%s' (activation %d)", config.ssid, activation_id)
        try:
            self._radio.start_local_only_hotspot(config, callback)
        except RadioError as e:
            logger.warning("Radio rejected activation %d: %s", activation_id, e)
            callback.on_failed(e.reason)
        except Exception:
            logger.exception("Radio crashed while starting activation %d", activation_id)
            callback.on_failed(FailureReason.GENERIC)
        return activation_id

    def deactivate(self, handle: SessionHandle) -> None:
        """Close a session handle. Already-closed handles are ignored."""
        try:
            released = handle.close()
        except RadioError as e:
            logger.warning("Error while releasing activation %d: %s", handle.activation_id, e)
            return
        except Exception:
            logger.exception("Radio crashed while releasing activation %d", handle.activation_id)
            return
        if released:
            logger.info("Released access point (activation %d)", handle.activation_id)
        else:
            logger.debug("Activation %d already released", handle.activation_id)
