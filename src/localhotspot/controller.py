"""
Hotspot lifecycle controller for localhotspot.

The controller owns the session handle for the access point and is the
only writer of the published tether state. Every request and every radio
event becomes a message on one inbox, consumed by a single control-loop
thread, so two requests can never race each other over the handle.

States:
    IDLE      no handle, nothing in flight
    STARTING  activation requested, waiting for the radio
    ACTIVE    handle held, state published as True
    STOPPING  an in-flight activation is no longer wanted; whatever it
              produces is closed on arrival
"""

import logging
import queue
import threading
from concurrent.futures import Future, InvalidStateError
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from localhotspot.adapter import (
    Failed,
    HotspotEvent,
    HotspotResourceAdapter,
    SessionHandle,
    Started,
    Stopped,
)
from localhotspot.builder import ConfigBuilder, select_builder
from localhotspot.config import Band, HotspotConfig, MacRandomization, SecurityMode
from localhotspot.errors import (
    ActivationFailure,
    ConfigError,
    FailureReason,
    HotspotError,
    StuckActivation,
)
from localhotspot.publisher import StateListener, StatePublisher, Subscription

logger = logging.getLogger(__name__)

ErrorListener = Callable[[HotspotError], None]


class LifecycleState(str, Enum):
    """Internal state of the lifecycle controller."""

    IDLE = "idle"
    STARTING = "starting"
    ACTIVE = "active"
    STOPPING = "stopping"


class Outcome(str, Enum):
    """How a start or stop request ended."""

    STARTED = "started"
    FAILED = "failed"
    REJECTED = "rejected"
    TIMED_OUT = "timed_out"
    SUPERSEDED = "superseded"
    CANCELLED = "cancelled"
    STOPPED = "stopped"
    ALREADY_STOPPED = "already_stopped"
    SHUTDOWN = "shutdown"


@dataclass(frozen=True)
class TetherResult:
    """Result of a start or stop request."""

    outcome: Outcome
    error: Optional[HotspotError] = None

    @property
    def ok(self) -> bool:
        return self.outcome in (Outcome.STARTED, Outcome.STOPPED, Outcome.ALREADY_STOPPED)


@dataclass
class _StartRequest:
    params: dict
    future: Future


@dataclass
class _StopRequest:
    future: Future


@dataclass
class _AdapterEvent:
    event: HotspotEvent


@dataclass
class _ActivationTimeout:
    activation_id: int


class _Shutdown:
    pass


class LifecycleController:
    """Serializes start/stop of a single access point session.

    All public methods are safe to call from any thread. start_tethering()
    and stop_tethering() return immediately with a Future resolving to a
    TetherResult; callers that don't care may ignore it.
    """

    def __init__(
        self,
        adapter: HotspotResourceAdapter,
        builder: Optional[ConfigBuilder] = None,
        publisher: Optional[StatePublisher] = None,
        start_timeout: Optional[float] = 30.0,
    ):
        """Create the controller and start its control loop.

        Args:
            adapter: Resource adapter for the radio
            builder: Config builder, selected from the radio's feature level by default
            publisher: State publisher, a fresh one starting at False by default
            start_timeout: Seconds before an unanswered activation is abandoned,
                None to wait forever
        """
        self._adapter = adapter
        self._builder = builder or select_builder(adapter.feature_level)
        self._publisher = publisher or StatePublisher(False)
        self._start_timeout = start_timeout

        self._inbox: queue.Queue = queue.Queue()
        self._close_lock = threading.Lock()
        self._closed = False

        # Owned by the control loop
        self._state = LifecycleState.IDLE
        self._handle: Optional[SessionHandle] = None
        self._session_config: Optional[HotspotConfig] = None
        self._in_flight: Optional[int] = None
        self._in_flight_config: Optional[HotspotConfig] = None
        self._start_future: Optional[Future] = None
        self._queued: Optional[tuple[HotspotConfig, Future]] = None
        self._stop_futures: list[Future] = []
        self._timer: Optional[threading.Timer] = None
        self._error_listeners: list[ErrorListener] = []

        self._thread = threading.Thread(target=self._run, name="hotspot-lifecycle", daemon=True)
        self._thread.start()

    # Public API

    @property
    def state(self) -> LifecycleState:
        """Snapshot of the internal state."""
        return self._state

    @property
    def session_config(self) -> Optional[HotspotConfig]:
        """Configuration of the active session, if any."""
        return self._session_config

    @property
    def builder(self) -> ConfigBuilder:
        return self._builder

    def start_tethering(
        self,
        ssid: str,
        passphrase: str,
        security_mode: SecurityMode = SecurityMode.WPA2_PSK,
        channel: Optional[int] = None,
        band: int = Band.GHZ_2,
        auto_shutdown: bool = False,
        mac_randomization: MacRandomization = MacRandomization.PERSISTENT,
    ) -> Future:
        """Request an access point with the given configuration.

        A running access point is stopped first. A request that arrives
        while another activation is in flight supersedes it.
        """
        params = {
            "ssid": ssid,
            "passphrase": passphrase,
            "security_mode": security_mode,
            "channel": channel,
            "band": band,
            "auto_shutdown": auto_shutdown,
            "mac_randomization": mac_randomization,
        }
        return self._submit(_StartRequest(params, Future()))

    def stop_tethering(self) -> Future:
        """Request the access point to stop. Stopping when idle is a no-op."""
        return self._submit(_StopRequest(Future()))

    def get_tether_state(self) -> bool:
        """True iff a session handle is currently held."""
        return self._publisher.current()

    def subscribe(self) -> Subscription:
        """Subscribe to tether state.

        The subscription is lazy: it attaches on its first get(), which
        yields the value current at that moment followed by every later
        change. Values published before the first get() are not seen.
        """
        return self._publisher.subscribe()

    def add_state_listener(self, listener: StateListener, replay: bool = True) -> Callable[[], None]:
        """Call listener on every tether state change. Returns a remover."""
        return self._publisher.add_listener(listener, replay=replay)

    def add_error_listener(self, listener: ErrorListener) -> Callable[[], None]:
        """Call listener with every reported error. Returns a remover."""
        self._error_listeners.append(listener)

        def remove() -> None:
            if listener in self._error_listeners:
                self._error_listeners.remove(listener)

        return remove

    def close(self, timeout: Optional[float] = 5.0) -> None:
        """Stop the access point and the control loop.

        Outstanding requests resolve with SHUTDOWN; requests made
        afterwards resolve with SHUTDOWN immediately.
        """
        with self._close_lock:
            if not self._closed:
                self._closed = True
                self._inbox.put(_Shutdown())
        if threading.current_thread() is not self._thread:
            self._thread.join(timeout)

    def __enter__(self) -> "LifecycleController":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # Message plumbing

    def _submit(self, request):
        with self._close_lock:
            if not self._closed:
                self._inbox.put(request)
                return request.future
        _resolve(request.future, Outcome.SHUTDOWN)
        return request.future

    def _post_event(self, event: HotspotEvent) -> None:
        """Adapter event sink. Runs on whatever thread the radio uses."""
        with self._close_lock:
            if not self._closed:
                self._inbox.put(_AdapterEvent(event))
                return
        # Nobody will ever own this session
        if isinstance(event, Started):
            logger.warning("Closing session from activation %d after shutdown", event.activation_id)
            self._adapter.deactivate(event.handle)

    def _post_timeout(self, activation_id: int) -> None:
        with self._close_lock:
            if not self._closed:
                self._inbox.put(_ActivationTimeout(activation_id))

    def _run(self) -> None:
        while True:
            message = self._inbox.get()
            if isinstance(message, _Shutdown):
                self._shutdown()
                return
            try:
                self._dispatch(message)
            except Exception as e:
                logger.exception("Lifecycle controller failed to handle %r", message)
                future = getattr(message, "future", None)
                if future is not None:
                    _resolve(future, Outcome.FAILED, HotspotError(str(e)))

    def _dispatch(self, message: object) -> None:
        if isinstance(message, _StartRequest):
            self._handle_start(message)
        elif isinstance(message, _StopRequest):
            self._handle_stop(message.future)
        elif isinstance(message, _AdapterEvent):
            self._handle_event(message.event)
        elif isinstance(message, _ActivationTimeout):
            self._handle_timeout(message.activation_id)

    # Transitions, control-loop thread only

    def _handle_start(self, request: _StartRequest) -> None:
        try:
            config = self._builder.build(**request.params)
        except ConfigError as e:
            self._report(e)
            _resolve(request.future, Outcome.REJECTED, e)
            return

        if self._state is LifecycleState.IDLE:
            self._activate(config, request.future)
        elif self._state is LifecycleState.ACTIVE:
            logger.info("Restarting access point as '%s'", config.ssid)
            self._release_session()
            self._activate(config, request.future)
        else:
            # An activation is in flight: park this request until it resolves
            if self._queued is not None:
                _resolve(self._queued[1], Outcome.SUPERSEDED)
            self._queued = (config, request.future)
            if self._state is LifecycleState.STARTING:
                logger.info("Activation %d superseded by '%s'", self._in_flight, config.ssid)
                _resolve(self._start_future, Outcome.SUPERSEDED)
                self._start_future = None
                self._state = LifecycleState.STOPPING

    def _handle_stop(self, future: Future) -> None:
        if self._state is LifecycleState.IDLE:
            logger.info("Access point already stopped")
            _resolve(future, Outcome.ALREADY_STOPPED)
        elif self._state is LifecycleState.ACTIVE:
            self._release_session()
            _resolve(future, Outcome.STOPPED)
        else:
            if self._state is LifecycleState.STARTING:
                logger.info("Cancelling activation %d", self._in_flight)
                _resolve(self._start_future, Outcome.CANCELLED)
                self._start_future = None
                self._state = LifecycleState.STOPPING
            if self._queued is not None:
                _resolve(self._queued[1], Outcome.CANCELLED)
                self._queued = None
            self._stop_futures.append(future)

    def _handle_event(self, event: HotspotEvent) -> None:
        activation_id = event.activation_id
        if activation_id == self._in_flight:
            self._resolve_activation(event)
        elif self._handle is not None and activation_id == self._handle.activation_id:
            if isinstance(event, Stopped):
                logger.info("Access point '%s' stopped externally", self._session_config.ssid)
                self._release_session()
            else:
                logger.debug("Ignoring %r for the active session", event)
        elif isinstance(event, Started):
            logger.warning("Closing stale session from activation %d", activation_id)
            self._adapter.deactivate(event.handle)
        else:
            logger.debug("Ignoring %r for a stale activation", event)

    def _resolve_activation(self, event: HotspotEvent) -> None:
        self._cancel_timer()
        config = self._in_flight_config
        self._in_flight = None
        self._in_flight_config = None

        if isinstance(event, Started):
            if self._state is LifecycleState.STARTING:
                self._handle = event.handle
                self._session_config = config
                self._state = LifecycleState.ACTIVE
                self._publisher.publish(True)
                logger.info("Access point '%s' is active", config.ssid)
                _resolve(self._start_future, Outcome.STARTED)
                self._start_future = None
                return
            logger.info("Closing unwanted session from activation %d", event.activation_id)
            self._adapter.deactivate(event.handle)
        else:
            if isinstance(event, Failed):
                error = ActivationFailure(event.reason)
            else:
                error = ActivationFailure(
                    FailureReason.GENERIC, "Access point stopped before it started"
                )
            if self._state is LifecycleState.STARTING:
                self._state = LifecycleState.IDLE
                self._report(error)
                _resolve(self._start_future, Outcome.FAILED, error)
                self._start_future = None
                return
            logger.info("Unwanted activation ended: %s", error)
        self._finish_stopping()

    def _handle_timeout(self, activation_id: int) -> None:
        if activation_id != self._in_flight:
            return
        # Abandoned; a late Started for it is stale and gets closed
        self._timer = None
        self._in_flight = None
        self._in_flight_config = None
        error = StuckActivation(self._start_timeout)
        if self._state is LifecycleState.STARTING:
            self._state = LifecycleState.IDLE
            self._report(error)
            _resolve(self._start_future, Outcome.TIMED_OUT, error)
            self._start_future = None
        else:
            logger.warning("Unwanted activation %d abandoned: %s", activation_id, error)
            self._finish_stopping()

    def _finish_stopping(self) -> None:
        self._state = LifecycleState.IDLE
        for future in self._stop_futures:
            _resolve(future, Outcome.STOPPED)
        self._stop_futures = []
        if self._queued is not None:
            config, future = self._queued
            self._queued = None
            self._activate(config, future)

    def _activate(self, config: HotspotConfig, future: Future) -> None:
        self._state = LifecycleState.STARTING
        self._start_future = future
        self._in_flight_config = config
        self._in_flight = self._adapter.activate(config, self._post_event)
        self._arm_timer(self._in_flight)

    def _release_session(self) -> None:
        handle = self._handle
        self._adapter.deactivate(handle)
        self._handle = None
        self._session_config = None
        self._state = LifecycleState.IDLE
        self._publisher.publish(False)

    def _arm_timer(self, activation_id: int) -> None:
        if self._start_timeout is None:
            return
        self._timer = threading.Timer(self._start_timeout, self._post_timeout, args=(activation_id,))
        self._timer.daemon = True
        self._timer.start()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _report(self, error: HotspotError) -> None:
        logger.warning("%s", error)
        for listener in list(self._error_listeners):
            try:
                listener(error)
            except Exception:
                logger.exception("Error listener %r failed", listener)

    def _shutdown(self) -> None:
        self._cancel_timer()
        if self._handle is not None:
            self._release_session()
        self._in_flight = None
        self._in_flight_config = None
        _resolve(self._start_future, Outcome.SHUTDOWN)
        self._start_future = None
        if self._queued is not None:
            _resolve(self._queued[1], Outcome.SHUTDOWN)
            self._queued = None
        for future in self._stop_futures:
            _resolve(future, Outcome.SHUTDOWN)
        self._stop_futures = []
        self._state = LifecycleState.IDLE
        self._publisher.close()
        logger.info("Lifecycle controller stopped")


def _resolve(future: Optional[Future], outcome: Outcome, error: Optional[HotspotError] = None) -> None:
    if future is None or future.done():
        return
    try:
        future.set_result(TetherResult(outcome, error))
    except InvalidStateError:
        # Cancelled by the caller in the meantime
        pass
