"""
Observable tether state for localhotspot.

StatePublisher holds one boolean with a single writer (the lifecycle
controller) and any number of readers. Readers either iterate a
Subscription or register a listener callback.
"""

import logging
import queue
import threading
from typing import Callable, Optional

logger = logging.getLogger(__name__)

StateListener = Callable[[bool], None]

_END = object()


class SubscriptionClosed(Exception):
    """Raised by Subscription.get() once the subscription has ended."""


class Subscription:
    """Sequence of state values for one reader.

    Attaches to the publisher on first read, yields the value current at
    that moment, then every change in order. Iterating blocks between
    changes and stops when the subscription or the publisher is closed.
    """

    def __init__(self, publisher: "StatePublisher"):
        self._publisher = publisher
        self._queue: queue.Queue = queue.Queue()
        self._lock = threading.Lock()
        self._attached = False
        self._closed = False
        self._ended = False

    def _attach(self) -> None:
        with self._lock:
            if self._attached or self._closed:
                return
            self._attached = True
        self._publisher._attach(self)

    def _deliver(self, value: bool) -> None:
        self._queue.put(value)

    def _end(self) -> None:
        self._queue.put(_END)

    def get(self, timeout: Optional[float] = None) -> bool:
        """Wait for the next value.

        Args:
            timeout: Seconds to wait, None to wait forever

        Raises:
            queue.Empty: If no value arrived within the timeout
            SubscriptionClosed: If the subscription has ended
        """
        if self._ended:
            raise SubscriptionClosed()
        self._attach()
        item = self._queue.get(timeout=timeout)
        if item is _END:
            self._ended = True
            raise SubscriptionClosed()
        return item

    def close(self) -> None:
        """Stop receiving values and wake up a blocked reader."""
        with self._lock:
            self._closed = True
        self._publisher._detach(self)
        self._end()

    def __iter__(self) -> "Subscription":
        return self

    def __next__(self) -> bool:
        try:
            return self.get()
        except SubscriptionClosed:
            raise StopIteration from None

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class StatePublisher:
    """Single-writer, multi-reader boolean cell.

    publish() only emits when the value actually changes. Listeners run on
    the writer's thread, in publish order.
    """

    def __init__(self, initial: bool = False):
        self._lock = threading.RLock()
        self._value = initial
        self._subscriptions: list[Subscription] = []
        self._listeners: list[StateListener] = []
        self._closed = False

    def current(self) -> bool:
        """Current value, without blocking."""
        return self._value

    def publish(self, value: bool) -> bool:
        """Set the value and notify readers.

        Returns:
            True if the value changed
        """
        with self._lock:
            if self._closed or value == self._value:
                return False
            self._value = value
            for subscription in self._subscriptions:
                subscription._deliver(value)
            for listener in list(self._listeners):
                self._notify(listener, value)
        return True

    def subscribe(self) -> Subscription:
        """Create a new subscription. Each call starts a fresh sequence."""
        return Subscription(self)

    def add_listener(self, listener: StateListener, replay: bool = True) -> Callable[[], None]:
        """Register a callback for state changes.

        Args:
            listener: Called with each new value
            replay: Also call it right away with the current value

        Returns:
            Function that removes the listener
        """
        with self._lock:
            self._listeners.append(listener)
            if replay:
                self._notify(listener, self._value)

        def remove() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return remove

    def close(self) -> None:
        """End all subscriptions. Later publishes are ignored."""
        with self._lock:
            self._closed = True
            subscriptions = self._subscriptions
            self._subscriptions = []
            self._listeners = []
        for subscription in subscriptions:
            subscription._end()

    def _attach(self, subscription: Subscription) -> None:
        with self._lock:
            subscription._deliver(self._value)
            if self._closed:
                subscription._end()
            else:
                self._subscriptions.append(subscription)

    def _detach(self, subscription: Subscription) -> None:
        with self._lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

    def _notify(self, listener: StateListener, value: bool) -> None:
        try:
            listener(value)
        except Exception:
            logger.exception("State listener %r failed", listener)
