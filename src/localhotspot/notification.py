"""
Persistent hotspot notification for localhotspot.

TetherNotifier follows the controller's tether state: it posts an ongoing
notification under a fixed identifier while the access point is up and
withdraws it when the access point goes down.
"""

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Callable, Optional

import click

if TYPE_CHECKING:
    from localhotspot.controller import LifecycleController

logger = logging.getLogger(__name__)

# Default notification identifier
NOTIFICATION_ID = 12345


class NotificationBackend(ABC):
    """Surface that can show and withdraw notifications by identifier."""

    @abstractmethod
    def post(self, notification_id: int, title: str, message: str) -> None:
        """Show (or replace) an ongoing, non-dismissable notification."""

    @abstractmethod
    def cancel(self, notification_id: int) -> None:
        """Withdraw a notification."""


class ConsoleNotificationBackend(NotificationBackend):
    """Prints notifications to the terminal."""

    def post(self, notification_id: int, title: str, message: str) -> None:
        click.echo(f"[{title}] {message}")

    def cancel(self, notification_id: int) -> None:
        click.echo("[notification cleared]")


class LoggingNotificationBackend(NotificationBackend):
    """Sends notifications to the log."""

    def post(self, notification_id: int, title: str, message: str) -> None:
        logger.info("Notification %d posted: %s - %s", notification_id, title, message)

    def cancel(self, notification_id: int) -> None:
        logger.info("Notification %d cancelled", notification_id)


class TetherNotifier:
    """Keeps one notification in step with the tether state."""

    def __init__(
        self,
        backend: NotificationBackend,
        title: str = "Local hotspot",
        message: str = "Local-only hotspot is active",
        notification_id: int = NOTIFICATION_ID,
    ):
        self.backend = backend
        self.title = title
        self.message = message
        self.notification_id = notification_id
        self._posted = False
        self._detach: Optional[Callable[[], None]] = None

    @property
    def posted(self) -> bool:
        return self._posted

    def attach(self, controller: "LifecycleController") -> None:
        """Follow a LifecycleController's tether state."""
        self._detach = controller.add_state_listener(self.on_state)

    def detach(self) -> None:
        """Stop following the controller. A posted notification is withdrawn."""
        if self._detach is not None:
            self._detach()
            self._detach = None
        self.on_state(False)

    def on_state(self, active: bool) -> None:
        if active and not self._posted:
            self.backend.post(self.notification_id, self.title, self.message)
            self._posted = True
        elif not active and self._posted:
            self.backend.cancel(self.notification_id)
            self._posted = False
