"""User-facing notifications about finished operations."""

import enum
import logging
from dataclasses import dataclass
from typing import Protocol, final

logger = logging.getLogger(__name__)


class Level(enum.StrEnum):
    """How a notification is presented."""

    SUCCESS = 'success'
    ERROR = 'error'


@final
@dataclass(frozen=True, slots=True)
class Notification:
    """Short message shown to the user."""

    title: str
    description: str
    level: Level = Level.SUCCESS

    @property
    def is_error(self) -> bool:
        """True for failure notifications."""
        return self.level == Level.ERROR


class Notifier(Protocol):
    """Presents notifications to the user."""

    def notify(self, notification: Notification) -> None:
        """Show one notification."""


@final
class LoggingNotifier:
    """Notifier writing notifications to the log."""

    def notify(self, notification: Notification) -> None:
        """Log the notification at INFO, or at ERROR for failures."""
        level = logging.ERROR if notification.is_error else logging.INFO
        logger.log(
            level,
            '%s: %s',
            notification.title,
            notification.description,
        )


def upload_complete(name: str) -> Notification:
    """Notification for a file whose record was created."""
    return Notification('Upload Complete', f'File "{name}" has been uploaded.')


def upload_failed(name: str, reason: str) -> Notification:
    """Notification for a file that was not uploaded."""
    return Notification(
        'Upload Failed',
        f'File "{name}" could not be uploaded: {reason}',
        Level.ERROR,
    )


def download_started(name: str) -> Notification:
    """Notification for a download handed to the save target."""
    return Notification('Download Started', f'Downloading "{name}".')


def download_failed(reason: str) -> Notification:
    """Notification for a download that did not happen."""
    return Notification('Download Failed', reason, Level.ERROR)
