"""Exceptions for drive app.

Validation problems use Django's ``ValidationError`` (and
``NameConflictError``); everything that goes wrong after validation is a
``DriveError``.
"""

from typing import TYPE_CHECKING

from django.core.exceptions import ValidationError

if TYPE_CHECKING:
    from server.apps.drive.logic.batch import BatchResult


class NameConflictError(ValidationError):
    """Raised when a sibling with the same name already exists."""

    def __init__(self, name: str, path: str) -> None:
        """Initialize NameConflictError.

        Args:
            name: Conflicting node name.
            path: Parent path the name is already used in.
        """
        self.name = name
        self.path = path
        super().__init__(
            f'"{name}" already exists in {path}.',
            code='name_conflict',
        )


class DriveError(Exception):
    """Base class for failures after validation passed."""


class NodeNotFoundError(DriveError):
    """Raised when a node record does not exist (for this owner)."""


class WriteError(DriveError):
    """Raised when a record create/update/delete fails."""


class CascadeError(WriteError):
    """Raised when a multi-record write was only partially applied.

    Already applied writes are not rolled back. ``result.remaining()``
    gives the batch of writes that still have to be retried.
    """

    def __init__(self, message: str, result: 'BatchResult') -> None:
        """Initialize CascadeError.

        Args:
            message: Human readable description.
            result: Outcome of the batch application.
        """
        self.result = result
        super().__init__(
            f'{message} ({len(result.applied)} applied, '
            f'{len(result.failed)} failed)',
        )


class TransportError(DriveError):
    """Raised when blob storage transport fails."""


class DownloadError(DriveError):
    """Raised when a file cannot be downloaded."""
