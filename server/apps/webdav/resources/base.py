"""Base utilities for WebDAV resources."""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING, final

from django.core.exceptions import ValidationError
from wsgidav.dav_error import (
    HTTP_BAD_REQUEST,
    HTTP_CONFLICT,
    HTTP_INTERNAL_ERROR,
    HTTP_NOT_FOUND,
    DAVError,
)

from server.apps.drive.exceptions import (
    DriveError,
    NameConflictError,
    NodeNotFoundError,
)
from server.apps.drive.infrastructure.repository import get_repository
from server.apps.drive.infrastructure.storage import get_blob_store
from server.apps.webdav.domain_controller import ENVIRON_USER_KEY

if TYPE_CHECKING:
    from django.contrib.auth.models import User

    from server.apps.drive.infrastructure.repository import NodeRepository
    from server.apps.drive.infrastructure.storage import BlobStore

logger = logging.getLogger(__name__)


def get_user_from_environ(environ: dict) -> 'User':
    """Get authenticated Django user from WSGI environ.

    Args:
        environ: WSGI environ dictionary.

    Returns:
        Authenticated Django User object.

    Raises:
        KeyError: If user is not in environ (should not happen
                  if domain controller is working correctly).
    """
    return environ[ENVIRON_USER_KEY]


@final
@dataclass(frozen=True, slots=True)
class DriveContext:
    """Everything a resource needs to act on one user's drive."""

    owner_id: int
    repository: 'NodeRepository'
    blob_store: 'BlobStore'

    @classmethod
    def from_environ(cls, environ: dict) -> 'DriveContext':
        """Build the context for the authenticated user of a request."""
        return cls(
            owner_id=get_user_from_environ(environ).id,
            repository=get_repository(),
            blob_store=get_blob_store(),
        )


def _describe(exc: Exception) -> str:
    if isinstance(exc, ValidationError):
        return ' '.join(exc.messages)
    return str(exc)


@contextmanager
def dav_errors(action: str) -> Iterator[None]:
    """Translate drive errors into WebDAV status codes.

    - NameConflictError: 409 Conflict
    - ValidationError: 400 Bad Request
    - NodeNotFoundError: 404 Not Found
    - any other DriveError: 500 Internal Server Error

    Args:
        action: What was attempted, for the log.

    Yields:
        Nothing.

    Raises:
        DAVError: With the translated status code.
    """
    try:
        yield
    except NameConflictError as exc:
        logger.info('%s rejected: %s', action, exc)
        raise DAVError(HTTP_CONFLICT, _describe(exc)) from exc
    except ValidationError as exc:
        logger.info('%s rejected: %s', action, exc)
        raise DAVError(HTTP_BAD_REQUEST, _describe(exc)) from exc
    except NodeNotFoundError as exc:
        raise DAVError(HTTP_NOT_FOUND, str(exc)) from exc
    except DriveError as exc:
        logger.exception('%s failed', action)
        raise DAVError(HTTP_INTERNAL_ERROR, str(exc)) from exc
