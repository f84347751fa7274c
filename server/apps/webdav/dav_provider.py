"""Main WsgiDAV provider for Django integration.

This module provides the DAVProvider that exposes the drive namespace
to native file browsers.
"""

import logging
from typing import final, override

from wsgidav.dav_provider import DAVCollection, DAVNonCollection, DAVProvider

from server.apps.drive.exceptions import NodeNotFoundError
from server.apps.drive.logic.namespace import resolve
from server.apps.drive.logic.paths import is_safe_path, normalize
from server.apps.webdav.resources.base import DriveContext
from server.apps.webdav.resources.collection import (
    FolderCollection,
    make_resource,
)

logger = logging.getLogger(__name__)


@final
class DriveDAVProvider(DAVProvider):
    """WsgiDAV provider for the drive namespace.

    WebDAV paths are node locations. Each authenticated user sees only
    their own nodes.
    """

    @override
    def get_resource_inst(
        self,
        path: str,
        environ: dict,
    ) -> DAVCollection | DAVNonCollection | None:
        """Get resource instance for a given path.

        Returns a FolderCollection for the root and folders, FileResource
        for files, or None if the path doesn't exist.

        Args:
            path: WebDAV path requested.
            environ: WSGI environ dictionary.

        Returns:
            DAV resource instance, or None if not found.
        """
        context = DriveContext.from_environ(environ)

        # Validate path for security
        if not is_safe_path(path):
            logger.warning(
                'Invalid path rejected: %s (owner: %d)',
                path,
                context.owner_id,
            )
            return None

        location = normalize(path)
        logger.debug(
            'Getting resource for path: %s (owner: %d)',
            location,
            context.owner_id,
        )

        try:
            node = resolve(context.repository, context.owner_id, location)
        except NodeNotFoundError:
            logger.debug('Resource not found: %s', location)
            return None

        if node is None:
            return FolderCollection(location, environ, context, None)
        return make_resource(location, environ, context, node)

    @override
    def is_readonly(self) -> bool:
        """Check if the provider is read-only.

        Returns:
            False - we support write operations.
        """
        return False
