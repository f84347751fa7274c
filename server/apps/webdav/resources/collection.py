"""WebDAV folder collection (DAVCollection) implementation."""

import logging
from typing import TYPE_CHECKING, final, override

from wsgidav.dav_error import HTTP_FORBIDDEN, DAVError
from wsgidav.dav_provider import DAVCollection

from server.apps.drive.logic.namespace import children
from server.apps.drive.logic.nodes import FileNode, FolderNode, Node
from server.apps.drive.logic.operations import (
    create_folder,
    delete_node,
    move_node,
)
from server.apps.drive.logic.paths import (
    ROOT,
    location_of,
    name_of,
    normalize,
    parent_of,
)
from server.apps.webdav.resources.base import DriveContext, dav_errors
from server.apps.webdav.resources.file_resource import (
    FileResource,
    NewFileResource,
)

if TYPE_CHECKING:
    from wsgidav.dav_provider import DAVNonCollection

logger = logging.getLogger(__name__)


def _is_hidden_file(name: str) -> bool:
    """Check if a file should be hidden from directory listings.

    Hides macOS-specific metadata files:
    - .DS_Store* (Finder folder settings)
    - ._* (AppleDouble/resource fork files)

    Args:
        name: Filename to check.

    Returns:
        True if file should be hidden.
    """
    return name.startswith(('.DS_Store', '._'))


def make_resource(
    path: str,
    environ: dict,
    context: DriveContext,
    node: Node,
) -> 'FolderCollection | FileResource':
    """Wrap a node in the matching WebDAV resource.

    Args:
        path: WebDAV path of the node.
        environ: WSGI environ dictionary.
        context: Drive of the authenticated user.
        node: Folder or file node.

    Returns:
        FolderCollection for folders, FileResource for files.
    """
    if isinstance(node, FileNode):
        return FileResource(path, environ, context, node)
    return FolderCollection(path, environ, context, node)


@final
class FolderCollection(DAVCollection):
    """WebDAV collection representing a folder node or the root.

    Members are the nodes whose ``path`` equals this folder's location.
    """

    def __init__(
        self,
        path: str,
        environ: dict,
        context: DriveContext,
        folder: FolderNode | None,
    ) -> None:
        """Initialize folder collection.

        Args:
            path: WebDAV path to the folder.
            environ: WSGI environ dictionary.
            context: Drive of the authenticated user.
            folder: Folder node, None for the root.
        """
        super().__init__(path, environ)
        self._context = context
        self._folder = folder

    @property
    def location(self) -> str:
        """Location of this folder, the ``path`` of its members."""
        if self._folder is None:
            return ROOT
        return self._folder.location

    @override
    def get_creation_date(self) -> float | None:
        """Get folder creation timestamp (not tracked)."""
        return None

    @override
    def get_last_modified(self) -> float | None:
        """Get folder modification timestamp.

        Returns:
            Unix timestamp, None for the root.
        """
        if self._folder is None:
            return None
        return self._folder.last_modified.timestamp()

    @override
    def get_member_names(self) -> list[str]:
        """Get names of all direct children in this folder.

        Returns:
            Member names, folders first.
        """
        members = children(
            self._context.repository.list_by_path(
                self._context.owner_id,
                self.location,
            ),
            self.location,
        )
        return [
            member.name
            for member in members
            if not _is_hidden_file(member.name)
        ]

    @override
    def get_member(self, name: str) -> 'FolderCollection | FileResource | None':
        """Get a specific child member by name.

        Args:
            name: Name of the child (file or folder).

        Returns:
            Resource for the child, or None if it doesn't exist.
        """
        node = self._context.repository.find(
            self._context.owner_id,
            self.location,
            name,
        )
        if node is None:
            return None
        return make_resource(
            location_of(self.location, name),
            self.environ,
            self._context,
            node,
        )

    @override
    def create_empty_resource(self, name: str) -> 'DAVNonCollection':
        """Create placeholder for a new file (before PUT content).

        Args:
            name: Filename to create.

        Returns:
            NewFileResource placeholder.
        """
        child_path = location_of(self.location, name)
        logger.debug('Creating empty resource for: %s', child_path)
        return NewFileResource(child_path, self.environ, self._context)

    @override
    def create_collection(self, name: str) -> 'FolderCollection':
        """Create a new subfolder (MKCOL operation).

        Args:
            name: Folder name to create.

        Returns:
            FolderCollection for the new folder.
        """
        logger.info('Creating collection %s in %s', name, self.location)
        with dav_errors(f'Creating folder {name}'):
            folder = create_folder(
                self._context.repository,
                self._context.owner_id,
                name,
                self.location,
            )
        return FolderCollection(
            folder.location,
            self.environ,
            self._context,
            folder,
        )

    @override
    def delete(self) -> None:
        """Delete this folder and all its contents.

        Raises:
            DAVError: 403 for the root folder.
        """
        if self._folder is None:
            raise DAVError(HTTP_FORBIDDEN, 'The root folder cannot be deleted.')

        logger.info('Deleting folder and contents: %s', self.location)
        with dav_errors(f'Deleting {self.location}'):
            delete_node(
                self._context.repository,
                self._context.blob_store,
                self._folder,
            )

    @override
    def support_recursive_delete(self) -> bool:
        """Check if recursive delete is supported.

        Returns:
            True - we support deleting folders with contents.
        """
        return True

    @override
    def get_etag(self) -> str | None:
        """Get entity tag for folder.

        Folders don't have a stable ETag since their contents change.

        Returns:
            None - no ETag for folders.
        """
        return None

    @override
    def support_recursive_move(self, dest_path: str) -> bool:
        """Check if recursive move is supported.

        We support moving folders with all their contents.

        Args:
            dest_path: Destination path.

        Returns:
            True - we support recursive move.
        """
        return True

    @override
    def move_recursive(self, dest_path: str) -> list:
        """Move this folder and all its contents to a new path.

        Overrides the default implementation which raises HTTP_FORBIDDEN.
        The folder record is moved and every descendant path rewritten.

        Args:
            dest_path: Destination WebDAV path.

        Returns:
            Empty error list.

        Raises:
            DAVError: 403 for the root folder, or the translated drive
                error.
        """
        if self._folder is None:
            raise DAVError(HTTP_FORBIDDEN, 'The root folder cannot be moved.')

        destination = normalize(dest_path)
        logger.info('Moving folder from %s to %s', self.location, destination)
        with dav_errors(f'Moving {self.location}'):
            move_node(
                self._context.repository,
                self._folder,
                parent_of(destination),
                name_of(destination),
            )
        return []

    @override
    def copy_move_single(self, dest_path: str, *, is_move: bool) -> None:
        """Refuse COPY of folders."""
        logger.info('Refused copy of %s to %s', self.location, dest_path)
        raise DAVError(HTTP_FORBIDDEN, 'Copying folders is not supported.')
