"""WebDAV file resource (DAVNonCollection) implementation."""

import logging
from io import BytesIO
from typing import BinaryIO, final, override

from django.core.files.base import ContentFile
from wsgidav.dav_error import HTTP_FORBIDDEN, DAVError
from wsgidav.dav_provider import DAVNonCollection

from server.apps.drive.logic.nodes import FileNode
from server.apps.drive.logic.operations import (
    delete_node,
    move_node,
    replace_file_content,
)
from server.apps.drive.logic.paths import name_of, normalize, parent_of
from server.apps.drive.logic.uploads import upload_files
from server.apps.webdav.resources.base import DriveContext, dav_errors

logger = logging.getLogger(__name__)


@final
class FileResource(DAVNonCollection):
    """WebDAV resource representing a file node.

    Maps WebDAV operations to the drive operations module.
    Each instance represents a single file owned by the authenticated user.
    """

    def __init__(
        self,
        path: str,
        environ: dict,
        context: DriveContext,
        node: FileNode,
    ) -> None:
        """Initialize file resource.

        Args:
            path: WebDAV path to the file.
            environ: WSGI environ dictionary.
            context: Drive of the authenticated user.
            node: File node.
        """
        super().__init__(path, environ)
        self._context = context
        self._node = node

    @property
    def node(self) -> FileNode:
        """File node behind this resource."""
        return self._node

    @override
    def get_content_length(self) -> int:
        """Get file size in bytes."""
        return self._node.size_bytes

    @override
    def get_content_type(self) -> str:
        """Get file MIME type."""
        return self._node.mime_type

    @override
    def get_last_modified(self) -> float:
        """Get file modification timestamp.

        Returns:
            Unix timestamp of last modification.
        """
        return self._node.last_modified.timestamp()

    @override
    def get_etag(self) -> str:
        """Get entity tag for the file.

        The blob key changes whenever the content is replaced, so it
        serves as ETag.

        Returns:
            ETag string (without quotes - WsgiDAV adds them).
        """
        return self._node.blob_ref

    @override
    def support_etag(self) -> bool:
        """Check if ETag is supported."""
        return True

    @override
    def get_content(self) -> BinaryIO:
        """Get file content as file-like object.

        Streams content from blob storage.

        Returns:
            File-like object with file content.
        """
        logger.debug('Getting content for file: %s', self._node.location)
        return self._context.blob_store.open(self._node.blob_ref, 'rb')

    @override
    def begin_write(self, content_type: str | None = None) -> BinaryIO:
        """Begin writing new content to the file.

        Creates a buffer to collect uploaded content.
        The content is replaced when the buffer is closed.

        Args:
            content_type: MIME type of content (optional).

        Returns:
            Writable file-like object.
        """
        logger.debug('Beginning write for file: %s', self.path)
        return _ReplaceBuffer(self._context, self._node)

    @override
    def delete(self) -> None:
        """Delete the file record and its blob."""
        logger.info('Deleting file via WebDAV: %s', self._node.location)
        with dav_errors(f'Deleting {self._node.location}'):
            delete_node(
                self._context.repository,
                self._context.blob_store,
                self._node,
            )

    @override
    def support_ranges(self) -> bool:
        """Check if byte ranges are supported.

        Returns:
            True - S3 supports range requests.
        """
        return True

    @override
    def support_recursive_move(self, dest_path: str) -> bool:
        """Moves are a single record update, never copy plus delete."""
        return True

    @override
    def move_recursive(self, dest_path: str) -> list:
        """Move or rename this file.

        Only the record changes; the blob stays where it is.

        Args:
            dest_path: Destination WebDAV path.

        Returns:
            Empty error list.
        """
        destination = normalize(dest_path)
        logger.info(
            'Moving file from %s to %s',
            self._node.location,
            destination,
        )
        with dav_errors(f'Moving {self._node.location}'):
            move_node(
                self._context.repository,
                self._node,
                parent_of(destination),
                name_of(destination),
            )
        return []

    @override
    def copy_move_single(self, dest_path: str, *, is_move: bool) -> None:
        """Refuse COPY; the drive has no duplicate operation.

        Moves never get here since ``move_recursive`` handles them.

        Raises:
            DAVError: Always 403.
        """
        logger.info('Refused copy of %s to %s', self._node.location, dest_path)
        raise DAVError(HTTP_FORBIDDEN, 'Copying files is not supported.')


class _ReplaceBuffer(BytesIO):
    """Buffer collecting new content for an existing file.

    The content is replaced when WsgiDAV closes the buffer.
    """

    def __init__(self, context: DriveContext, node: FileNode) -> None:
        super().__init__()
        self._context = context
        self._node = node

    @override
    def close(self) -> None:
        """Close buffer and replace the file content.

        An empty body leaves the content alone: Finder sends an empty PUT
        before the real one.

        Raises:
            DAVError: If the content cannot be replaced.
        """
        if self.closed:
            return

        content = self.getvalue()
        if content:
            logger.debug(
                'Writing %d bytes to file: %s',
                len(content),
                self._node.location,
            )
            with dav_errors(f'Replacing {self._node.location}'):
                replace_file_content(
                    self._context.repository,
                    self._context.blob_store,
                    self._node,
                    ContentFile(content),
                )

        super().close()


@final
class NewFileResource(DAVNonCollection):
    """WebDAV resource for a file being created (doesn't exist yet).

    Used when a PUT request creates a new file.
    """

    def __init__(
        self,
        path: str,
        environ: dict,
        context: DriveContext,
    ) -> None:
        """Initialize new file resource.

        Args:
            path: WebDAV path where file will be created.
            environ: WSGI environ dictionary.
            context: Drive of the authenticated user.
        """
        super().__init__(path, environ)
        self._context = context

    @override
    def get_content_length(self) -> int:
        """Get file size (0 for new files)."""
        return 0

    @override
    def get_content_type(self) -> str:
        """Get content type (unknown for new files)."""
        return 'application/octet-stream'

    @override
    def get_content(self) -> BinaryIO:
        """Get content (empty for new files)."""
        return BytesIO(b'')

    @override
    def get_etag(self) -> str | None:
        """Get entity tag (none for new files)."""
        return None

    @override
    def support_etag(self) -> bool:
        """Check if ETag is supported (not for new files)."""
        return False

    @override
    def begin_write(self, content_type: str | None = None) -> BinaryIO:
        """Begin writing content to create the file.

        Args:
            content_type: MIME type of content.

        Returns:
            Writable buffer that uploads the file on close.
        """
        logger.debug('Beginning write for new file: %s', self.path)
        return _NewFileBuffer(self._context, normalize(self.path))


class _NewFileBuffer(BytesIO):
    """Buffer for creating new files.

    Captures uploaded content and runs it through the upload
    coordinator when closed.
    """

    def __init__(self, context: DriveContext, location: str) -> None:
        super().__init__()
        self._context = context
        self._location = location

    @override
    def close(self) -> None:
        """Close buffer and upload the file.

        Always creates the file, even if empty: Finder sends an empty PUT
        first, then LOCK, then PUT with content.

        Raises:
            DAVError: If the upload fails.
        """
        if self.closed:
            return

        content = self.getvalue()
        logger.info(
            'Creating new file via WebDAV: %s (%d bytes)',
            self._location,
            len(content),
        )
        outcome = upload_files(
            self._context.repository,
            self._context.blob_store,
            self._context.owner_id,
            [ContentFile(content, name=name_of(self._location))],
            parent_of(self._location),
        )[0]

        super().close()
        if outcome.error is not None:
            with dav_errors(f'Uploading {self._location}'):
                raise outcome.error
