"""Mutation operations on the namespace.

Each operation validates its input before any remote call, then writes
records through the repository. Cascades are planned by the rewriter
and applied as write batches.
"""

import logging
from typing import IO, TYPE_CHECKING

from django.core.exceptions import ValidationError
from django.utils import timezone

from server.apps.drive.exceptions import (
    DownloadError,
    NameConflictError,
    NodeNotFoundError,
    TransportError,
    WriteError,
)
from server.apps.drive.infrastructure.metadata import (
    detect_mime_type,
    make_blob_key,
)
from server.apps.drive.logic.batch import BatchResult
from server.apps.drive.logic.nodes import FileNode, FolderNode, Node
from server.apps.drive.logic.paths import (
    is_root,
    is_within,
    name_of,
    normalize,
    parent_of,
    validate_name,
)
from server.apps.drive.logic.rewriter import plan_delete, plan_move

if TYPE_CHECKING:
    from server.apps.drive.infrastructure.repository import NodeRepository
    from server.apps.drive.infrastructure.saving import SaveTarget
    from server.apps.drive.infrastructure.storage import BlobStore

logger = logging.getLogger(__name__)


def ensure_folder(
    repository: 'NodeRepository',
    owner_id: int,
    path: str,
) -> None:
    """Check that ``path`` is the root or an existing folder.

    Raises:
        ValidationError: If there is no folder at ``path``.
    """
    if is_root(path):
        return
    folder = repository.find(owner_id, parent_of(path), name_of(path))
    if folder is None or not folder.is_folder:
        raise ValidationError(
            f'Folder {path} does not exist.',
            code='missing_folder',
        )


def _check_free(
    repository: 'NodeRepository',
    owner_id: int,
    path: str,
    name: str,
    node_id: str | None = None,
) -> None:
    existing = repository.find(owner_id, path, name)
    if existing is not None and existing.id != node_id:
        raise NameConflictError(name, path)


def create_folder(
    repository: 'NodeRepository',
    owner_id: int,
    name: str,
    path: str,
) -> FolderNode:
    """Create a folder in ``path``.

    Args:
        repository: Node repository.
        owner_id: Owner's user ID.
        name: Folder name, trimmed before it is stored.
        path: Encoded parent path.

    Returns:
        Created folder.

    Raises:
        ValidationError: If the name is empty or invalid, or the parent
            folder does not exist.
        NameConflictError: If the name is taken in ``path``.
        WriteError: If the record cannot be written.
    """
    cleaned = validate_name(name, label='Folder name')
    path = normalize(path)
    ensure_folder(repository, owner_id, path)
    _check_free(repository, owner_id, path, cleaned)

    folder = repository.create_folder(owner_id, cleaned, path)
    logger.info('Folder "%s" created in %s', cleaned, path)
    return folder


def rename_node(
    repository: 'NodeRepository',
    node: Node,
    new_name: str,
) -> Node:
    """Rename a file or folder in place.

    A folder rename also rewrites the path of every descendant.

    Args:
        repository: Node repository.
        node: Node to rename.
        new_name: New name, trimmed before it is stored.

    Returns:
        The renamed node.

    Raises:
        ValidationError: If the name is empty or invalid.
        NameConflictError: If a sibling already has the name.
        CascadeError: If some descendants were not rewritten.
    """
    cleaned = validate_name(new_name)
    return _relocate(repository, node, node.path, cleaned)


def move_node(
    repository: 'NodeRepository',
    node: Node,
    destination: str,
    new_name: str | None = None,
) -> Node:
    """Move a node under another folder, optionally renaming it.

    Args:
        repository: Node repository.
        node: Node to move.
        destination: Encoded path of the new parent folder.
        new_name: New name, defaults to the current one.

    Returns:
        The moved node.

    Raises:
        ValidationError: If the name is invalid, the destination does not
            exist or lies inside the node itself.
        NameConflictError: If the destination has a node of that name.
        CascadeError: If some descendants were not rewritten.
    """
    cleaned = validate_name(new_name) if new_name is not None else node.name
    destination = normalize(destination)
    if node.is_folder and is_within(destination, node.location):
        raise ValidationError(
            f'Cannot move {node.location} into itself.',
            code='move_into_self',
        )
    ensure_folder(repository, node.owner_id, destination)
    return _relocate(repository, node, destination, cleaned)


def _relocate(
    repository: 'NodeRepository',
    node: Node,
    path: str,
    name: str,
) -> Node:
    if (path, name) == (node.path, node.name):
        return node
    _check_free(repository, node.owner_id, path, name, node.id)

    batch = plan_move(repository, node, path, name)
    result = batch.apply(repository)
    if result.failed and not result.applied:
        # The node's own update failed; nothing was written
        raise result.failed[0].error
    result.raise_for_failures(f'Moving {node.location} was not completed')

    logger.info(
        'Moved %s to %s/%s (%d descendant(s) rewritten)',
        node.location,
        path,
        name,
        len(batch) - 1,
    )
    return repository.get(node.owner_id, node.id)


def discard_blob(blob_store: 'BlobStore', blob_ref: str) -> bool:
    """Delete a blob, best effort.

    Args:
        blob_store: Blob storage.
        blob_ref: Key of the blob.

    Returns:
        True if the blob was deleted.
    """
    try:
        blob_store.delete(blob_ref)
    except TransportError:
        logger.exception('Failed to delete blob (orphaned): %s', blob_ref)
        return False
    return True


def delete_node(
    repository: 'NodeRepository',
    blob_store: 'BlobStore',
    node: Node,
) -> BatchResult:
    """Delete a node; for folders, everything inside it too.

    Records are deleted first. Blobs of the deleted file records are
    deleted afterwards, best effort: a failed blob delete never undoes
    or blocks a record delete.

    Args:
        repository: Node repository.
        blob_store: Blob storage.
        node: File or folder to delete.

    Returns:
        Outcome of the record deletes.

    Raises:
        CascadeError: If some records were not deleted. Blobs of the
            records that were deleted are still removed.
    """
    result = plan_delete(repository, node).apply(repository)

    for blob_ref in result.deleted_blob_refs:
        discard_blob(blob_store, blob_ref)

    result.raise_for_failures(f'Deleting {node.location} was not completed')
    logger.info(
        'Deleted %s (%d record(s))',
        node.location,
        len(result.applied),
    )
    return result


def download_file(
    blob_store: 'BlobStore',
    node: Node,
    target: 'SaveTarget',
) -> str:
    """Fetch a file's content and hand it to a save target.

    Args:
        blob_store: Blob storage.
        node: File to download.
        target: Where the content is saved.

    Returns:
        What the save target reports (e.g., the saved file path).

    Raises:
        DownloadError: If the node is a folder, has no content, or the
            content cannot be fetched or saved.
    """
    if not isinstance(node, FileNode):
        raise DownloadError(f'"{node.name}" is a folder.')
    if not node.blob_ref:
        raise DownloadError(f'"{node.name}" has no content to download.')

    try:
        content = blob_store.read(node.blob_ref)
    except TransportError as exc:
        raise DownloadError(f'Downloading "{node.name}" failed.') from exc

    try:
        saved = target.save(node.name, content)
    except OSError as exc:
        logger.exception('Failed to save download: %s', node.name)
        raise DownloadError(f'Saving "{node.name}" failed.') from exc

    logger.info('Downloaded %s to %s', node.location, saved)
    return saved


def replace_file_content(
    repository: 'NodeRepository',
    blob_store: 'BlobStore',
    node: FileNode,
    content: IO[bytes],
) -> FileNode:
    """Replace the content of an existing file.

    New content is uploaded under a fresh key first, then the record is
    updated. If the update fails the new blob is deleted again; the old
    blob is deleted only after a successful update.

    Args:
        repository: Node repository.
        blob_store: Blob storage.
        node: File whose content changes.
        content: New content.

    Returns:
        Updated file.

    Raises:
        TransportError: If the upload fails.
        WriteError: If the record update fails.
        NodeNotFoundError: If the file was deleted meanwhile.
    """
    blob_key = make_blob_key(node.owner_id, node.name)
    mime_type = detect_mime_type(node.name)

    # Step 1: Upload new content under a fresh key
    blob_store.upload(blob_key, content, content_type=mime_type)
    size_bytes = content.seek(0, 2)

    # Step 2: Point the record at the new blob
    try:
        updated = repository.update(
            node.owner_id,
            node.id,
            size_bytes=size_bytes,
            mime_type=mime_type,
            blob_ref=blob_key,
            download_url=blob_store.retrieval_url(blob_key),
            last_modified=timezone.now(),
        )
    except (WriteError, NodeNotFoundError, TransportError):
        logger.exception('Record update failed, rolling back: %s', blob_key)
        discard_blob(blob_store, blob_key)
        raise

    # Step 3: Delete old content (best effort)
    discard_blob(blob_store, node.blob_ref)
    logger.info('Replaced content of %s (%d bytes)', node.location, size_bytes)
    return updated  # type: ignore[return-value]
