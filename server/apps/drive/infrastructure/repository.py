"""Node repositories: the record store behind the namespace.

Both implementations expose the same capability set, so the logic layer
never knows whether it talks to the database or to an in-memory record
set:

- ``list_by_path``: equality query on (owner, path)
- ``list_descendants``: every node inside a folder location
- ``get`` / ``find``: single node lookups
- ``create_folder`` / ``create_file`` / ``update`` / ``delete``
- ``subscribe``: live listing of one path

There is no multi-record transaction here. Every write touches exactly
one record.
"""

import logging
import threading
import uuid
from collections import defaultdict
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime
from typing import Any, Final, Protocol, final

from django.core.exceptions import ValidationError
from django.db import DatabaseError, IntegrityError, transaction
from django.db.models import Q
from django.utils import timezone

from server.apps.drive.exceptions import (
    NameConflictError,
    NodeNotFoundError,
    WriteError,
)
from server.apps.drive.logic.nodes import FileNode, FolderNode, Node
from server.apps.drive.logic.paths import ROOT, SEPARATOR, is_within
from server.apps.drive.models import Node as NodeRecord
from server.apps.drive.models import NodeKind

logger = logging.getLogger(__name__)

Listener = Callable[[list[Node]], None]
Unsubscribe = Callable[[], None]

# Fields a write may change; id and owner never change
UPDATABLE_FIELDS: Final = frozenset((
    'name',
    'path',
    'last_modified',
    'size_bytes',
    'mime_type',
    'blob_ref',
    'download_url',
))


class NodeRepository(Protocol):
    """Record store for one flat collection of nodes."""

    def list_by_path(self, owner_id: int, path: str) -> list[Node]:
        """Return the nodes whose ``path`` equals ``path``."""

    def list_descendants(self, owner_id: int, location: str) -> list[Node]:
        """Return every node whose ``path`` is within ``location``."""

    def get(self, owner_id: int, node_id: str) -> Node:
        """Return one node or raise NodeNotFoundError."""

    def find(self, owner_id: int, path: str, name: str) -> Node | None:
        """Return the node named ``name`` in ``path``, if any."""

    def create_folder(
        self,
        owner_id: int,
        name: str,
        path: str,
        *,
        last_modified: datetime | None = None,
    ) -> FolderNode:
        """Add a folder record."""

    def create_file(  # noqa: WPS211
        self,
        owner_id: int,
        name: str,
        path: str,
        *,
        size_bytes: int,
        mime_type: str,
        blob_ref: str,
        download_url: str,
        last_modified: datetime | None = None,
    ) -> FileNode:
        """Add a file record."""

    def update(self, owner_id: int, node_id: str, **changes: Any) -> Node:
        """Change fields of one record and return the new value."""

    def delete(self, owner_id: int, node_id: str) -> None:
        """Delete one record. Deleting a missing record is a no-op."""

    def subscribe(
        self,
        owner_id: int,
        path: str,
        listener: Listener,
    ) -> Unsubscribe:
        """Push the listing of ``path`` now and after every change."""


def check_changes(changes: dict[str, Any]) -> None:
    """Reject writes to fields that may not change.

    Args:
        changes: Field names mapped to new values.

    Raises:
        ValueError: If a field is unknown or immutable.
    """
    unknown = set(changes) - UPDATABLE_FIELDS
    if unknown:
        raise ValueError(
            'Cannot update field(s): {fields}'.format(
                fields=', '.join(sorted(unknown)),
            ),
        )


@final
class SubscriptionHub:
    """Fan-out of "this path changed" events to live listings.

    Callbacks are registered per (owner, path). A publish runs every
    callback of that key; a failing callback is logged and the others
    still run.
    """

    def __init__(self) -> None:
        self._callbacks: defaultdict[
            tuple[int, str],
            list[Callable[[], None]],
        ] = defaultdict(list)
        self._lock = threading.Lock()

    def add(
        self,
        owner_id: int,
        path: str,
        callback: Callable[[], None],
    ) -> Unsubscribe:
        """Register ``callback`` for changes of (owner, path).

        Args:
            owner_id: Owner's user ID.
            path: Listed path.
            callback: Called without arguments after every change.

        Returns:
            Function removing the registration. Calling it twice is safe.
        """
        key = (owner_id, path)
        with self._lock:
            self._callbacks[key].append(callback)

        def unsubscribe() -> None:
            with self._lock:
                callbacks = self._callbacks.get(key, [])
                if callback in callbacks:
                    callbacks.remove(callback)
                if not callbacks:
                    self._callbacks.pop(key, None)

        return unsubscribe

    def publish(self, owner_id: int, path: str) -> None:
        """Run the callbacks registered for (owner, path).

        Args:
            owner_id: Owner's user ID.
            path: Path whose listing changed.
        """
        with self._lock:
            callbacks = list(self._callbacks.get((owner_id, path), ()))
        for callback in callbacks:
            try:
                callback()
            except Exception:
                logger.exception(
                    'Listing subscriber failed for %s:%s',
                    owner_id,
                    path,
                )

    def subscriber_count(self, owner_id: int, path: str) -> int:
        """Number of callbacks registered for (owner, path)."""
        with self._lock:
            return len(self._callbacks.get((owner_id, path), ()))


# Changes of the Node table, published by the post_save/post_delete
# handlers in signals.py
node_events: Final = SubscriptionHub()


def to_node(record: NodeRecord) -> Node:
    """Convert a database row into its node value.

    Args:
        record: Node model instance.

    Returns:
        FolderNode or FileNode.
    """
    if record.kind == NodeKind.FOLDER:
        return FolderNode(
            id=str(record.id),
            name=record.name,
            path=record.path,
            owner_id=record.owner_id,
            last_modified=record.last_modified,
        )
    return FileNode(
        id=str(record.id),
        name=record.name,
        path=record.path,
        owner_id=record.owner_id,
        last_modified=record.last_modified,
        size_bytes=record.size_bytes or 0,
        mime_type=record.mime_type,
        blob_ref=record.blob_ref,
        download_url=record.download_url,
    )


@final
class DjangoNodeRepository:
    """Node repository backed by the ``Node`` model."""

    def list_by_path(self, owner_id: int, path: str) -> list[Node]:
        """List the nodes stored directly in ``path``.

        Args:
            owner_id: Owner's user ID.
            path: Encoded path (e.g., /Documents).

        Returns:
            Node values, unordered.
        """
        logger.debug('Listing path %s for owner %d', path, owner_id)
        records = NodeRecord.objects.filter(owner_id=owner_id, path=path)
        return [to_node(record) for record in records]

    def list_descendants(self, owner_id: int, location: str) -> list[Node]:
        """List every node inside a folder location.

        Args:
            owner_id: Owner's user ID.
            location: Folder location (e.g., /Documents).

        Returns:
            Node values at any depth below the location.
        """
        records = NodeRecord.objects.filter(owner_id=owner_id)
        if location != ROOT:
            records = records.filter(
                Q(path=location) | Q(path__startswith=location + SEPARATOR),
            )
        # SQLite matches startswith case-insensitively
        return [
            to_node(record)
            for record in records
            if is_within(record.path, location)
        ]

    def get(self, owner_id: int, node_id: str) -> Node:
        """Get one node.

        Args:
            owner_id: Owner's user ID.
            node_id: Node ID.

        Returns:
            Node value.

        Raises:
            NodeNotFoundError: If the node does not exist for this owner.
        """
        return to_node(self._get_record(owner_id, node_id))

    def find(self, owner_id: int, path: str, name: str) -> Node | None:
        """Find a node by parent path and name.

        Args:
            owner_id: Owner's user ID.
            path: Parent path.
            name: Node name.

        Returns:
            Node value, or None.
        """
        record = NodeRecord.objects.filter(
            owner_id=owner_id,
            path=path,
            name=name,
        ).first()
        if record is None:
            return None
        return to_node(record)

    def create_folder(
        self,
        owner_id: int,
        name: str,
        path: str,
        *,
        last_modified: datetime | None = None,
    ) -> FolderNode:
        """Create a folder record.

        Args:
            owner_id: Owner's user ID.
            name: Folder name.
            path: Parent path.
            last_modified: Timestamp, defaults to now.

        Returns:
            Created folder.

        Raises:
            NameConflictError: If a sibling with the same name exists.
            WriteError: If the database write fails.
        """
        node = self._create(
            owner_id=owner_id,
            kind=NodeKind.FOLDER,
            name=name,
            path=path,
            last_modified=last_modified or timezone.now(),
        )
        return node  # type: ignore[return-value]

    def create_file(  # noqa: WPS211
        self,
        owner_id: int,
        name: str,
        path: str,
        *,
        size_bytes: int,
        mime_type: str,
        blob_ref: str,
        download_url: str,
        last_modified: datetime | None = None,
    ) -> FileNode:
        """Create a file record for a committed blob.

        Args:
            owner_id: Owner's user ID.
            name: File name.
            path: Parent path.
            size_bytes: Content size.
            mime_type: Content type.
            blob_ref: Key of the committed blob.
            download_url: Retrieval URL of the blob.
            last_modified: Timestamp, defaults to now.

        Returns:
            Created file.

        Raises:
            NameConflictError: If a sibling with the same name exists.
            WriteError: If the database write fails.
        """
        node = self._create(
            owner_id=owner_id,
            kind=NodeKind.FILE,
            name=name,
            path=path,
            size_bytes=size_bytes,
            mime_type=mime_type,
            blob_ref=blob_ref,
            download_url=download_url,
            last_modified=last_modified or timezone.now(),
        )
        return node  # type: ignore[return-value]

    def update(self, owner_id: int, node_id: str, **changes: Any) -> Node:
        """Update fields of one record.

        Only the changed columns are written, so concurrent writes to
        other fields of the same record are not overwritten.

        Args:
            owner_id: Owner's user ID.
            node_id: Node ID.
            **changes: New field values.

        Returns:
            Updated node.

        Raises:
            ValueError: If an immutable field is passed.
            NodeNotFoundError: If the node does not exist.
            NameConflictError: If the new name/path is already taken.
            WriteError: If the database write fails.
        """
        check_changes(changes)
        record = self._get_record(owner_id, node_id)
        old_path = record.path
        for field_name, field_value in changes.items():
            setattr(record, field_name, field_value)

        try:
            with transaction.atomic():
                record.save(update_fields=list(changes))
        except IntegrityError as exc:
            raise self._integrity_error(record, exc) from exc
        except DatabaseError as exc:
            logger.exception('Failed to update node %s', node_id)
            raise WriteError(f'Updating node {node_id} failed') from exc

        if record.path != old_path:
            # post_save only announces the new path
            node_events.publish(owner_id, old_path)
        return to_node(record)

    def delete(self, owner_id: int, node_id: str) -> None:
        """Delete one record.

        Args:
            owner_id: Owner's user ID.
            node_id: Node ID.

        Raises:
            WriteError: If the database delete fails.
        """
        try:
            record = self._get_record(owner_id, node_id)
        except NodeNotFoundError:
            logger.debug('Node already deleted: %s', node_id)
            return

        try:
            with transaction.atomic():
                record.delete()
        except DatabaseError as exc:
            logger.exception('Failed to delete node %s', node_id)
            raise WriteError(f'Deleting node {node_id} failed') from exc

    def subscribe(
        self,
        owner_id: int,
        path: str,
        listener: Listener,
    ) -> Unsubscribe:
        """Subscribe to the listing of one path.

        The listener gets the current listing immediately and again after
        every saved or deleted record of that path.

        Args:
            owner_id: Owner's user ID.
            path: Encoded path.
            listener: Receives the full, unordered listing.

        Returns:
            Function ending the subscription.
        """

        def push() -> None:
            listener(self.list_by_path(owner_id, path))

        unsubscribe = node_events.add(owner_id, path, push)
        push()
        return unsubscribe

    def _get_record(self, owner_id: int, node_id: str) -> NodeRecord:
        try:
            return NodeRecord.objects.get(owner_id=owner_id, id=node_id)
        except (NodeRecord.DoesNotExist, ValidationError) as exc:
            raise NodeNotFoundError(f'Node not found: {node_id}') from exc

    def _create(self, **fields: Any) -> Node:
        record = NodeRecord(**fields)
        try:
            with transaction.atomic():
                record.save(force_insert=True)
        except IntegrityError as exc:
            raise self._integrity_error(record, exc) from exc
        except DatabaseError as exc:
            logger.exception('Failed to create node %s', record.location)
            raise WriteError(f'Creating {record.location} failed') from exc

        logger.info(
            'Node created: %s (ID: %s, owner: %d)',
            record.location,
            record.id,
            record.owner_id,
        )
        return to_node(record)

    def _integrity_error(
        self,
        record: NodeRecord,
        exc: IntegrityError,
    ) -> Exception:
        sibling_exists = NodeRecord.objects.filter(
            owner_id=record.owner_id,
            path=record.path,
            name=record.name,
        ).exclude(id=record.id).exists()
        if sibling_exists:
            return NameConflictError(record.name, record.path)
        logger.exception('Integrity error writing node %s', record.location)
        return WriteError(f'Writing {record.location} failed: {exc}')


@final
class InMemoryNodeRepository:
    """Node repository holding its records in a dict.

    Same behaviour as the database repository, including the sibling
    name constraint. Used for tests and for running the namespace
    without a database.
    """

    def __init__(self, nodes: list[Node] | None = None) -> None:
        self._nodes: dict[str, Node] = {}
        self._events = SubscriptionHub()
        for node in nodes or ():
            self._nodes[node.id] = node

    def list_by_path(self, owner_id: int, path: str) -> list[Node]:
        """List the nodes stored directly in ``path``."""
        return [
            node
            for node in self._nodes.values()
            if node.owner_id == owner_id and node.path == path
        ]

    def list_descendants(self, owner_id: int, location: str) -> list[Node]:
        """List every node inside a folder location."""
        return [
            node
            for node in self._nodes.values()
            if node.owner_id == owner_id and is_within(node.path, location)
        ]

    def get(self, owner_id: int, node_id: str) -> Node:
        """Get one node or raise NodeNotFoundError."""
        node = self._nodes.get(node_id)
        if node is None or node.owner_id != owner_id:
            raise NodeNotFoundError(f'Node not found: {node_id}')
        return node

    def find(self, owner_id: int, path: str, name: str) -> Node | None:
        """Find a node by parent path and name."""
        for node in self.list_by_path(owner_id, path):
            if node.name == name:
                return node
        return None

    def create_folder(
        self,
        owner_id: int,
        name: str,
        path: str,
        *,
        last_modified: datetime | None = None,
    ) -> FolderNode:
        """Create a folder record."""
        folder = FolderNode(
            id=str(uuid.uuid4()),
            name=name,
            path=path,
            owner_id=owner_id,
            last_modified=last_modified or timezone.now(),
        )
        self._insert(folder)
        return folder

    def create_file(  # noqa: WPS211
        self,
        owner_id: int,
        name: str,
        path: str,
        *,
        size_bytes: int,
        mime_type: str,
        blob_ref: str,
        download_url: str,
        last_modified: datetime | None = None,
    ) -> FileNode:
        """Create a file record for a committed blob."""
        if not blob_ref:
            raise WriteError(f'File {name} has no committed blob')
        file_node = FileNode(
            id=str(uuid.uuid4()),
            name=name,
            path=path,
            owner_id=owner_id,
            last_modified=last_modified or timezone.now(),
            size_bytes=size_bytes,
            mime_type=mime_type,
            blob_ref=blob_ref,
            download_url=download_url,
        )
        self._insert(file_node)
        return file_node

    def update(self, owner_id: int, node_id: str, **changes: Any) -> Node:
        """Update fields of one record and return the new value."""
        check_changes(changes)
        current = self.get(owner_id, node_id)
        try:
            updated = replace(current, **changes)
        except TypeError as exc:
            raise ValueError(
                f'Cannot update {current.kind} node with {sorted(changes)}',
            ) from exc

        existing = self.find(owner_id, updated.path, updated.name)
        if existing is not None and existing.id != node_id:
            raise NameConflictError(updated.name, updated.path)

        self._nodes[node_id] = updated
        self._events.publish(owner_id, updated.path)
        if updated.path != current.path:
            self._events.publish(owner_id, current.path)
        return updated

    def delete(self, owner_id: int, node_id: str) -> None:
        """Delete one record. Deleting a missing record is a no-op."""
        node = self._nodes.get(node_id)
        if node is None or node.owner_id != owner_id:
            return
        del self._nodes[node_id]  # noqa: WPS420
        self._events.publish(owner_id, node.path)

    def subscribe(
        self,
        owner_id: int,
        path: str,
        listener: Listener,
    ) -> Unsubscribe:
        """Push the listing of ``path`` now and after every change."""

        def push() -> None:
            listener(self.list_by_path(owner_id, path))

        unsubscribe = self._events.add(owner_id, path, push)
        push()
        return unsubscribe

    def _insert(self, node: Node) -> None:
        if self.find(node.owner_id, node.path, node.name) is not None:
            raise NameConflictError(node.name, node.path)
        self._nodes[node.id] = node
        self._events.publish(node.owner_id, node.path)


def get_repository() -> DjangoNodeRepository:
    """Get the database-backed node repository.

    Returns:
        DjangoNodeRepository instance.
    """
    return DjangoNodeRepository()
