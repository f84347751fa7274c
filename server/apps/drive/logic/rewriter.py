"""Cascade planning for rename, move and delete.

Renaming or moving a folder changes the location every descendant's
``path`` is prefixed with, so each descendant record has to be
rewritten. Deleting a folder has to delete every descendant record.
The functions here only plan those writes; ``WriteBatch.apply`` runs
them.
"""

from collections.abc import Iterable
from datetime import datetime
from typing import TYPE_CHECKING

from django.utils import timezone

from server.apps.drive.logic.batch import Write, WriteBatch
from server.apps.drive.logic.nodes import Node
from server.apps.drive.logic.paths import decode, location_of, rebase

if TYPE_CHECKING:
    from server.apps.drive.infrastructure.repository import NodeRepository


def _depth(node: Node) -> int:
    return len(decode(node.path))


def relocation_writes(
    node: Node,
    descendants: Iterable[Node],
    new_path: str,
    new_name: str,
    now: datetime,
) -> WriteBatch:
    """Plan the writes that give ``node`` a new path and name.

    The node's own update comes first and is critical: if it fails
    nothing else is written. Descendant updates follow, shallow to deep.

    Args:
        node: Node being renamed or moved.
        descendants: Nodes within the node's current location. Ignored
            for files.
        new_path: Parent path after the change.
        new_name: Name after the change.
        now: New ``last_modified`` of the node itself.

    Returns:
        Batch of updates.
    """
    own_update = Write.update(
        node,
        critical=True,
        name=new_name,
        path=new_path,
        last_modified=now,
    )
    if not node.is_folder:
        return WriteBatch((own_update,))

    old_location = node.location
    new_location = location_of(new_path, new_name)
    ordered = sorted(
        descendants,
        key=lambda descendant: (_depth(descendant), descendant.path, descendant.name),
    )
    return WriteBatch((
        own_update,
        *(
            Write.update(
                descendant,
                path=rebase(descendant.path, old_location, new_location),
            )
            for descendant in ordered
        ),
    ))


def delete_writes(node: Node, descendants: Iterable[Node]) -> WriteBatch:
    """Plan the deletion of a node and everything inside it.

    Descendants go deepest first and the folder itself last. Every
    delete is critical, so after a failure the folder is still there
    and the delete can be issued again.

    Args:
        node: Node being deleted.
        descendants: Nodes within the node's location. Ignored for files.

    Returns:
        Batch of deletes.
    """
    if not node.is_folder:
        return WriteBatch((Write.delete(node, critical=True),))

    ordered = sorted(
        descendants,
        key=lambda descendant: (-_depth(descendant), descendant.path, descendant.name),
    )
    return WriteBatch((
        *(Write.delete(descendant, critical=True) for descendant in ordered),
        Write.delete(node, critical=True),
    ))


def plan_move(
    repository: 'NodeRepository',
    node: Node,
    destination: str,
    new_name: str | None = None,
) -> WriteBatch:
    """Plan moving ``node`` into the ``destination`` path.

    Args:
        repository: Node repository to read descendants from.
        node: Node to move.
        destination: Parent path after the move.
        new_name: Name after the move, defaults to the current one.

    Returns:
        Batch of updates.
    """
    descendants = (
        repository.list_descendants(node.owner_id, node.location)
        if node.is_folder
        else []
    )
    return relocation_writes(
        node,
        descendants,
        destination,
        new_name if new_name is not None else node.name,
        timezone.now(),
    )


def plan_rename(
    repository: 'NodeRepository',
    node: Node,
    new_name: str,
) -> WriteBatch:
    """Plan renaming ``node`` in place."""
    return plan_move(repository, node, node.path, new_name)


def plan_delete(repository: 'NodeRepository', node: Node) -> WriteBatch:
    """Plan deleting ``node`` with all its descendants."""
    descendants = (
        repository.list_descendants(node.owner_id, node.location)
        if node.is_folder
        else []
    )
    return delete_writes(node, descendants)
