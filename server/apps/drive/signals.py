"""Signal handlers for drive app."""

import logging

from django.db.models.signals import post_delete, post_save
from django.dispatch import receiver

from server.apps.drive.infrastructure.repository import node_events
from server.apps.drive.models import Node

logger = logging.getLogger(__name__)


@receiver(post_save, sender=Node)
def publish_saved_node(
    sender: type[Node],
    instance: Node,
    **kwargs: object,
) -> None:
    """Push the new listing of the node's path to live subscribers.

    Args:
        sender: The Node model class.
        instance: The saved Node instance.
        **kwargs: Additional signal arguments.
    """
    logger.debug('Node saved, publishing %s', instance.path)
    node_events.publish(instance.owner_id, instance.path)


@receiver(post_delete, sender=Node)
def publish_deleted_node(
    sender: type[Node],
    instance: Node,
    **kwargs: object,
) -> None:
    """Push the new listing of a deleted node's path.

    Blobs are not deleted here. The delete operation removes them once
    the records are gone, and orphans are left to
    ``cleanup_orphaned_blobs``.

    Args:
        sender: The Node model class.
        instance: The deleted Node instance.
        **kwargs: Additional signal arguments.
    """
    logger.debug('Node deleted, publishing %s', instance.path)
    node_events.publish(instance.owner_id, instance.path)
