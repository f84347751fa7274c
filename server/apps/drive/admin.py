"""Django admin configuration for drive app."""

import logging

from django.contrib import admin, messages
from django.db.models import QuerySet
from django.http import HttpRequest

from server.apps.drive.exceptions import CascadeError, NodeNotFoundError
from server.apps.drive.infrastructure.metadata import human_size
from server.apps.drive.infrastructure.repository import get_repository
from server.apps.drive.infrastructure.storage import get_blob_store
from server.apps.drive.logic.operations import delete_node
from server.apps.drive.models import Node

logger = logging.getLogger(__name__)


@admin.register(Node)
class NodeAdmin(admin.ModelAdmin[Node]):
    """Admin interface for Node model.

    Records are read-only here. Deleting goes through the delete
    operation, so a folder takes its contents and their blobs with it.
    """

    list_display = [
        'name',
        'kind',
        'path',
        'owner',
        'size_display',
        'mime_type',
        'last_modified',
    ]

    list_filter = [
        'kind',
        'mime_type',
        'owner',
    ]

    search_fields = [
        'name',
        'path',
        'blob_ref',
    ]

    readonly_fields = [
        'id',
        'owner',
        'kind',
        'name',
        'path',
        'size_bytes',
        'mime_type',
        'blob_ref',
        'download_url',
        'created_at',
        'last_modified',
    ]

    fieldsets = (
        ('Node', {
            'fields': ('id', 'owner', 'kind', 'name', 'path'),
        }),
        ('Content', {
            'fields': (
                'size_bytes',
                'mime_type',
                'blob_ref',
                'download_url',
            ),
        }),
        ('Timestamps', {
            'fields': ('created_at', 'last_modified'),
        }),
    )

    def size_display(self, obj: Node) -> str:
        """Display file size in human-readable format.

        Args:
            obj: Node instance.

        Returns:
            Formatted size string, '-' for folders.
        """
        if obj.size_bytes is None:
            return '-'
        return human_size(obj.size_bytes)
    size_display.short_description = 'Size'  # type: ignore[attr-defined]

    def has_add_permission(self, request: HttpRequest) -> bool:
        """Nodes are created by uploads and folder creation only."""
        return False

    def get_queryset(self, request: HttpRequest) -> QuerySet[Node]:
        """Optimize queryset with select_related.

        Args:
            request: HTTP request.

        Returns:
            Optimized QuerySet.
        """
        return super().get_queryset(request).select_related('owner')

    def delete_model(self, request: HttpRequest, obj: Node) -> None:
        """Delete a node with its descendants and blobs.

        Args:
            request: HTTP request.
            obj: Node to delete.
        """
        self._delete(request, obj)

    def delete_queryset(
        self,
        request: HttpRequest,
        queryset: QuerySet[Node],
    ) -> None:
        """Delete selected nodes with their descendants and blobs.

        Args:
            request: HTTP request.
            queryset: Selected nodes.
        """
        for obj in queryset:
            self._delete(request, obj)

    def _delete(self, request: HttpRequest, obj: Node) -> None:
        repository = get_repository()
        try:
            # A folder deleted earlier in the same request took it along
            node = repository.get(obj.owner_id, str(obj.pk))
        except NodeNotFoundError:
            return

        try:
            delete_node(repository, get_blob_store(), node)
        except CascadeError as exc:
            logger.exception('Admin delete incomplete: %s', obj.location)
            self.message_user(request, str(exc), level=messages.ERROR)
