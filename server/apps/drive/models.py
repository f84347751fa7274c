"""Database models for drive app."""

import uuid
from typing import ClassVar, Final, final, override

from django.conf import settings
from django.db import models

# Constants for field max lengths
_NAME_MAX_LENGTH: Final = 255
_PATH_MAX_LENGTH: Final = 1024
_KIND_MAX_LENGTH: Final = 16
_MIME_TYPE_MAX_LENGTH: Final = 255
_BLOB_REF_MAX_LENGTH: Final = 1024
_DOWNLOAD_URL_MAX_LENGTH: Final = 2048


class NodeKind(models.TextChoices):
    """The two node variants stored in the flat table."""

    FOLDER = 'folder', 'Folder'
    FILE = 'file', 'File'


@final
class Node(models.Model):
    """A file or folder record in the flat node table.

    There is no parent pointer. ``path`` is the location of the parent
    folder ('/' for the root, '/Documents/Reports' for nested folders)
    and the hierarchy is rebuilt from it on every read.

    File rows always reference a committed blob; folder rows never do.
    """

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
    )

    # Tenant boundary, never changes after creation
    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='drive_nodes',
        db_index=True,
    )

    kind = models.CharField(
        max_length=_KIND_MAX_LENGTH,
        choices=NodeKind.choices,
    )

    name = models.CharField(
        max_length=_NAME_MAX_LENGTH,
    )

    path = models.CharField(
        max_length=_PATH_MAX_LENGTH,
        help_text='Location of the parent folder, e.g. /Documents',
    )

    # File metadata (empty for folders)
    size_bytes = models.BigIntegerField(
        null=True,
        blank=True,
        help_text='File size in bytes',
    )

    mime_type = models.CharField(
        max_length=_MIME_TYPE_MAX_LENGTH,
        blank=True,
        default='',
    )

    blob_ref = models.CharField(
        max_length=_BLOB_REF_MAX_LENGTH,
        blank=True,
        default='',
        help_text='Blob storage key: {owner_id}/{random}-{filename}',
    )

    download_url = models.CharField(
        max_length=_DOWNLOAD_URL_MAX_LENGTH,
        blank=True,
        default='',
    )

    # Timestamps
    created_at = models.DateTimeField(auto_now_add=True)
    last_modified = models.DateTimeField()

    class Meta:
        """Model metadata."""

        verbose_name = 'Node'  # type: ignore[mutable-override]
        verbose_name_plural = 'Nodes'  # type: ignore[mutable-override]
        ordering: ClassVar[list[str]] = ['path', 'name']

        indexes: ClassVar[list[models.Index]] = [
            # Directory listing: equality on (owner, path)
            models.Index(
                fields=['owner', 'path'],
                name='drive_node_owner_path_idx',
            ),
        ]

        constraints: ClassVar[list[models.BaseConstraint]] = [
            models.UniqueConstraint(
                fields=['owner', 'path', 'name'],
                name='drive_node_sibling_unique',
            ),
            models.CheckConstraint(
                condition=~models.Q(name=''),
                name='drive_node_name_not_empty',
            ),
            models.CheckConstraint(
                condition=(
                    models.Q(kind=NodeKind.FOLDER)
                    | ~models.Q(blob_ref='')
                ),
                name='drive_file_has_blob',
            ),
        ]

    @override
    def __str__(self) -> str:
        """String representation."""
        return f'{self.owner_id}:{self.location}'

    @property
    def location(self) -> str:
        """Absolute location of this node."""
        if self.path == '/':
            return f'/{self.name}'
        return f'{self.path}/{self.name}'
