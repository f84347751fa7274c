"""Management command to delete blobs no file record references."""

import logging
from datetime import timedelta
from typing import Any, final, override

from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand, CommandError
from django.utils import timezone

from server.apps.drive.infrastructure.metadata import owner_of_blob_key
from server.apps.drive.infrastructure.storage import get_blob_store
from server.apps.drive.logic.operations import discard_blob
from server.apps.drive.models import Node

logger = logging.getLogger(__name__)

User = get_user_model()


@final
class Command(BaseCommand):
    """Delete orphaned blobs left by failed uploads or deletes.

    Blobs younger than the minimum age are kept: their upload may still
    be waiting for its record.
    """

    help = 'Delete blobs that no file record references'

    @override
    def add_arguments(self, parser: Any) -> None:
        """Add command line arguments.

        Args:
            parser: Argument parser.
        """
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Show what would be deleted without deleting',
        )
        parser.add_argument(
            '--min-age',
            type=int,
            default=settings.DRIVE_ORPHAN_MIN_AGE_MINUTES,
            help=(
                'Only delete blobs older than this many minutes '
                f'(default: {settings.DRIVE_ORPHAN_MIN_AGE_MINUTES})'
            ),
        )
        parser.add_argument(
            '--owner',
            help='Only look at blobs of this username',
        )

    @override
    def handle(self, *args: Any, **options: Any) -> None:
        """Execute the cleanup command.

        Args:
            args: Positional arguments (unused).
            options: Command options.
        """
        dry_run = options['dry_run']
        cutoff = timezone.now() - timedelta(minutes=options['min_age'])

        self.stdout.write(f'Looking for orphaned blobs stored before {cutoff}')

        owner_id = self._owner_id(options['owner'])
        referenced = set(
            Node.objects.exclude(blob_ref='').values_list('blob_ref', flat=True),
        )

        blob_store = get_blob_store()
        count = 0
        failed = 0

        for blob_key, last_modified in list(blob_store.iter_blobs()):
            blob_owner = owner_of_blob_key(blob_key)
            if blob_owner is None:
                # Not written by the drive
                continue
            if owner_id is not None and blob_owner != owner_id:
                continue
            if blob_key in referenced or last_modified > cutoff:
                continue

            if dry_run:
                self.stdout.write(f'Would delete: {blob_key} ({last_modified})')
                count += 1
                continue

            if discard_blob(blob_store, blob_key):
                logger.info('Deleted orphaned blob: %s', blob_key)
                count += 1
            else:
                self.stderr.write(f'Failed to delete {blob_key}')
                failed += 1

        if dry_run:
            self.stdout.write(
                self.style.SUCCESS(f'Would delete {count} orphaned blobs'),
            )
        else:
            self.stdout.write(
                self.style.SUCCESS(
                    f'Deleted {count} orphaned blobs, {failed} failed',
                ),
            )

    def _owner_id(self, username: str | None) -> int | None:
        if username is None:
            return None
        try:
            return User.objects.get(username=username).pk
        except User.DoesNotExist as exc:
            raise CommandError(f'Unknown user: {username}') from exc
