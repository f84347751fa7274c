"""Management command to download a file from a user's drive."""

import logging
from pathlib import Path
from typing import Any, final, override

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand, CommandError

from server.apps.drive.exceptions import DownloadError, NodeNotFoundError
from server.apps.drive.infrastructure.repository import get_repository
from server.apps.drive.infrastructure.saving import DirectorySaveTarget
from server.apps.drive.infrastructure.storage import get_blob_store
from server.apps.drive.logic.namespace import resolve
from server.apps.drive.logic.notifications import (
    download_failed,
    download_started,
)
from server.apps.drive.logic.operations import download_file
from server.apps.drive.logic.paths import is_safe_path, normalize

User = get_user_model()
logger = logging.getLogger(__name__)


@final
class Command(BaseCommand):
    """Save a drive file into a local directory."""

    help = 'Download a file of a user drive into a local directory'

    @override
    def add_arguments(self, parser: Any) -> None:
        """Add command line arguments.

        Args:
            parser: Argument parser.
        """
        parser.add_argument('username', help='Owner of the file')
        parser.add_argument(
            'location',
            help='Location of the file (e.g., /Documents/report.pdf)',
        )
        parser.add_argument(
            '--output',
            type=Path,
            default=Path.cwd(),
            help='Directory to save into (default: current directory)',
        )

    @override
    def handle(self, *args: Any, **options: Any) -> None:
        """Execute the download command.

        Args:
            args: Positional arguments (unused).
            options: Command options.
        """
        try:
            user = User.objects.get(username=options['username'])
        except User.DoesNotExist as exc:
            raise CommandError(f'Unknown user: {options["username"]}') from exc

        if not is_safe_path(options['location']):
            raise CommandError(f'Invalid location: {options["location"]}')
        location = normalize(options['location'])

        try:
            node = resolve(get_repository(), user.id, location)
            if node is None:
                raise DownloadError('The root folder cannot be downloaded.')
            saved = download_file(
                get_blob_store(),
                node,
                DirectorySaveTarget(options['output']),
            )
        except (NodeNotFoundError, DownloadError) as exc:
            notification = download_failed(str(exc))
            logger.warning('Download of %s failed: %s', location, exc)
            raise CommandError(
                f'{notification.title}: {notification.description}',
            ) from exc

        started = download_started(node.name)
        self.stdout.write(f'{started.title}: {started.description}')
        self.stdout.write(self.style.SUCCESS(f'Saved to {saved}'))
