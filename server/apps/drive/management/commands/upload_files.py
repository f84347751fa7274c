"""Management command to upload local files into a user's drive."""

import logging
from collections.abc import Mapping
from contextlib import ExitStack
from pathlib import Path
from typing import Any, final, override

from django.contrib.auth import get_user_model
from django.core.files import File
from django.core.management.base import BaseCommand, CommandError

from server.apps.drive.infrastructure.repository import get_repository
from server.apps.drive.infrastructure.storage import get_blob_store
from server.apps.drive.logic.notifications import Notification
from server.apps.drive.logic.paths import is_safe_path, normalize
from server.apps.drive.logic.uploads import (
    InFlightUpload,
    UploadRegistry,
    upload_files,
)

User = get_user_model()
logger = logging.getLogger(__name__)


@final
class Command(BaseCommand):
    """Upload files concurrently, printing per-file progress."""

    help = 'Upload local files into a folder of a user drive'

    @override
    def add_arguments(self, parser: Any) -> None:
        """Add command line arguments.

        Args:
            parser: Argument parser.
        """
        parser.add_argument('username', help='Owner of the uploaded files')
        parser.add_argument(
            'files',
            nargs='+',
            type=Path,
            help='Local files to upload',
        )
        parser.add_argument(
            '--path',
            default='/',
            help='Target folder (default: /)',
        )

    @override
    def handle(self, *args: Any, **options: Any) -> None:
        """Execute the upload command.

        Args:
            args: Positional arguments (unused).
            options: Command options.
        """
        try:
            user = User.objects.get(username=options['username'])
        except User.DoesNotExist as exc:
            raise CommandError(f'Unknown user: {options["username"]}') from exc

        if not is_safe_path(options['path']):
            raise CommandError(f'Invalid path: {options["path"]}')
        path = normalize(options['path'])

        local_files: list[Path] = options['files']
        missing = [str(local) for local in local_files if not local.is_file()]
        if missing:
            raise CommandError(f'Not a file: {", ".join(missing)}')

        registry = UploadRegistry()
        registry.add_listener(self._progress_printer())

        with ExitStack() as stack:
            django_files = [
                File(stack.enter_context(local.open('rb')), name=local.name)
                for local in local_files
            ]
            outcomes = upload_files(
                get_repository(),
                get_blob_store(),
                user.id,
                django_files,
                path,
                registry=registry,
                notifier=self,
            )

        failed = [outcome for outcome in outcomes if not outcome.ok]
        self.stdout.write(
            self.style.SUCCESS(
                f'Uploaded {len(outcomes) - len(failed)} file(s) to {path}, '
                f'{len(failed)} failed',
            ),
        )
        if failed:
            raise CommandError(
                'Failed uploads: {names}'.format(
                    names=', '.join(outcome.name for outcome in failed),
                ),
            )

    def notify(self, notification: Notification) -> None:
        """Print an upload notification.

        Args:
            notification: Notification to print.
        """
        line = f'{notification.title}: {notification.description}'
        if notification.is_error:
            self.stderr.write(self.style.ERROR(line))
        else:
            self.stdout.write(self.style.SUCCESS(line))

    def _progress_printer(self):
        printed: dict[str, int] = {}

        def print_progress(entries: Mapping[str, InFlightUpload]) -> None:
            for entry in entries.values():
                percent = int(entry.progress)
                if printed.get(entry.id) != percent:
                    printed[entry.id] = percent
                    self.stdout.write(f'{entry.name}: {percent}%')

        return print_progress
