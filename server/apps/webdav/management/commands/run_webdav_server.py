"""Django management command to serve the drive over WebDAV."""

import logging
from typing import Any, Final, final, override

from cheroot.wsgi import Server as WSGIServer
from django.conf import settings
from django.core.management.base import BaseCommand

from server.apps.webdav.wsgi_app import create_webdav_app

logger = logging.getLogger(__name__)

_SERVER_NAME: Final = 'CloudDrive-WebDAV'


@final
class Command(BaseCommand):
    """Serve the drive namespace with cheroot."""

    help = 'Serve user drives over WebDAV for native file browsers'

    @override
    def add_arguments(self, parser: Any) -> None:
        """Add command arguments.

        Args:
            parser: Argument parser.
        """
        parser.add_argument(
            '--host',
            default=settings.WEBDAV_HOST,
            help=f'Host to bind to (default: {settings.WEBDAV_HOST})',
        )
        parser.add_argument(
            '--port',
            type=int,
            default=settings.WEBDAV_PORT,
            help=f'Port to bind to (default: {settings.WEBDAV_PORT})',
        )
        parser.add_argument(
            '--threads',
            type=int,
            default=settings.WEBDAV_THREADS,
            help=(
                'Worker threads, i.e. requests served at once '
                f'(default: {settings.WEBDAV_THREADS})'
            ),
        )
        parser.add_argument(
            '--verbose',
            type=int,
            default=1,
            choices=range(6),
            help='WsgiDAV verbosity 0-5 (default: 1)',
        )

    @override
    def handle(self, *args: Any, **options: Any) -> None:
        """Run the server until interrupted.

        Args:
            args: Positional arguments.
            options: Keyword arguments from command line.
        """
        bind_addr = (options['host'], options['port'])
        server = WSGIServer(
            bind_addr=bind_addr,
            wsgi_app=create_webdav_app(verbose=options['verbose']),
            numthreads=options['threads'],
            server_name=_SERVER_NAME,
        )

        self.stdout.write(
            self.style.SUCCESS(
                'Serving drives at http://{0}:{1}/ (realm "{2}", {3} threads)'.format(
                    *bind_addr,
                    settings.WEBDAV_REALM,
                    options['threads'],
                ),
            ),
        )

        try:
            logger.info('WebDAV server listening on %s:%d', *bind_addr)
            server.start()
        except KeyboardInterrupt:
            self.stdout.write(self.style.WARNING('\nShutting down...'))
        finally:
            server.stop()
            logger.info('WebDAV server stopped')
            self.stdout.write(self.style.SUCCESS('WebDAV server stopped'))
