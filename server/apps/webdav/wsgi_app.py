"""WSGI application factory for the WebDAV server."""

import logging
from typing import Any

from wsgidav import wsgidav_app

from server.apps.webdav.dav_provider import DriveDAVProvider
from server.apps.webdav.domain_controller import DjangoDomainController

logger = logging.getLogger(__name__)

# Mount point of the drive namespace; DAV paths are node locations
DRIVE_SHARE = '/'


def build_config(verbose: int = 3) -> dict[str, Any]:
    """WsgiDAV configuration for serving user drives.

    Args:
        verbose: WsgiDAV logging verbosity (0-5).

    Returns:
        Configuration dictionary for ``WsgiDAVApp``.
    """
    return {
        'provider_mapping': {
            DRIVE_SHARE: DriveDAVProvider(),
        },
        'http_authenticator': {
            'domain_controller': DjangoDomainController,
            'accept_basic': True,
            'accept_digest': False,
            'default_to_digest': False,
        },
        'verbose': verbose,
        'logging': {
            'enable': True,
            'enable_loggers': ['wsgidav'],
        },
        'dir_browser': {
            'enable': False,
        },
        # Finder only writes to servers with DAV class 2 (locking)
        'lock_storage': True,
        'property_manager': True,
    }


def create_webdav_app(verbose: int = 3) -> wsgidav_app.WsgiDAVApp:
    """Create the WsgiDAV application for the drive namespace.

    Args:
        verbose: WsgiDAV logging verbosity (0-5).

    Returns:
        Configured WsgiDAV WSGI application.
    """
    logger.info('Creating WsgiDAV application, drives mounted at %s', DRIVE_SHARE)
    return wsgidav_app.WsgiDAVApp(build_config(verbose))
