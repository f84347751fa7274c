"""WsgiDAV domain controller backed by Django authentication.

WebDAV clients log in with HTTP Basic Auth. The credentials go through
Django's authentication backends, and the authenticated user becomes the
owner whose drive the request sees.
"""

import logging
from typing import TYPE_CHECKING, Final, final, override

from django.conf import settings
from django.contrib.auth import authenticate
from django.core.handlers.wsgi import WSGIRequest
from wsgidav.dc.base_dc import BaseDomainController

if TYPE_CHECKING:
    from django.contrib.auth.models import User

logger = logging.getLogger(__name__)

# Where the authenticated user is kept in the WSGI environ
ENVIRON_USER_KEY: Final = 'webdav.user'


@final
class DjangoDomainController(BaseDomainController):
    """Authenticates every WebDAV request against Django users.

    There are no anonymous shares: each drive belongs to exactly one
    user, so every path requires a login. Only Basic Auth is offered.
    """

    @override
    def __init__(self, wsgidav_app: object, config: dict) -> None:
        """Initialize the domain controller.

        Args:
            wsgidav_app: WsgiDAV application instance.
            config: WsgiDAV configuration dictionary.
        """
        super().__init__(wsgidav_app, config)
        self._realm = settings.WEBDAV_REALM

    def get_domain_realm(self, path_info: str, environ: dict) -> str:
        """One realm for the whole server, shown in the login prompt."""
        return self._realm

    def require_authentication(self, realm_name: str, environ: dict) -> bool:
        """Every path needs a login."""
        return True

    def basic_auth_user(
        self,
        realm_name: str,
        user_name: str,
        password: str,
        environ: dict,
    ) -> bool:
        """Check Basic Auth credentials and remember the drive owner.

        Args:
            realm_name: Realm name.
            user_name: Username from Basic Auth.
            password: Password from Basic Auth.
            environ: WSGI environ dictionary.

        Returns:
            True if an active user matches the credentials.
        """
        user = self._authenticate(user_name, password, environ)
        if user is None:
            return False

        environ[ENVIRON_USER_KEY] = user
        logger.info('WebDAV login: %s (owner %d)', user_name, user.id)
        return True

    def supports_http_digest_auth(self) -> bool:
        """Digest auth is not offered."""
        return False

    def _authenticate(
        self,
        user_name: str,
        password: str,
        environ: dict,
    ) -> 'User | None':
        # Authentication backends may inspect the request
        user = authenticate(
            request=WSGIRequest(environ),
            username=user_name,
            password=password,
        )
        if user is None:
            logger.warning('WebDAV login failed: %s', user_name)
            return None
        if not user.is_active:
            logger.warning('WebDAV login of inactive user: %s', user_name)
            return None
        return user  # type: ignore[return-value]
