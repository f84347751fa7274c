"""WebDAV server settings."""

from server.settings.components import config

# WebDAV server host and port
WEBDAV_HOST = config('WEBDAV_HOST', default='0.0.0.0')  # noqa: S104
WEBDAV_PORT = config('WEBDAV_PORT', cast=int, default=8080)

# Realm shown by native clients in the login prompt
WEBDAV_REALM = config('WEBDAV_REALM', default='Cloud Drive')

# cheroot worker threads: requests served at the same time
WEBDAV_THREADS = config('WEBDAV_THREADS', cast=int, default=10)
