"""Django app configuration for WebDAV app."""

from django.apps import AppConfig


class WebDAVConfig(AppConfig):
    """WebDAV access to the drive namespace (no models of its own)."""

    default_auto_field = 'django.db.models.BigAutoField'
    name = 'server.apps.webdav'
    verbose_name = 'WebDAV'
