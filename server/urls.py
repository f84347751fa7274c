"""Root URL configuration.

The drive itself is served over WebDAV (see ``run_webdav_server``);
HTTP only exposes the admin.
"""

from django.contrib import admin
from django.urls import path

urlpatterns = [
    path('admin/', admin.site.urls),
]
