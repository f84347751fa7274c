"""
Main django-split-settings file.

Settings are composed from ``components/`` and the environment module
selected with ``DJANGO_ENV`` (``development`` unless told otherwise).
"""

from os import environ

import django_stubs_ext
from split_settings.tools import include, optional

# Runtime subscripting of generic Django classes, e.g. ModelAdmin[Node]
django_stubs_ext.monkeypatch()

environ.setdefault('DJANGO_ENV', 'development')
_ENV = environ['DJANGO_ENV']

_base_settings = (
    'components/common.py',
    'components/logging.py',
    'components/storages.py',
    'components/drive.py',
    'components/webdav.py',
    # Select the right env:
    'environments/{0}.py'.format(_ENV),
    # Optionally override some settings:
    optional('environments/local.py'),
)

include(*_base_settings)
