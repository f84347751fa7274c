"""Django storage configuration for S3-compatible backends.

File bytes live in an S3-compatible bucket (MinIO locally, any S3
service in production). Node records only keep the blob key and a
retrieval URL.
"""

from typing import Any, Final

from server.settings.components import config

# Uses S3-compatible storage for blobs, local storage for static files
STORAGES: Final[dict[str, dict[str, Any]]] = {
    'default': {
        'BACKEND': 'server.apps.drive.infrastructure.storage.BlobStorage',
        'OPTIONS': {
            'bucket_name': config(
                'AWS_STORAGE_BUCKET_NAME',
                default='cloud-drive',
            ),
            'access_key': config('AWS_ACCESS_KEY_ID', default='testing'),
            'secret_key': config('AWS_SECRET_ACCESS_KEY', default='testing'),
            'endpoint_url': config(
                'AWS_S3_ENDPOINT_URL',
                default=None,
            ),
            'region_name': config(
                'AWS_S3_REGION_NAME',
                default='us-east-1',
            ),
            # Retrieval URLs are stored on file records
            'querystring_expire': config(
                'AWS_QUERYSTRING_EXPIRE',
                cast=int,
                default=604800,
            ),
            'file_overwrite': False,  # Prevent accidental overwrites
            'default_acl': None,  # Inherit bucket ACL
        },
    },
    'staticfiles': {
        # Keep static files separate from user blobs
        'BACKEND': 'django.contrib.staticfiles.storage.StaticFilesStorage',
    },
}
