"""Integration tests for blob storage against MinIO.

These tests run the drive's blob storage backend against the MinIO
service of the Docker Compose setup.
"""
import os
from io import BytesIO
from typing import Final

import boto3
import pytest
from botocore.client import BaseClient
from botocore.exceptions import ClientError

from server.apps.drive.exceptions import TransportError
from server.apps.drive.infrastructure.storage import BlobStorage

_TEST_BUCKET: Final = 'cloud-drive'
_TEST_BLOB_KEY: Final = '0/integration-test.txt'
_TEST_CONTENT: Final = b'Hello from MinIO integration test!'


@pytest.fixture
def minio_settings() -> dict[str, str]:
    """Connection settings for MinIO.

    Returns:
        Endpoint and credentials from the environment.
    """
    return {
        'endpoint_url': os.getenv('MINIO_ENDPOINT', 'http://minio:9000'),
        'access_key': os.getenv('MINIO_ROOT_USER', 'minioadmin'),
        'secret_key': os.getenv('MINIO_ROOT_PASSWORD', 'minioadmin'),
    }


@pytest.fixture
def s3_client(minio_settings: dict[str, str]) -> BaseClient:
    """Create S3 client for MinIO.

    Returns:
        Configured boto3 S3 client for MinIO.
    """
    return boto3.client(
        's3',
        endpoint_url=minio_settings['endpoint_url'],
        aws_access_key_id=minio_settings['access_key'],
        aws_secret_access_key=minio_settings['secret_key'],
        region_name='us-east-1',
    )


@pytest.fixture
def blob_storage(
    s3_client: BaseClient,
    minio_settings: dict[str, str],
) -> BlobStorage:
    """Blob storage pointed at a MinIO bucket that exists.

    Returns:
        BlobStorage for the test bucket.
    """
    try:
        s3_client.head_bucket(Bucket=_TEST_BUCKET)
    except ClientError:
        s3_client.create_bucket(Bucket=_TEST_BUCKET)

    return BlobStorage(
        bucket_name=_TEST_BUCKET,
        region_name='us-east-1',
        **minio_settings,
    )


@pytest.mark.integration
def test_upload_reports_progress(blob_storage: BlobStorage) -> None:
    """Test uploading a blob reports its full size."""
    progress = []

    blob_storage.upload(
        _TEST_BLOB_KEY,
        BytesIO(_TEST_CONTENT),
        content_type='text/plain',
        on_progress=lambda done, total: progress.append((done, total)),
    )

    assert progress[-1] == (len(_TEST_CONTENT), len(_TEST_CONTENT))
    assert blob_storage.read(_TEST_BLOB_KEY) == _TEST_CONTENT


@pytest.mark.integration
def test_list_blobs(blob_storage: BlobStorage) -> None:
    """Test uploaded blobs are listed under their owner prefix."""
    blob_storage.upload(
        _TEST_BLOB_KEY,
        BytesIO(_TEST_CONTENT),
        content_type='text/plain',
    )

    keys = [key for key, _ in blob_storage.iter_blobs('0/')]

    assert _TEST_BLOB_KEY in keys


@pytest.mark.integration
def test_delete_blob(blob_storage: BlobStorage) -> None:
    """Test a deleted blob can no longer be read."""
    blob_storage.upload(
        _TEST_BLOB_KEY,
        BytesIO(_TEST_CONTENT),
        content_type='text/plain',
    )

    blob_storage.delete(_TEST_BLOB_KEY)

    with pytest.raises(TransportError):
        blob_storage.read(_TEST_BLOB_KEY)
