"""Shared fixtures for WebDAV app tests."""

from io import BytesIO

import boto3
import pytest
from django.contrib.auth import get_user_model
from moto import mock_aws

from server.apps.drive.infrastructure.storage import get_blob_store
from server.apps.webdav.dav_provider import DriveDAVProvider
from server.apps.webdav.domain_controller import ENVIRON_USER_KEY
from server.apps.webdav.resources.base import DriveContext

User = get_user_model()


@pytest.fixture
def user(db):
    """Create test user.

    Returns:
        User instance for testing.
    """
    return User.objects.create_user(
        username='testuser',
        password='testpass123',
        email='test@example.com',
    )


@pytest.fixture
def other_user(db):
    """Create second test user for isolation tests.

    Returns:
        Second user instance.
    """
    return User.objects.create_user(
        username='otheruser',
        password='testpass123',
        email='other@example.com',
    )


@pytest.fixture
def mock_s3():
    """Mock S3 service with cloud-drive bucket.

    Yields:
        boto3 S3 resource with cloud-drive bucket created.
    """
    with mock_aws():
        conn = boto3.resource('s3', region_name='us-east-1')
        conn.create_bucket(Bucket='cloud-drive')
        yield conn


@pytest.fixture
def dav_provider():
    """Create DAV provider instance.

    Returns:
        DriveDAVProvider instance.
    """
    return DriveDAVProvider()


@pytest.fixture
def webdav_environ(user, dav_provider):
    """Create WSGI environ with authenticated user.

    Args:
        user: Test user fixture.
        dav_provider: DAV provider fixture.

    Returns:
        WSGI environ dictionary with user.
    """
    return {
        ENVIRON_USER_KEY: user,
        'REQUEST_METHOD': 'GET',
        'PATH_INFO': '/',
        'SERVER_NAME': 'localhost',
        'SERVER_PORT': '8080',
        'wsgi.input': None,
        'wsgidav.provider': dav_provider,
    }


@pytest.fixture
def drive_context(webdav_environ, mock_s3):
    """Drive of the authenticated test user.

    Returns:
        DriveContext backed by the database and mocked S3.
    """
    return DriveContext.from_environ(webdav_environ)


@pytest.fixture
def documents(drive_context):
    """Folder /documents of the test user.

    Returns:
        FolderNode.
    """
    return drive_context.repository.create_folder(
        drive_context.owner_id,
        'documents',
        '/',
    )


@pytest.fixture
def sample_file(drive_context, documents):
    """File /documents/test.txt with its blob in S3.

    Returns:
        FileNode.
    """
    blob_key = f'{drive_context.owner_id}/abc123-test.txt'
    drive_context.blob_store.upload(
        blob_key,
        BytesIO(b'test file content'),
        content_type='text/plain',
    )
    return drive_context.repository.create_file(
        drive_context.owner_id,
        'test.txt',
        documents.location,
        size_bytes=17,
        mime_type='text/plain',
        blob_ref=blob_key,
        download_url=drive_context.blob_store.retrieval_url(blob_key),
    )
