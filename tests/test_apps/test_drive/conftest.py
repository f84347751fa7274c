"""Shared fixtures for drive app tests."""

from io import BytesIO

import boto3
import pytest
from django.contrib.auth import get_user_model
from moto import mock_aws

from server.apps.drive.exceptions import TransportError, WriteError
from server.apps.drive.infrastructure.repository import (
    DjangoNodeRepository,
    InMemoryNodeRepository,
)

User = get_user_model()


class FakeBlobStore:
    """Blob store keeping blobs in a dict.

    Uploads report progress once per ``chunk_size`` bytes, so a 10 byte
    file with ``chunk_size=1`` produces 10 progress callbacks.
    """

    def __init__(self, chunk_size=4):
        self.chunk_size = chunk_size
        self.blobs = {}
        self.deleted = []
        self.fail_uploads = set()
        self.fail_deletes = False
        self.fail_reads = False

    def upload(self, key, content, *, content_type, on_progress=None):
        filename = key.split('/', 1)[1].split('-', 1)[1]
        if filename in self.fail_uploads:
            raise TransportError(f'Connection reset uploading {key}')

        content.seek(0)
        data = content.read()
        total = len(data)
        if on_progress is not None:
            for end in range(self.chunk_size, total + self.chunk_size, self.chunk_size):
                on_progress(min(end, total), total)
        self.blobs[key] = data
        return key

    def retrieval_url(self, key):
        return f'https://blobs.example.com/{key}'

    def read(self, key):
        if self.fail_reads or key not in self.blobs:
            raise TransportError(f'Cannot fetch {key}')
        return self.blobs[key]

    def open(self, name, mode='rb'):
        return BytesIO(self.read(name))

    def delete(self, name):
        if self.fail_deletes:
            raise TransportError(f'Cannot delete {name}')
        self.deleted.append(name)
        self.blobs.pop(name, None)


class FlakyRepository:
    """Repository wrapper failing writes of selected node ids."""

    def __init__(self, repository):
        self._repository = repository
        self.fail_ids = set()

    def __getattr__(self, name):
        return getattr(self._repository, name)

    def update(self, owner_id, node_id, **changes):
        if node_id in self.fail_ids:
            raise WriteError(f'Timeout updating {node_id}')
        return self._repository.update(owner_id, node_id, **changes)

    def delete(self, owner_id, node_id):
        if node_id in self.fail_ids:
            raise WriteError(f'Timeout deleting {node_id}')
        return self._repository.delete(owner_id, node_id)


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
def owner_id():
    """Owner id for repositories that need no database user."""
    return 7


@pytest.fixture
def repository():
    """Empty in-memory node repository."""
    return InMemoryNodeRepository()


@pytest.fixture
def django_repository(db):
    """Database-backed node repository."""
    return DjangoNodeRepository()


@pytest.fixture
def blob_store():
    """In-memory blob store."""
    return FakeBlobStore()


@pytest.fixture
def flaky_repository(repository):
    """In-memory repository whose writes can be made to fail."""
    return FlakyRepository(repository)


@pytest.fixture
def tree(repository, blob_store, owner_id):
    """Small tree in the in-memory repository.

    Layout::

        /A
        /A/x.txt
        /A/B
        /A/B/y.txt
        /AB
        /AB/z.txt
        /top.txt

    Returns:
        Nodes by location.
    """
    folder_a = repository.create_folder(owner_id, 'A', '/')
    folder_b = repository.create_folder(owner_id, 'B', '/A')
    folder_ab = repository.create_folder(owner_id, 'AB', '/')
    nodes = {'/A': folder_a, '/A/B': folder_b, '/AB': folder_ab}

    for path, name in (('/A', 'x.txt'), ('/A/B', 'y.txt'), ('/AB', 'z.txt'), ('/', 'top.txt')):
        blob_ref = f'{owner_id}/{name.replace(".", "")}-{name}'
        blob_store.blobs[blob_ref] = f'content of {name}'.encode()
        file_node = repository.create_file(
            owner_id,
            name,
            path,
            size_bytes=len(blob_store.blobs[blob_ref]),
            mime_type='text/plain',
            blob_ref=blob_ref,
            download_url=blob_store.retrieval_url(blob_ref),
        )
        nodes[file_node.location] = file_node
    return nodes
