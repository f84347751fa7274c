"""Blob storage backend for S3-compatible storage."""

import logging
import threading
from collections.abc import Callable, Iterator
from datetime import datetime
from typing import IO, Any, Protocol, final

from botocore.exceptions import BotoCoreError, ClientError
from django.core.files.storage import default_storage
from storages.backends.s3 import S3Storage
from storages.utils import clean_name

from server.apps.drive.exceptions import TransportError

logger = logging.getLogger(__name__)

# Receives (bytes transferred so far, total bytes)
ProgressCallback = Callable[[int, int], None]

_TRANSPORT_ERRORS = (BotoCoreError, ClientError, OSError)


class BlobStore(Protocol):
    """What the drive needs from blob storage."""

    def upload(
        self,
        key: str,
        content: IO[bytes],
        *,
        content_type: str,
        on_progress: ProgressCallback | None = None,
    ) -> str:
        """Store ``content`` under ``key`` and return the key."""

    def retrieval_url(self, key: str) -> str:
        """Return a URL the blob can be fetched from."""

    def read(self, key: str) -> bytes:
        """Return the blob content."""

    def open(self, name: str, mode: str = 'rb') -> Any:
        """Open the blob as a file-like object."""

    def delete(self, name: str) -> None:
        """Delete the blob."""


@final
class BlobStorage(S3Storage):
    """S3 storage backend for node blobs.

    Extends django-storages S3Storage with:
    - Uploads that report byte progress
    - Transport failures normalized to TransportError
    - Enhanced error logging
    - Listing of stored blobs for reconciliation
    """

    def upload(
        self,
        key: str,
        content: IO[bytes],
        *,
        content_type: str,
        on_progress: ProgressCallback | None = None,
    ) -> str:
        """Upload content to S3 reporting progress.

        ``on_progress`` may be called from boto3 transfer threads.

        Args:
            key: Blob key (e.g., '7/3f2a...-report.pdf').
            content: File-like object to upload.
            content_type: MIME type stored with the object.
            on_progress: Optional callback receiving
                (bytes transferred so far, total bytes).

        Returns:
            The blob key.

        Raises:
            TransportError: If the upload fails.
        """
        name = self._normalize_name(clean_name(key))

        try:
            total = _content_size(content)
            logger.info('Uploading blob to storage: %s (%d bytes)', key, total)
            content.seek(0)
            self.bucket.Object(name).upload_fileobj(
                content,
                ExtraArgs={'ContentType': content_type},
                Config=self.transfer_config,
                Callback=(
                    _ProgressTracker(total, on_progress) if on_progress else None
                ),
            )
        except _TRANSPORT_ERRORS as exc:
            logger.exception('Failed to upload blob to storage: %s', key)
            raise TransportError(f'Upload of {key} failed: {exc}') from exc

        logger.info('Successfully uploaded blob: %s', key)
        return key

    def retrieval_url(self, key: str) -> str:
        """Get a retrieval URL for a blob.

        Args:
            key: Blob key.

        Returns:
            URL to fetch the blob from.

        Raises:
            TransportError: If the URL cannot be generated.
        """
        try:
            return self.url(key)
        except _TRANSPORT_ERRORS as exc:
            logger.exception('Failed to build retrieval URL: %s', key)
            raise TransportError(f'No retrieval URL for {key}: {exc}') from exc

    def read(self, key: str) -> bytes:
        """Read a blob's content.

        Args:
            key: Blob key.

        Returns:
            Blob content.

        Raises:
            TransportError: If the blob cannot be fetched.
        """
        try:
            with self.open(key, 'rb') as blob:
                return blob.read()
        except _TRANSPORT_ERRORS as exc:
            logger.exception('Failed to read blob: %s', key)
            raise TransportError(f'Reading {key} failed: {exc}') from exc

    def delete(self, name: str) -> None:
        """Delete blob from S3 with error handling and logging.

        Args:
            name: Blob key to delete.

        Raises:
            TransportError: If S3 delete fails.
        """
        try:
            logger.info('Deleting blob from storage: %s', name)
            super().delete(name)
        except _TRANSPORT_ERRORS as exc:
            logger.exception('Failed to delete blob from storage: %s', name)
            raise TransportError(f'Deleting {name} failed: {exc}') from exc
        logger.info('Successfully deleted blob: %s', name)

    def iter_blobs(self, prefix: str = '') -> Iterator[tuple[str, datetime]]:
        """List stored blobs.

        Args:
            prefix: Only list keys starting with this prefix.

        Yields:
            (blob key, last modified) pairs.
        """
        for blob in self.bucket.objects.filter(Prefix=prefix):
            yield blob.key, blob.last_modified


class _ProgressTracker:
    """Turns boto3's per-chunk byte counts into running totals."""

    def __init__(self, total: int, on_progress: ProgressCallback) -> None:
        self._total = total
        self._on_progress = on_progress
        self._transferred = 0
        self._lock = threading.Lock()

    def __call__(self, bytes_amount: int) -> None:
        with self._lock:
            self._transferred += bytes_amount
            self._on_progress(self._transferred, self._total)


def _content_size(content: IO[bytes]) -> int:
    size = getattr(content, 'size', None)
    if size is not None:
        return size
    position = content.tell()
    content.seek(0, 2)
    size = content.tell()
    content.seek(position)
    return size


def get_blob_store() -> BlobStorage:
    """Get the configured default storage backend.

    Returns:
        BlobStorage instance with proper S3 configuration.
    """
    return default_storage  # type: ignore[return-value]
