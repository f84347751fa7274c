"""Concurrent uploads with per-file progress.

Every selected file gets an entry in the in-flight registry right away
and its own asyncio task. Blob transfers run in worker threads; their
progress callbacks are marshalled back to the event loop, which is the
only place registry entries change. A file record is created only
after its blob was stored.
"""

import asyncio
import logging
import uuid
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from pathlib import PurePath
from types import MappingProxyType
from typing import TYPE_CHECKING, Final, final

from asgiref.sync import async_to_sync, sync_to_async
from django.core.exceptions import ValidationError
from django.core.files import File

from server.apps.drive.exceptions import DriveError, NameConflictError
from server.apps.drive.infrastructure.metadata import (
    detect_mime_type,
    make_blob_key,
)
from server.apps.drive.logic.nodes import FileNode
from server.apps.drive.logic.notifications import (
    LoggingNotifier,
    Notifier,
    upload_complete,
    upload_failed,
)
from server.apps.drive.logic.operations import ensure_folder
from server.apps.drive.logic.paths import normalize, validate_name

if TYPE_CHECKING:
    from server.apps.drive.infrastructure.repository import NodeRepository
    from server.apps.drive.infrastructure.storage import BlobStore

logger = logging.getLogger(__name__)

COMPLETE: Final = 100.0

RegistryListener = Callable[[Mapping[str, 'InFlightUpload']], None]


def progress_percent(transferred: int, total: int) -> float:
    """Progress of a transfer in percent.

    Args:
        transferred: Bytes transferred so far.
        total: Size of the content.

    Returns:
        ``transferred / total * 100``, capped at 100. Empty content is
        complete.
    """
    if total <= 0:
        return COMPLETE
    return min(transferred / total * 100, COMPLETE)


@final
@dataclass(frozen=True, slots=True)
class InFlightUpload:
    """Pseudo-entry for an upload whose record does not exist yet."""

    id: str
    name: str
    progress: float = 0.0


@final
class UploadRegistry:
    """Keyed in-flight uploads of one owner.

    Each change replaces the whole mapping with a new one in which only
    the changed key differs, so an update for one upload never touches
    another upload's entry. After ``close()`` all changes are ignored.
    """

    def __init__(self) -> None:
        self._entries: Mapping[str, InFlightUpload] = MappingProxyType({})
        self._listeners: list[RegistryListener] = []
        self._closed = False

    @property
    def entries(self) -> Mapping[str, InFlightUpload]:
        """Current read-only snapshot."""
        return self._entries

    @property
    def closed(self) -> bool:
        """True once the registry stopped accepting changes."""
        return self._closed

    def get(self, upload_id: str) -> InFlightUpload | None:
        """Entry of one upload, if it is still in flight."""
        return self._entries.get(upload_id)

    def add(self, entry: InFlightUpload) -> None:
        """Register a new in-flight upload."""
        self._replace({**self._entries, entry.id: entry})

    def set_progress(self, upload_id: str, progress: float) -> None:
        """Replace the progress of one entry. Unknown ids are ignored."""
        current = self._entries.get(upload_id)
        if current is None:
            return
        self._replace({
            **self._entries,
            upload_id: InFlightUpload(current.id, current.name, progress),
        })

    def remove(self, upload_id: str) -> None:
        """Drop one entry. Unknown ids are ignored."""
        if upload_id not in self._entries:
            return
        self._replace({
            key: entry
            for key, entry in self._entries.items()
            if key != upload_id
        })

    def add_listener(self, listener: RegistryListener) -> Callable[[], None]:
        """Call ``listener`` with the new snapshot after every change.

        Returns:
            Function removing the listener.
        """
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def close(self) -> None:
        """Ignore all further changes; transfers keep running."""
        self._closed = True
        self._listeners.clear()

    def _replace(self, entries: dict[str, InFlightUpload]) -> None:
        if self._closed:
            return
        self._entries = MappingProxyType(entries)
        for listener in list(self._listeners):
            listener(self._entries)


@final
@dataclass(frozen=True, slots=True)
class UploadOutcome:
    """Result of one upload: the created node or the error."""

    upload_id: str
    name: str
    node: FileNode | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        """True when the record was created."""
        return self.node is not None


@final
class UploadCoordinator:
    """Runs uploads of one owner into one path concurrently.

    There is no cap on simultaneous uploads: every file starts its
    transfer immediately.
    """

    def __init__(
        self,
        repository: 'NodeRepository',
        blob_store: 'BlobStore',
        owner_id: int,
        *,
        registry: UploadRegistry | None = None,
        notifier: Notifier | None = None,
    ) -> None:
        self.repository = repository
        self.blob_store = blob_store
        self.owner_id = owner_id
        self.registry = registry or UploadRegistry()
        self.notifier = notifier or LoggingNotifier()

    async def upload_all(
        self,
        files: Iterable[File],
        path: str,
    ) -> list[UploadOutcome]:
        """Upload files concurrently into ``path``.

        Every file is registered before the first transfer starts.

        Args:
            files: Django File objects; ``name`` is the file name.
            path: Encoded target path.

        Returns:
            One outcome per file, in the order given.
        """
        path = normalize(path)
        pending = [(self._register(django_file), django_file) for django_file in files]
        return list(await asyncio.gather(*(
            self._run(entry, django_file, path)
            for entry, django_file in pending
        )))

    async def upload(self, django_file: File, path: str) -> UploadOutcome:
        """Upload a single file into ``path``."""
        return await self._run(
            self._register(django_file),
            django_file,
            normalize(path),
        )

    def _register(self, django_file: File) -> InFlightUpload:
        entry = InFlightUpload(
            id=uuid.uuid4().hex,
            name=PurePath(django_file.name or '').name,
        )
        self.registry.add(entry)
        logger.debug('Upload registered: %s (%s)', entry.name, entry.id)
        return entry

    async def _run(
        self,
        entry: InFlightUpload,
        django_file: File,
        path: str,
    ) -> UploadOutcome:
        loop = asyncio.get_running_loop()

        def on_progress(transferred: int, total: int) -> None:
            # Called from transfer threads
            loop.call_soon_threadsafe(
                self.registry.set_progress,
                entry.id,
                progress_percent(transferred, total),
            )

        try:
            name = validate_name(entry.name, label='File name')
            await sync_to_async(self._check_target)(path, name)
            blob_key = make_blob_key(self.owner_id, name)
            content_type = (
                getattr(django_file, 'content_type', None)
                or detect_mime_type(name)
            )
            await sync_to_async(self.blob_store.upload, thread_sensitive=False)(
                blob_key,
                django_file,
                content_type=content_type,
                on_progress=on_progress,
            )
            self.registry.set_progress(entry.id, COMPLETE)
            download_url = await sync_to_async(
                self.blob_store.retrieval_url,
                thread_sensitive=False,
            )(blob_key)
        except (ValidationError, DriveError) as exc:
            logger.warning('Upload of %s failed: %s', entry.name, exc)
            return self._fail(entry, exc)
        except Exception as exc:
            # Other uploads of the batch keep running
            logger.exception('Upload of %s aborted', entry.name)
            return self._fail(entry, exc)

        try:
            node = await sync_to_async(self.repository.create_file)(
                self.owner_id,
                name,
                path,
                size_bytes=django_file.size or 0,
                mime_type=content_type,
                blob_ref=blob_key,
                download_url=download_url,
            )
        except (ValidationError, DriveError) as exc:
            logger.exception(
                'Record creation failed, blob orphaned: %s',
                blob_key,
            )
            return self._fail(entry, exc)

        self.registry.remove(entry.id)
        self.notifier.notify(upload_complete(name))
        logger.info('Upload complete: %s (node %s)', node.location, node.id)
        return UploadOutcome(entry.id, name, node=node)

    def _check_target(self, path: str, name: str) -> None:
        ensure_folder(self.repository, self.owner_id, path)
        if self.repository.find(self.owner_id, path, name) is not None:
            raise NameConflictError(name, path)

    def _fail(self, entry: InFlightUpload, exc: Exception) -> UploadOutcome:
        self.registry.remove(entry.id)
        self.notifier.notify(upload_failed(entry.name, _describe(exc)))
        return UploadOutcome(entry.id, entry.name, error=exc)


def _describe(exc: Exception) -> str:
    if isinstance(exc, ValidationError):
        return ' '.join(exc.messages)
    return str(exc)


def upload_files(  # noqa: WPS211
    repository: 'NodeRepository',
    blob_store: 'BlobStore',
    owner_id: int,
    files: Iterable[File],
    path: str,
    *,
    registry: UploadRegistry | None = None,
    notifier: Notifier | None = None,
) -> list[UploadOutcome]:
    """Upload files concurrently from synchronous code.

    Args:
        repository: Node repository.
        blob_store: Blob storage.
        owner_id: Owner's user ID.
        files: Django File objects.
        path: Encoded target path.
        registry: Registry to track progress in.
        notifier: Receives one notification per file.

    Returns:
        One outcome per file.
    """
    coordinator = UploadCoordinator(
        repository,
        blob_store,
        owner_id,
        registry=registry,
        notifier=notifier,
    )
    return async_to_sync(coordinator.upload_all)(list(files), path)
