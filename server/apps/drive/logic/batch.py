"""Ordered batches of single-record writes.

The record store has no multi-record transaction, so a cascade is a
list of independent writes. Applying a batch records which writes went
through and which did not; the caller can retry just the rest.
"""

import enum
import logging
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, final

from django.core.exceptions import ValidationError

from server.apps.drive.exceptions import CascadeError, DriveError
from server.apps.drive.logic.nodes import FileNode, Node

if TYPE_CHECKING:
    from server.apps.drive.infrastructure.repository import NodeRepository

logger = logging.getLogger(__name__)


class WriteKind(enum.StrEnum):
    """Operation a write performs on its record."""

    UPDATE = 'update'
    DELETE = 'delete'


@final
@dataclass(frozen=True, slots=True)
class Write:
    """One pending change to one record.

    A failing ``critical`` write stops the batch: every later write is
    skipped and left for a retry.
    """

    kind: WriteKind
    node_id: str
    owner_id: int
    location: str
    changes: Mapping[str, Any] = field(
        default_factory=lambda: MappingProxyType({}),
    )
    blob_ref: str = ''
    critical: bool = False

    @classmethod
    def update(cls, node: Node, *, critical: bool = False, **changes: Any) -> 'Write':
        """Plan an update of ``node``."""
        return cls(
            kind=WriteKind.UPDATE,
            node_id=node.id,
            owner_id=node.owner_id,
            location=node.location,
            changes=MappingProxyType(dict(changes)),
            critical=critical,
        )

    @classmethod
    def delete(cls, node: Node, *, critical: bool = False) -> 'Write':
        """Plan the deletion of ``node`` (and later of its blob)."""
        return cls(
            kind=WriteKind.DELETE,
            node_id=node.id,
            owner_id=node.owner_id,
            location=node.location,
            blob_ref=node.blob_ref if isinstance(node, FileNode) else '',
            critical=critical,
        )

    def apply(self, repository: 'NodeRepository') -> None:
        """Perform the write against ``repository``."""
        if self.kind == WriteKind.UPDATE:
            repository.update(self.owner_id, self.node_id, **self.changes)
        else:
            repository.delete(self.owner_id, self.node_id)


@final
@dataclass(frozen=True, slots=True)
class FailedWrite:
    """A write that raised, with the error it raised."""

    write: Write
    error: Exception


@final
@dataclass(frozen=True, slots=True)
class BatchResult:
    """Outcome of applying a batch."""

    applied: tuple[Write, ...] = ()
    failed: tuple[FailedWrite, ...] = ()
    skipped: tuple[Write, ...] = ()

    @property
    def ok(self) -> bool:
        """True when every write was applied."""
        return not self.failed and not self.skipped

    @property
    def deleted_blob_refs(self) -> list[str]:
        """Blob references of file records that were deleted."""
        return [
            write.blob_ref
            for write in self.applied
            if write.kind == WriteKind.DELETE and write.blob_ref
        ]

    def remaining(self) -> 'WriteBatch':
        """Batch of the failed and skipped writes, in original order."""
        return WriteBatch(
            tuple(failure.write for failure in self.failed) + self.skipped,
        )

    def raise_for_failures(self, message: str) -> None:
        """Raise CascadeError unless every write was applied.

        Raises:
            CascadeError: Carrying this result.
        """
        if not self.ok:
            raise CascadeError(message, self)


@final
@dataclass(frozen=True, slots=True)
class WriteBatch:
    """Writes applied one by one, in order."""

    writes: tuple[Write, ...] = ()

    def __len__(self) -> int:
        return len(self.writes)

    def __iter__(self) -> Iterator[Write]:
        return iter(self.writes)

    def apply(self, repository: 'NodeRepository') -> BatchResult:
        """Apply every write and record the outcome.

        Nothing is rolled back. Failures of non-critical writes are
        recorded and application continues.

        Args:
            repository: Node repository to write to.

        Returns:
            Which writes were applied, failed or skipped.
        """
        applied: list[Write] = []
        failed: list[FailedWrite] = []

        for index, write in enumerate(self.writes):
            try:
                write.apply(repository)
            except (DriveError, ValidationError) as exc:
                logger.exception(
                    'Write failed: %s %s',
                    write.kind,
                    write.location,
                )
                failed.append(FailedWrite(write, exc))
                if write.critical:
                    return BatchResult(
                        applied=tuple(applied),
                        failed=tuple(failed),
                        skipped=self.writes[index + 1:],
                    )
            else:
                applied.append(write)

        return BatchResult(applied=tuple(applied), failed=tuple(failed))
