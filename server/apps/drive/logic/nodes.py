"""Value types for nodes handed around by the logic layer.

Repositories convert their storage rows into these frozen records, so
nothing above the repository mutates a node in place: a write goes to
the repository and the next read returns a new value.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import ClassVar

from server.apps.drive.logic.paths import location_of
from server.apps.drive.models import NodeKind


@dataclass(frozen=True, slots=True, kw_only=True)
class BaseNode:
    """Fields shared by folders and files."""

    kind: ClassVar[NodeKind]

    id: str
    name: str
    path: str
    owner_id: int
    last_modified: datetime

    @property
    def location(self) -> str:
        """Absolute location of this node (path joined with name)."""
        return location_of(self.path, self.name)

    @property
    def is_folder(self) -> bool:
        """True for folders."""
        return self.kind == NodeKind.FOLDER


@dataclass(frozen=True, slots=True, kw_only=True)
class FolderNode(BaseNode):
    """A folder. Its contents are the nodes whose path is its location."""

    kind: ClassVar[NodeKind] = NodeKind.FOLDER


@dataclass(frozen=True, slots=True, kw_only=True)
class FileNode(BaseNode):
    """A file whose bytes live in blob storage under ``blob_ref``."""

    kind: ClassVar[NodeKind] = NodeKind.FILE

    size_bytes: int
    mime_type: str
    blob_ref: str
    download_url: str


Node = FolderNode | FileNode
