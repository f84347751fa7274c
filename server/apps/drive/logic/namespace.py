"""Directory listings derived from the flat node set.

Nothing here stores a tree. A listing is recomputed from the records
every time, so it cannot drift away from them.
"""

import locale
import logging
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Final, final

from server.apps.drive.exceptions import NodeNotFoundError
from server.apps.drive.logic.nodes import FolderNode, Node
from server.apps.drive.logic.paths import encode, name_of, parent_of

if TYPE_CHECKING:
    from server.apps.drive.infrastructure.repository import NodeRepository

logger = logging.getLogger(__name__)

ROOT_LABEL: Final = 'Home'

ChangeListener = Callable[['DirectoryView'], None]


def _sort_key(node: Node) -> tuple[bool, str]:
    return (not node.is_folder, locale.strxfrm(node.name))


def children(nodes: Iterable[Node], path: str) -> list[Node]:
    """Derive the ordered direct children of a path.

    Args:
        nodes: All known nodes of one owner, in any order. When the same
            id occurs more than once the last occurrence wins.
        path: Encoded path of the listed folder.

    Returns:
        Nodes whose ``path`` equals ``path``; folders first, then files,
        each group sorted by name with locale-aware collation.
    """
    latest = {node.id: node for node in nodes}
    return sorted(
        (node for node in latest.values() if node.path == path),
        key=_sort_key,
    )


@dataclass(frozen=True, slots=True)
class Breadcrumb:
    """One clickable step of the current location."""

    label: str
    segments: tuple[str, ...]

    @property
    def path(self) -> str:
        """Encoded path this crumb leads to."""
        return encode(self.segments)


def breadcrumbs(segments: Sequence[str]) -> list[Breadcrumb]:
    """Build the breadcrumb trail for a location.

    Args:
        segments: Folder names from the root.

    Returns:
        Root crumb followed by one crumb per segment.
    """
    trail = [Breadcrumb(ROOT_LABEL, ())]
    for index, segment in enumerate(segments, start=1):
        trail.append(Breadcrumb(segment, tuple(segments[:index])))
    return trail


def navigate(segments: Sequence[str], index: int) -> list[str]:
    """Follow breadcrumb ``index``: keep the first ``index`` segments.

    Raises:
        IndexError: If there is no such crumb.
    """
    if not 0 <= index <= len(segments):
        raise IndexError(f'No breadcrumb {index} in {encode(segments)}')
    return list(segments[:index])


def resolve(
    repository: 'NodeRepository',
    owner_id: int,
    location: str,
) -> Node | None:
    """Find the node at an absolute location.

    Args:
        repository: Node repository.
        owner_id: Owner's user ID.
        location: Absolute location (e.g., /Documents/report.pdf).

    Returns:
        The node, or None for the root.

    Raises:
        NodeNotFoundError: If nothing exists at the location.
    """
    name = name_of(location)
    if not name:
        return None
    node = repository.find(owner_id, parent_of(location), name)
    if node is None:
        raise NodeNotFoundError(f'Nothing at {location}')
    return node


@final
class DirectoryView:
    """Live listing of the folder a user is looking at.

    Subscribes to the repository for the current path and re-derives the
    children on every push. Listeners are told after each change.
    """

    def __init__(
        self,
        repository: 'NodeRepository',
        owner_id: int,
        segments: Sequence[str] = (),
    ) -> None:
        self._repository = repository
        self._owner_id = owner_id
        self._segments: list[str] = list(segments)
        self._records: list[Node] = []
        self._listeners: list[ChangeListener] = []
        self._unsubscribe: Callable[[], None] | None = None
        self._closed = False
        self._subscribe()

    @property
    def segments(self) -> list[str]:
        """Folder names from the root to the current folder."""
        return list(self._segments)

    @property
    def path(self) -> str:
        """Encoded current path."""
        return encode(self._segments)

    @property
    def closed(self) -> bool:
        """True once the view stopped listening."""
        return self._closed

    def children(self) -> list[Node]:
        """Current folder contents, folders first."""
        return children(self._records, self.path)

    def breadcrumbs(self) -> list[Breadcrumb]:
        """Breadcrumb trail of the current folder."""
        return breadcrumbs(self._segments)

    def open(self, folder: FolderNode) -> None:
        """Enter a child folder of the current path.

        Raises:
            ValueError: If ``folder`` is not a folder in the current path.
        """
        if not folder.is_folder or folder.path != self.path:
            raise ValueError(f'{folder.location} is not a folder in {self.path}')
        self._move_to([*self._segments, folder.name])

    def go_to(self, index: int) -> None:
        """Jump to breadcrumb ``index`` (0 is the root)."""
        self._move_to(navigate(self._segments, index))

    def on_change(self, listener: ChangeListener) -> Callable[[], None]:
        """Register a listener called after every re-derivation.

        Returns:
            Function removing the listener.
        """
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def close(self) -> None:
        """Stop listening. Pushes after closing are ignored."""
        self._closed = True
        self._drop_subscription()
        self._listeners.clear()

    def _move_to(self, segments: list[str]) -> None:
        if self._closed:
            raise RuntimeError('Directory view is closed')
        self._drop_subscription()
        self._segments = segments
        self._records = []
        self._subscribe()

    def _subscribe(self) -> None:
        path = self.path

        def receive(records: list[Node]) -> None:
            # Pushes for a path the view already left are stale
            if self._closed or path != self.path:
                return
            self._records = records
            for listener in list(self._listeners):
                listener(self)

        self._unsubscribe = self._repository.subscribe(
            self._owner_id,
            path,
            receive,
        )
        logger.debug('Directory view subscribed to %s', path)

    def _drop_subscription(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
