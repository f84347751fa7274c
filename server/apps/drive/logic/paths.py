"""Path encoding for the virtual namespace.

A node's ``path`` is the location of its parent folder, encoded as
'/'-separated segments with '/' for the root::

    encode([]) == '/'
    encode(['Documents', 'Reports']) == '/Documents/Reports'

A node's own location is its path joined with its name. Descendants of a
folder are found by a segment-aware prefix match on that location.
"""

from collections.abc import Sequence
from typing import Final

from django.core.exceptions import ValidationError

ROOT: Final = '/'

# Character used to split paths into segments
SEPARATOR: Final = '/'

_RESERVED_NAMES: Final = frozenset(('.', '..'))


def encode(segments: Sequence[str]) -> str:
    """Encode folder names from the root into a path string.

    Args:
        segments: Folder names, outermost first.

    Returns:
        Encoded path ('/' for no segments).
    """
    if not segments:
        return ROOT
    return SEPARATOR + SEPARATOR.join(segments)


def decode(path: str) -> list[str]:
    """Split a path string back into folder names.

    Args:
        path: Encoded path (e.g., /Documents/Reports).

    Returns:
        Folder names, outermost first (empty for the root).
    """
    return [segment for segment in path.split(SEPARATOR) if segment]


def normalize(path: str) -> str:
    """Normalize a path: collapse repeated and trailing separators.

    Args:
        path: Path as typed by a user or client (e.g., 'Documents/').

    Returns:
        Canonical path (e.g., /Documents).
    """
    return encode(decode(path))


def location_of(parent_path: str, name: str) -> str:
    """Join a parent path and a name into an absolute location.

    Args:
        parent_path: Encoded parent path (e.g., /Documents).
        name: Node name (e.g., report.pdf).

    Returns:
        Absolute location (e.g., /Documents/report.pdf).
    """
    if parent_path == ROOT:
        return ROOT + name
    return parent_path + SEPARATOR + name


def parent_of(location: str) -> str:
    """Get the parent path of an absolute location.

    Args:
        location: Absolute location (e.g., /Documents/report.pdf).

    Returns:
        Parent path (e.g., /Documents). Returns / for top-level nodes.
    """
    return encode(decode(location)[:-1])


def name_of(location: str) -> str:
    """Get the last segment of an absolute location.

    Args:
        location: Absolute location (e.g., /Documents/report.pdf).

    Returns:
        Name component (e.g., report.pdf). Empty string for the root.
    """
    segments = decode(location)
    if not segments:
        return ''
    return segments[-1]


def is_root(path: str) -> bool:
    """Check if path is the root directory."""
    return not decode(path)


def is_within(path: str, location: str) -> bool:
    """Check whether ``path`` is ``location`` or lies below it.

    The match stops at segment boundaries: '/AB' is not within '/A'.

    Args:
        path: Encoded path to test.
        location: Folder location.

    Returns:
        True for the folder itself and all its descendants' paths.
    """
    if location == ROOT:
        return True
    return path == location or path.startswith(location + SEPARATOR)


def rebase(path: str, old_location: str, new_location: str) -> str:
    """Replace the ``old_location`` prefix of ``path`` by ``new_location``.

    The suffix after the prefix is kept byte-for-byte.

    Args:
        path: Path within ``old_location``.
        old_location: Location being renamed or moved.
        new_location: Location it becomes.

    Returns:
        Rewritten path.

    Raises:
        ValueError: If ``path`` is not within ``old_location``.
    """
    if not is_within(path, old_location) or old_location == ROOT:
        raise ValueError(f'{path} is not within {old_location}')
    return new_location + path[len(old_location):]


def is_safe_path(path: str) -> bool:
    """Validate a client-supplied path.

    Checks for path traversal attempts and null bytes.

    Args:
        path: Path to validate.

    Returns:
        True if path is valid and safe.
    """
    if '\x00' in path:
        return False
    return not any(segment in _RESERVED_NAMES for segment in decode(path))


def validate_name(name: str, label: str = 'Name') -> str:
    """Validate a node name and return it trimmed.

    Args:
        name: Name as entered by the user.
        label: How to call the name in error messages.

    Returns:
        The trimmed name.

    Raises:
        ValidationError: If the name is empty, reserved or contains
            a separator or null byte.
    """
    cleaned = name.strip()
    if not cleaned:
        raise ValidationError(f'{label} cannot be empty.', code='empty')
    if SEPARATOR in cleaned or '\x00' in cleaned:
        raise ValidationError(
            f'{label} cannot contain "/" or null bytes.',
            code='invalid',
        )
    if cleaned in _RESERVED_NAMES:
        raise ValidationError(
            f'{label} cannot be "{cleaned}".',
            code='reserved',
        )
    return cleaned
