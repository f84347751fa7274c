"""Metadata helpers for uploaded files and blobs."""

import mimetypes
import uuid
from typing import Final

_DEFAULT_MIME_TYPE: Final = 'application/octet-stream'
_SIZE_UNITS: Final = ('Bytes', 'KB', 'MB', 'GB', 'TB')
_KILO: Final = 1024


def detect_mime_type(filename: str) -> str:
    """Detect MIME type from a file name.

    Uses Python's built-in mimetypes module to guess MIME type
    from the extension.

    Args:
        filename: Filename with extension.

    Returns:
        MIME type string (e.g., 'image/jpeg', 'application/pdf').
        Returns 'application/octet-stream' if type cannot be determined.
    """
    mime_type, _ = mimetypes.guess_type(filename)
    if mime_type is None:
        return _DEFAULT_MIME_TYPE
    return mime_type


def make_blob_key(owner_id: int, filename: str) -> str:
    """Build a collision-resistant blob key scoped to the owner.

    The random part keeps two uploads of the same file name apart; the
    key never changes when the node is renamed or moved.

    Args:
        owner_id: Owner's user ID.
        filename: Original file name.

    Returns:
        Blob key (e.g., '7/3f2a...c1-report.pdf').
    """
    return f'{owner_id}/{uuid.uuid4().hex}-{filename}'


def owner_of_blob_key(blob_key: str) -> int | None:
    """Extract the owner ID from a blob key.

    Args:
        blob_key: Key built by ``make_blob_key``.

    Returns:
        Owner ID, or None if the key does not start with one.
    """
    first_component = blob_key.split('/', 1)[0]
    try:
        return int(first_component)
    except ValueError:
        return None


def human_size(size_bytes: int, decimals: int = 2) -> str:
    """Format bytes in human-readable format.

    Args:
        size_bytes: Size in bytes.
        decimals: Digits after the decimal point.

    Returns:
        Formatted size string (e.g., '1.5 MB', '0 Bytes').
    """
    if size_bytes <= 0:
        return '0 Bytes'

    size = float(size_bytes)
    unit_index = 0
    while size >= _KILO and unit_index < len(_SIZE_UNITS) - 1:
        size /= _KILO
        unit_index += 1

    formatted = f'{size:.{max(decimals, 0)}f}'
    if '.' in formatted:
        formatted = formatted.rstrip('0').rstrip('.')
    return f'{formatted} {_SIZE_UNITS[unit_index]}'
