"""Settings for the drive app."""

from server.settings.components import config

# Blobs younger than this are never reported as orphaned:
# an upload may still be about to create its record.
DRIVE_ORPHAN_MIN_AGE_MINUTES = config(
    'DRIVE_ORPHAN_MIN_AGE_MINUTES',
    cast=int,
    default=60,
)
