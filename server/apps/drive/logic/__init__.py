"""Business logic layer for drive app.

This package contains the virtual namespace built on top of the flat
node table:
- Path encoding and the node value types
- Directory listing, breadcrumbs and live directory views
- Rename/move/delete cascades as write batches
- Concurrent uploads with per-file progress
- Create folder, rename, move, delete and download operations

All business logic should be implemented here, separate from
models (data layer) and infrastructure (external systems).
"""
