"""Infrastructure layer for drive app.

This package contains integrations with external systems:
- Blob storage backend (S3/MinIO/R2)
- Node repositories (Django ORM and in-memory)
- Metadata helpers (MIME type, blob keys, sizes)
- Local save targets for downloads

Keep infrastructure concerns separate from business logic.
"""
