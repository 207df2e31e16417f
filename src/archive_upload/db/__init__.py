"""Database helpers for the upload metadata store."""

from .db_models import Base, StoredFileModel

__all__ = ["Base", "StoredFileModel"]
