"""Listing and download of stored uploads."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from ..exceptions import RepositoryError
from ..ingest.ingest_models import StoredFile
from ..ingest.naming import is_staging_name, original_name, resolve_stored
from ..ingest.validation import format_megabytes
from .files_repository import StoredFileRepository

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class FileEntry:
    filename: str
    original_name: str
    size_bytes: int
    upload_time: datetime
    sha256: str | None = None

    def to_payload(self) -> dict[str, object]:
        return {
            "filename": self.filename,
            "originalName": self.original_name,
            "size": self.size_bytes,
            "uploadTime": self.upload_time.isoformat(),
            "sizeFormatted": format_megabytes(self.size_bytes),
            "hash": self.sha256,
        }


@dataclass(slots=True, frozen=True)
class Download:
    path: Path
    original_name: str


@dataclass(slots=True)
class FileCatalog:
    """Read-only view over the upload root, enriched with recorded metadata."""

    upload_root: Path
    repo: StoredFileRepository

    def list_files(self) -> list[FileEntry]:
        records = self._records()
        entries: list[FileEntry] = []
        try:
            scan = list(os.scandir(self.upload_root))
        except FileNotFoundError:
            return []
        names = {entry.name for entry in scan}
        for entry in scan:
            if is_staging_name(entry.name) or f".{entry.name}.part" in names:
                continue
            try:
                if not entry.is_file(follow_symlinks=False):
                    continue
                stat = entry.stat(follow_symlinks=False)
            except OSError:
                continue
            record = records.get(entry.name)
            entries.append(
                FileEntry(
                    filename=entry.name,
                    original_name=original_name(entry.name),
                    size_bytes=stat.st_size,
                    upload_time=(
                        record.created_at
                        if record
                        else datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc)
                    ),
                    sha256=record.sha256 if record else None,
                )
            )
        entries.sort(key=lambda item: item.upload_time, reverse=True)
        return entries

    def open_download(self, filename: str) -> Download | None:
        path = resolve_stored(self.upload_root, filename)
        if path is None or not path.is_file():
            return None
        # client-facing names always come from the sanitized stored name
        return Download(path=path, original_name=original_name(path.name))

    def _records(self) -> dict[str, StoredFile]:
        try:
            return self.repo.list_all()
        except RepositoryError:
            logger.exception("files.list.metadata_lookup_failed")
            return {}
