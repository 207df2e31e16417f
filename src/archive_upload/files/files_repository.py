"""Persistence layer for stored_file records."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..db.db_models import StoredFileModel
from ..exceptions import handle_sqlalchemy_errors
from ..ingest.ingest_models import StoredFile


class StoredFileRepository:
    """Store metadata (original name, digest) about committed uploads."""

    def __init__(self, session_factory: Callable[[], Session], upload_root: Path) -> None:
        self._session_factory = session_factory
        self._upload_root = upload_root

    def add(self, stored: StoredFile, *, client_address: str | None = None) -> None:
        with handle_sqlalchemy_errors(entity="stored_file", key=stored.filename), self._session_factory() as session:
            session.add(
                StoredFileModel(
                    filename=stored.filename,
                    original_name=stored.original_name,
                    size_bytes=stored.size_bytes,
                    sha256=stored.sha256,
                    content_type=stored.content_type,
                    client_address=client_address,
                    created_at=_to_naive_utc(stored.created_at),
                )
            )
            session.commit()

    def get(self, filename: str) -> StoredFile | None:
        with handle_sqlalchemy_errors(entity="stored_file", key=filename), self._session_factory() as session:
            model = session.get(StoredFileModel, filename)
            return self._to_domain(model) if model is not None else None

    def list_all(self) -> dict[str, StoredFile]:
        with handle_sqlalchemy_errors(entity="stored_file"), self._session_factory() as session:
            rows = session.scalars(select(StoredFileModel)).all()
            return {row.filename: self._to_domain(row) for row in rows}

    def _to_domain(self, model: StoredFileModel) -> StoredFile:
        return StoredFile(
            filename=model.filename,
            path=self._upload_root / model.filename,
            original_name=model.original_name,
            size_bytes=model.size_bytes,
            sha256=model.sha256,
            created_at=model.created_at.replace(tzinfo=timezone.utc),
            content_type=model.content_type,
        )


def _to_naive_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment
    return moment.astimezone(timezone.utc).replace(tzinfo=None)
