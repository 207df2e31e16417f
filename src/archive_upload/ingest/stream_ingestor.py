"""Stream a multipart upload to disk without buffering it in memory."""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import AsyncIterable, AsyncIterator, Callable
from dataclasses import dataclass, field
from pathlib import Path

import aiofiles
import aiofiles.os

from .hashing import IntegrityHasher
from .ingest_errors import (
    MalformedBodyError,
    MissingFileError,
    PayloadTooLargeError,
    UnexpectedFieldError,
    UploadIOError,
)
from .ingest_models import FilePart, HashStrategy, StoredFile
from .multipart import MultipartEvent, PartData, PartFinished, PartStarted
from .naming import Clock, NamingStrategy, staging_path, utcnow

logger = logging.getLogger(__name__)

MAX_FIELD_BYTES = 64 * 1024

PartHook = Callable[[FilePart], None]


@dataclass(slots=True)
class StreamIngestor:
    """Persist exactly one file part of a multipart body.

    Bytes go to a hidden ``.<name>.part`` staging file next to an exclusively
    claimed destination; the staging file replaces the destination only after
    the whole body was read, flushed and fsynced. Any failure removes both.
    """

    upload_root: Path
    naming: NamingStrategy = field(default_factory=NamingStrategy)
    hasher: IntegrityHasher = field(default_factory=IntegrityHasher)
    file_field: str = "file"
    hash_strategy: HashStrategy = HashStrategy.INLINE
    max_field_bytes: int = MAX_FIELD_BYTES
    clock: Clock = field(default=utcnow)

    async def ingest(
        self,
        events: AsyncIterable[MultipartEvent],
        *,
        max_bytes: int,
        accept_part: PartHook | None = None,
    ) -> StoredFile:
        stream = aiter(events)
        destination: Path | None = None
        try:
            part = await self._await_file_part(stream, accept_part)
            destination = await self.naming.claim(self.upload_root, part.filename)
            staging = staging_path(destination)
            logger.info(
                "upload.stream.started",
                extra={"upload_filename": part.filename, "destination": destination.name},
            )
            size, digest = await self._write_part(stream, staging, max_bytes)
            await self._drain(stream)
            if digest is None:
                digest = await self.hasher.hash_file(staging)
            await aiofiles.os.replace(staging, destination)
        except OSError as exc:
            self._discard(destination)
            logger.error("upload.stream.io_failure", extra={"error": str(exc)})
            raise UploadIOError(f"failed to store upload: {exc.strerror or exc}") from exc
        except BaseException:
            self._discard(destination)
            raise

        stored = StoredFile(
            filename=destination.name,
            path=destination,
            original_name=part.filename,
            size_bytes=size,
            sha256=digest,
            created_at=self.clock(),
            content_type=part.content_type,
        )
        logger.info(
            "upload.stream.committed",
            extra={
                "destination": stored.filename,
                "size_bytes": stored.size_bytes,
                "sha256": stored.sha256,
            },
        )
        return stored

    async def _await_file_part(
        self,
        stream: AsyncIterator[MultipartEvent],
        accept_part: PartHook | None,
    ) -> FilePart:
        field_bytes = 0
        async for event in stream:
            if isinstance(event, PartStarted):
                field_bytes = 0
                if event.is_file and event.filename:
                    return self._open_part(event, accept_part)
            elif isinstance(event, PartData):
                field_bytes = self._count_field_bytes(field_bytes, event)
        raise MissingFileError("No file was uploaded")

    def _open_part(self, event: PartStarted, accept_part: PartHook | None) -> FilePart:
        if event.field_name != self.file_field:
            raise UnexpectedFieldError(f"Unexpected file field '{event.field_name}'")
        part = FilePart(
            field_name=event.field_name,
            filename=event.filename or "",
            content_type=event.content_type,
        )
        if accept_part is not None:
            accept_part(part)
        return part

    async def _write_part(
        self,
        stream: AsyncIterator[MultipartEvent],
        staging: Path,
        max_bytes: int,
    ) -> tuple[int, str | None]:
        digest = self.hasher.new() if self.hash_strategy is HashStrategy.INLINE else None
        size = 0
        async with aiofiles.open(staging, "xb") as sink:
            async for event in stream:
                if isinstance(event, PartFinished):
                    break
                if not isinstance(event, PartData):
                    continue
                size += len(event.data)
                if size > max_bytes:
                    logger.warning(
                        "upload.stream.too_large",
                        extra={"size_bytes": size, "limit_bytes": max_bytes},
                    )
                    raise PayloadTooLargeError(
                        f"File too large. Maximum size: {max_bytes / 1024 / 1024:.2f} MB"
                    )
                await sink.write(event.data)
                if digest is not None:
                    digest.update(event.data)
            else:
                raise UploadIOError("Upload stream ended before the file was complete")
            await sink.flush()
            await asyncio.to_thread(os.fsync, sink.fileno())
        return size, (digest.hexdigest() if digest is not None else None)

    async def _drain(self, stream: AsyncIterator[MultipartEvent]) -> None:
        """Consume trailing parts; a second file is an error, fields are capped."""
        field_bytes = 0
        async for event in stream:
            if isinstance(event, PartStarted):
                field_bytes = 0
                if event.is_file and event.filename:
                    logger.warning(
                        "upload.stream.unexpected_file",
                        extra={"field": event.field_name, "upload_filename": event.filename},
                    )
                    raise UnexpectedFieldError(
                        f"Only one file per request is accepted (extra field '{event.field_name}')"
                    )
            elif isinstance(event, PartData):
                field_bytes = self._count_field_bytes(field_bytes, event)

    def _count_field_bytes(self, current: int, event: PartData) -> int:
        current += len(event.data)
        if current > self.max_field_bytes:
            raise MalformedBodyError("Form field too large")
        return current

    @staticmethod
    def _discard(destination: Path | None) -> None:
        if destination is None:
            return
        for path in (staging_path(destination), destination):
            try:
                path.unlink(missing_ok=True)
            except OSError as exc:
                logger.error(
                    "upload.stream.cleanup_failed",
                    extra={"path": str(path), "error": str(exc)},
                )
        logger.info("upload.stream.discarded", extra={"destination": destination.name})
