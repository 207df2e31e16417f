"""Incremental multipart parsing exposed as an async event iterator.

The request body is fed chunk by chunk into ``python-multipart``'s push
parser. Parser callbacks only queue events; the queue is drained after every
chunk, so at most one transport chunk worth of part data is held in memory.
"""

from __future__ import annotations

from collections import deque
from collections.abc import AsyncIterator
from dataclasses import dataclass

from python_multipart.exceptions import MultipartParseError
from python_multipart.multipart import MultipartParser, parse_options_header

from .ingest_errors import MalformedBodyError, UploadIOError

MAX_HEADER_BYTES = 16 * 1024


@dataclass(slots=True, frozen=True)
class PartStarted:
    field_name: str
    filename: str | None
    content_type: str | None

    @property
    def is_file(self) -> bool:
        return self.filename is not None


@dataclass(slots=True, frozen=True)
class PartData:
    data: bytes


@dataclass(slots=True, frozen=True)
class PartFinished:
    pass


MultipartEvent = PartStarted | PartData | PartFinished


def _decode(value: bytes | None) -> str | None:
    if value is None:
        return None
    return value.decode("utf-8", errors="replace")


def parse_boundary(content_type: str | None) -> bytes:
    mime, params = parse_options_header(content_type or "")
    boundary = params.get(b"boundary")
    if mime != b"multipart/form-data" or not boundary:
        raise MalformedBodyError("expected a multipart/form-data body")
    return boundary


class MultipartEventStream:
    """Turn an async byte stream into ``PartStarted``/``PartData``/``PartFinished``."""

    def __init__(self, chunks: AsyncIterator[bytes], content_type: str | None) -> None:
        self._chunks = chunks
        self._pending: deque[MultipartEvent] = deque()
        self._headers: dict[bytes, bytes] = {}
        self._header_field = bytearray()
        self._header_value = bytearray()
        self._header_bytes = 0
        self._complete = False
        self._in_part = False
        self._parser = MultipartParser(
            parse_boundary(content_type),
            callbacks={
                "on_part_begin": self._on_part_begin,
                "on_header_field": self._on_header_field,
                "on_header_value": self._on_header_value,
                "on_header_end": self._on_header_end,
                "on_headers_finished": self._on_headers_finished,
                "on_part_data": self._on_part_data,
                "on_part_end": self._on_part_end,
                "on_end": self._on_end,
            },
        )

    def __aiter__(self) -> AsyncIterator[MultipartEvent]:
        return self._events()

    async def _events(self) -> AsyncIterator[MultipartEvent]:
        async for chunk in self._chunks:
            if not chunk:
                continue
            try:
                self._parser.write(chunk)
            except MultipartParseError as exc:
                raise MalformedBodyError(str(exc)) from exc
            while self._pending:
                yield self._pending.popleft()
        self._parser.finalize()
        while self._pending:
            yield self._pending.popleft()
        if self._complete:
            return
        if self._in_part:
            raise UploadIOError("Upload stream ended before the file was complete")
        raise MalformedBodyError("multipart body ended before the closing boundary")

    def _on_part_begin(self) -> None:
        self._in_part = True
        self._headers = {}
        self._header_bytes = 0

    def _on_header_field(self, data: bytes, start: int, end: int) -> None:
        self._track_header_size(end - start)
        self._header_field += data[start:end]

    def _on_header_value(self, data: bytes, start: int, end: int) -> None:
        self._track_header_size(end - start)
        self._header_value += data[start:end]

    def _on_header_end(self) -> None:
        self._headers[bytes(self._header_field).lower()] = bytes(self._header_value)
        self._header_field.clear()
        self._header_value.clear()

    def _on_headers_finished(self) -> None:
        _, options = parse_options_header(self._headers.get(b"content-disposition"))
        content_type = self._headers.get(b"content-type")
        self._pending.append(
            PartStarted(
                field_name=_decode(options.get(b"name")) or "",
                filename=_decode(options.get(b"filename")),
                content_type=_decode(content_type),
            )
        )

    def _on_part_data(self, data: bytes, start: int, end: int) -> None:
        self._pending.append(PartData(bytes(data[start:end])))

    def _on_part_end(self) -> None:
        self._in_part = False
        self._pending.append(PartFinished())

    def _on_end(self) -> None:
        self._complete = True

    def _track_header_size(self, size: int) -> None:
        self._header_bytes += size
        if self._header_bytes > MAX_HEADER_BYTES:
            raise MalformedBodyError("multipart part headers too large")
