import pytest

from archive_upload.ingest.ingest_errors import MalformedBodyError, UploadIOError
from archive_upload.ingest.multipart import (
    MultipartEventStream,
    PartData,
    PartFinished,
    PartStarted,
)
from tests.helpers.uploads import MULTIPART_CONTENT_TYPE, iter_chunks, multipart_body


async def collect(stream: MultipartEventStream) -> list:
    return [event async for event in stream]


@pytest.mark.asyncio
@pytest.mark.parametrize("chunk_size", [1, 5, 64, 4096])
async def test_events_describe_each_part(chunk_size: int) -> None:
    body = multipart_body(
        [
            ("note", None, b"hello", None),
            ("file", "data.zip", b"PK\x03\x04payload", "application/zip"),
        ]
    )

    events = await collect(MultipartEventStream(iter_chunks(body, chunk_size), MULTIPART_CONTENT_TYPE))

    starts = [event for event in events if isinstance(event, PartStarted)]
    assert starts == [
        PartStarted(field_name="note", filename=None, content_type=None),
        PartStarted(field_name="file", filename="data.zip", content_type="application/zip"),
    ]
    assert not starts[0].is_file and starts[1].is_file
    file_index = events.index(starts[1])
    file_bytes = b"".join(
        event.data for event in events[file_index:] if isinstance(event, PartData)
    )
    assert file_bytes == b"PK\x03\x04payload"
    assert sum(isinstance(event, PartFinished) for event in events) == 2


@pytest.mark.asyncio
async def test_part_data_never_exceeds_chunk_size() -> None:
    payload = bytes(range(256)) * 64
    body = multipart_body([("file", "big.tar", payload, None)])

    events = await collect(MultipartEventStream(iter_chunks(body, 100), MULTIPART_CONTENT_TYPE))

    sizes = [len(event.data) for event in events if isinstance(event, PartData)]
    assert max(sizes) <= 100
    assert sum(sizes) == len(payload)


@pytest.mark.parametrize(
    "content_type",
    [None, "application/json", "multipart/form-data", "text/plain; boundary=x"],
)
def test_non_multipart_body_is_rejected(content_type: str | None) -> None:
    with pytest.raises(MalformedBodyError):
        MultipartEventStream(iter_chunks(b""), content_type)


@pytest.mark.asyncio
async def test_body_cut_inside_a_part_is_io_failure() -> None:
    body = multipart_body([("file", "data.zip", b"0123456789", None)])
    truncated = body[: len(body) - 30]

    with pytest.raises(UploadIOError):
        await collect(MultipartEventStream(iter_chunks(truncated), MULTIPART_CONTENT_TYPE))


@pytest.mark.asyncio
async def test_empty_body_is_malformed() -> None:
    with pytest.raises(MalformedBodyError):
        await collect(MultipartEventStream(iter_chunks(b""), MULTIPART_CONTENT_TYPE))
