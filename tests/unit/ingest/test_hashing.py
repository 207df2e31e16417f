import hashlib
from pathlib import Path

import pytest

from archive_upload.ingest.hashing import IntegrityHasher
from archive_upload.ingest.ingest_models import HashStrategy
from archive_upload.ingest.multipart import MultipartEventStream
from archive_upload.ingest.naming import NamingStrategy
from archive_upload.ingest.stream_ingestor import StreamIngestor
from tests.helpers.uploads import MULTIPART_CONTENT_TYPE, iter_chunks, multipart_body

PAYLOAD = b"\x1f\x8b\x08\x00" + bytes(range(256)) * 300


def test_hash_path_matches_hashlib(tmp_path: Path) -> None:
    target = tmp_path / "blob.gz"
    target.write_bytes(PAYLOAD)

    digest = IntegrityHasher(chunk_size=1000).hash_path(target)

    assert digest == hashlib.sha256(PAYLOAD).hexdigest()
    assert len(digest) == 64


@pytest.mark.asyncio
async def test_async_hash_file_matches_sync(tmp_path: Path) -> None:
    target = tmp_path / "blob.gz"
    target.write_bytes(PAYLOAD)
    hasher = IntegrityHasher()

    assert await hasher.hash_file(target) == hasher.hash_path(target)


@pytest.mark.asyncio
@pytest.mark.parametrize("chunk_size", [3, 1024, 1 << 20])
async def test_inline_and_two_pass_strategies_agree(upload_root: Path, chunk_size: int) -> None:
    body = multipart_body([("file", "blob.gz", PAYLOAD, "application/gzip")])
    digests = {}
    for strategy in HashStrategy:
        ingestor = StreamIngestor(
            upload_root=upload_root,
            naming=NamingStrategy(),
            hasher=IntegrityHasher(chunk_size=97),
            hash_strategy=strategy,
        )
        stored = await ingestor.ingest(
            MultipartEventStream(iter_chunks(body, chunk_size), MULTIPART_CONTENT_TYPE),
            max_bytes=len(PAYLOAD),
        )
        digests[strategy] = stored.sha256
        assert IntegrityHasher().hash_path(stored.path) == stored.sha256

    assert digests[HashStrategy.INLINE] == digests[HashStrategy.TWO_PASS]
    assert digests[HashStrategy.INLINE] == hashlib.sha256(PAYLOAD).hexdigest()
