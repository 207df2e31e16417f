import asyncio
from datetime import datetime, timezone
from pathlib import Path

import pytest

from archive_upload.ingest.ingest_errors import UploadIOError
from archive_upload.ingest.naming import (
    NamingStrategy,
    format_stamp,
    original_name,
    resolve_stored,
    sanitize_basename,
)

FIXED = datetime(2026, 10, 18, 12, 5, 1, 123456, tzinfo=timezone.utc)


def fixed_clock() -> datetime:
    return FIXED


@pytest.mark.parametrize(
    "hostile",
    [
        "../../etc/passwd",
        "..\\..\\windows\\win.ini",
        "/etc/shadow",
        "C:\\Users\\me\\archive.zip",
        "evil\x00.zip",
        "..",
        "../",
        "",
        ".zip",
        "a" * 1000 + ".tar.gz",
        "$(rm -rf ~).zip",
    ],
)
def test_generated_name_stays_inside_root(tmp_path: Path, hostile: str) -> None:
    naming = NamingStrategy(clock=fixed_clock)

    name = naming.next_name(hostile)
    resolved = NamingStrategy.resolve_inside(tmp_path, name)

    assert resolved.parent == tmp_path.resolve()
    assert "/" not in name and "\\" not in name and "\x00" not in name
    assert len(name) < 255


def test_sanitize_replaces_unsafe_characters() -> None:
    assert sanitize_basename("my archive (1).zip") == "my_archive__1_.zip"
    assert sanitize_basename("résumé.zip") == "r_sum_.zip"
    assert sanitize_basename("..") == "upload"
    assert sanitize_basename(None) == "upload"


def test_sanitize_truncates_but_keeps_extension() -> None:
    safe = sanitize_basename("x" * 500 + ".tar.gz", max_length=64)

    assert len(safe) == 64
    assert safe.endswith(".tar.gz")


def test_next_name_uses_millisecond_stamp_and_attempt() -> None:
    naming = NamingStrategy(clock=fixed_clock)

    assert format_stamp(FIXED) == "20261018T120501123Z"
    assert naming.next_name("backup.zip") == "20261018T120501123Z-backup.zip"
    assert naming.next_name("backup.zip", attempt=3) == "20261018T120501123Z_3-backup.zip"


def test_original_name_strips_disambiguator() -> None:
    naming = NamingStrategy(clock=fixed_clock)

    assert original_name(naming.next_name("my backup.tar.gz")) == "my_backup.tar.gz"
    assert original_name(naming.next_name("5-things.zip", attempt=2)) == "5-things.zip"
    assert original_name("not-generated.zip") == "not-generated.zip"


@pytest.mark.asyncio
async def test_claim_retries_on_collision(tmp_path: Path) -> None:
    naming = NamingStrategy(clock=fixed_clock)

    first = await naming.claim(tmp_path, "same.zip")
    second = await naming.claim(tmp_path, "same.zip")

    assert first != second
    assert first.name == "20261018T120501123Z-same.zip"
    assert second.name == "20261018T120501123Z_1-same.zip"
    assert first.exists() and second.exists()


@pytest.mark.asyncio
async def test_concurrent_claims_never_share_a_name(tmp_path: Path) -> None:
    naming = NamingStrategy(clock=fixed_clock)

    claimed = await asyncio.gather(*(naming.claim(tmp_path, "same.zip") for _ in range(10)))

    assert len({path.name for path in claimed}) == 10


@pytest.mark.asyncio
async def test_claim_reports_io_failure_when_attempts_exhausted(tmp_path: Path) -> None:
    naming = NamingStrategy(clock=fixed_clock, max_attempts=2)
    for attempt in range(2):
        (tmp_path / naming.next_name("busy.zip", attempt=attempt)).write_bytes(b"taken")

    with pytest.raises(UploadIOError):
        await naming.claim(tmp_path, "busy.zip")


def test_resolve_stored_rejects_escapes(tmp_path: Path) -> None:
    (tmp_path / "20261018T120501123Z-a.zip").write_bytes(b"x")

    assert resolve_stored(tmp_path, "20261018T120501123Z-a.zip") == (
        tmp_path / "20261018T120501123Z-a.zip"
    ).resolve()
    assert resolve_stored(tmp_path, "../secret.zip") is None
    assert resolve_stored(tmp_path, "..") is None
    assert resolve_stored(tmp_path, ".hidden.part") is None
    assert resolve_stored(tmp_path, "sub/file.zip") is None
    assert resolve_stored(tmp_path, "") is None
