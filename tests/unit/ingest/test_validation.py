import pytest

from archive_upload.ingest.ingest_models import FailureReason
from archive_upload.ingest.validation import (
    CONTENT_TYPE_MISMATCH,
    UploadValidator,
    ValidationPolicy,
    extract_extension,
)

MB = 1024 * 1024
ARCHIVE_EXTENSIONS = frozenset({".zip", ".tar", ".gz", ".tar.gz", ".7z"})


def build_validator(
    *,
    content_types: frozenset[str] | None = None,
    lenient: bool = False,
    max_bytes: int = 100 * MB,
) -> UploadValidator:
    return UploadValidator(
        ValidationPolicy(
            allowed_extensions=ARCHIVE_EXTENSIONS,
            allowed_content_types=content_types,
            max_bytes=max_bytes,
            lenient_content_type=lenient,
            multipart_overhead_bytes=64 * 1024,
        )
    )


@pytest.mark.parametrize(
    ("filename", "expected"),
    [
        ("archive.tar.gz", ".tar.gz"),
        ("BACKUP.TAR.GZ", ".tar.gz"),
        ("photos.ZIP", ".zip"),
        ("release.v1.2.7z", ".7z"),
        ("notes.tar.gz.exe", ".exe"),
        ("dir/sub\\data.tar", ".tar"),
        (".zip", ".zip"),
        ("README", ""),
        ("", ""),
    ],
)
def test_extract_extension(filename: str, expected: str) -> None:
    assert extract_extension(filename) == expected


def test_validate_accepts_compound_extension() -> None:
    decision = build_validator().validate("archive.tar.gz", "application/gzip", 10)

    assert decision.accepted
    assert decision.reason is None
    assert decision.warnings == ()


def test_validate_rejects_executable() -> None:
    decision = build_validator().validate("malware.exe", "application/x-msdownload", 10)

    assert not decision.accepted
    assert decision.reason is FailureReason.UNSUPPORTED_TYPE


def test_validate_rejects_gz_lookalike_with_other_last_extension() -> None:
    decision = build_validator().validate("archive.gz.sh", None)

    assert decision.reason is FailureReason.UNSUPPORTED_TYPE


def test_strict_content_type_rejects_unknown_mime() -> None:
    validator = build_validator(content_types=frozenset({"application/zip"}), lenient=False)

    decision = validator.validate("photos.zip", "text/plain")

    assert not decision.accepted
    assert decision.reason is FailureReason.UNSUPPORTED_TYPE


def test_lenient_content_type_passes_with_warning() -> None:
    validator = build_validator(content_types=frozenset({"application/zip"}), lenient=True)

    decision = validator.validate("photos.zip", "application/octet-stream")

    assert decision.accepted
    assert decision.warnings == (CONTENT_TYPE_MISMATCH,)


def test_lenient_mode_still_enforces_extension() -> None:
    validator = build_validator(content_types=frozenset({"application/zip"}), lenient=True)

    decision = validator.validate("photos.exe", "application/zip")

    assert decision.reason is FailureReason.UNSUPPORTED_TYPE


def test_content_type_parameters_are_ignored() -> None:
    validator = build_validator(content_types=frozenset({"application/zip"}))

    decision = validator.validate("photos.zip", "Application/Zip; charset=binary")

    assert decision.accepted
    assert decision.warnings == ()


def test_extension_only_policy_ignores_content_type() -> None:
    decision = build_validator(content_types=None).validate("photos.zip", "image/png")

    assert decision.accepted
    assert decision.warnings == ()


def test_declared_length_over_limit_is_too_large() -> None:
    decision = build_validator(max_bytes=100).validate("photos.zip", None, 101)

    assert decision.reason is FailureReason.TOO_LARGE


def test_absent_declared_length_is_accepted() -> None:
    assert build_validator(max_bytes=100).validate("photos.zip", None, None).accepted


def test_request_length_of_four_gigabytes_is_rejected_up_front() -> None:
    decision = build_validator(max_bytes=100 * MB).check_declared_length(4 * 1024 * MB)

    assert not decision.accepted
    assert decision.reason is FailureReason.TOO_LARGE


def test_request_length_allows_multipart_envelope() -> None:
    validator = build_validator(max_bytes=100 * MB)

    assert validator.check_declared_length(100 * MB + 1024).accepted
    assert validator.check_declared_length(None).accepted
