"""Data structures for the upload pipeline."""

from __future__ import annotations

from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from pathlib import Path


class UploadStage(StrEnum):
    """Lifecycle stages of a single upload request."""

    RECEIVED = "received"
    RATE_CHECKED = "rate_checked"
    AUTHORIZED = "authorized"
    VALIDATED = "validated"
    STREAMING = "streaming"
    HASHED = "hashed"
    RESPONDED = "responded"
    FAILED = "failed"


class FailureReason(StrEnum):
    """Failure reasons reported by the upload contract."""

    UNSUPPORTED_TYPE = "unsupported_type"
    TOO_LARGE = "too_large"
    UNEXPECTED_FIELD = "unexpected_field"
    NO_FILE = "no_file"
    INVALID_REQUEST = "invalid_request"
    UNAUTHENTICATED = "unauthenticated"
    TOO_MANY_REQUESTS = "too_many_requests"
    IO_FAILURE = "io_failure"
    INTERNAL_ERROR = "internal_error"


class HashStrategy(StrEnum):
    INLINE = "inline"
    TWO_PASS = "two_pass"


@dataclass(slots=True, frozen=True)
class ValidationDecision:
    """Outcome of checking a file against the validation policy."""

    accepted: bool
    reason: FailureReason | None = None
    message: str = ""
    warnings: tuple[str, ...] = ()

    @classmethod
    def accept(cls, *warnings: str) -> "ValidationDecision":
        return cls(accepted=True, warnings=tuple(warnings))

    @classmethod
    def reject(cls, reason: FailureReason, message: str) -> "ValidationDecision":
        return cls(accepted=False, reason=reason, message=message)


@dataclass(slots=True, frozen=True)
class FilePart:
    """Headers of a multipart file part."""

    field_name: str
    filename: str
    content_type: str | None = None


@dataclass(slots=True, frozen=True)
class StoredFile:
    """A committed upload. Never mutated after creation."""

    filename: str
    path: Path
    original_name: str
    size_bytes: int
    sha256: str
    created_at: datetime
    content_type: str | None = None


@dataclass(slots=True)
class UploadRequest:
    """Transient view of one inbound upload request."""

    client_address: str
    content_type: str | None
    declared_length: int | None
    body: AsyncIterator[bytes]
    token: str | None = None


@dataclass(slots=True)
class UploadResult:
    """Structured result of the upload lifecycle."""

    stage: UploadStage
    stored: StoredFile | None = None
    reason: FailureReason | None = None
    message: str = ""
    retry_after: int | None = None
    warnings: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.stored is not None and self.reason is None
