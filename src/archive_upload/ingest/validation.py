"""Upload validation utilities."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..config import UploadLimits
from .ingest_models import FailureReason, ValidationDecision

logger = logging.getLogger(__name__)

COMPOUND_EXTENSION = ".tar.gz"
CONTENT_TYPE_MISMATCH = "content_type_mismatch"


def extract_extension(filename: str) -> str:
    """Return the lower-cased extension, treating ``.tar.gz`` as one unit."""
    basename = filename.replace("\\", "/").rsplit("/", 1)[-1].lower()
    if basename.endswith(COMPOUND_EXTENSION):
        return COMPOUND_EXTENSION
    _, dot, tail = basename.rpartition(".")
    if not dot:
        return ""
    return f".{tail}"


def _bare_mime(content_type: str | None) -> str:
    if not content_type:
        return ""
    return content_type.split(";", 1)[0].strip().lower()


@dataclass(slots=True, frozen=True)
class ValidationPolicy:
    allowed_extensions: frozenset[str]
    allowed_content_types: frozenset[str] | None
    max_bytes: int
    lenient_content_type: bool = False
    multipart_overhead_bytes: int = 0

    @classmethod
    def from_limits(cls, limits: UploadLimits) -> "ValidationPolicy":
        return cls(
            allowed_extensions=frozenset(ext.lower() for ext in limits.allowed_extensions),
            allowed_content_types=(
                None
                if limits.allowed_content_types is None
                else frozenset(mime.lower() for mime in limits.allowed_content_types)
            ),
            max_bytes=limits.max_bytes,
            lenient_content_type=limits.lenient_content_type,
            multipart_overhead_bytes=limits.multipart_overhead_bytes,
        )


@dataclass(slots=True)
class UploadValidator:
    """Decide whether a file may be stored. Performs no I/O."""

    policy: ValidationPolicy

    def validate(
        self,
        filename: str,
        declared_content_type: str | None,
        declared_length: int | None = None,
    ) -> ValidationDecision:
        extension = extract_extension(filename or "")
        if extension not in self.policy.allowed_extensions:
            logger.warning(
                "upload.validate.unsupported_extension",
                extra={"upload_filename": filename, "extension": extension},
            )
            allowed = ", ".join(sorted(self.policy.allowed_extensions))
            return ValidationDecision.reject(
                FailureReason.UNSUPPORTED_TYPE,
                f"Only compressed archives are accepted ({allowed})",
            )

        warnings: list[str] = []
        allowed_types = self.policy.allowed_content_types
        mime = _bare_mime(declared_content_type)
        if allowed_types is not None and mime not in allowed_types:
            if not self.policy.lenient_content_type:
                logger.warning(
                    "upload.validate.unsupported_content_type",
                    extra={"upload_filename": filename, "content_type": mime},
                )
                return ValidationDecision.reject(
                    FailureReason.UNSUPPORTED_TYPE,
                    f"Content type '{mime or 'unknown'}' is not accepted",
                )
            # browsers report archives inconsistently; extension already matched
            logger.warning(
                "upload.validate.content_type_mismatch",
                extra={"upload_filename": filename, "content_type": mime},
            )
            warnings.append(CONTENT_TYPE_MISMATCH)

        if declared_length is not None and declared_length > self.policy.max_bytes:
            return self._too_large(declared_length, self.policy.max_bytes)

        return ValidationDecision.accept(*warnings)

    def check_declared_length(self, request_length: int | None) -> ValidationDecision:
        """Judge a whole request's ``Content-Length`` before reading the body."""
        if request_length is None:
            return ValidationDecision.accept()
        ceiling = self.policy.max_bytes + self.policy.multipart_overhead_bytes
        if request_length > ceiling:
            return self._too_large(request_length, ceiling)
        return ValidationDecision.accept()

    def _too_large(self, size: int, limit: int) -> ValidationDecision:
        logger.warning(
            "upload.validate.declared_too_large",
            extra={"declared_bytes": size, "limit_bytes": limit},
        )
        return ValidationDecision.reject(
            FailureReason.TOO_LARGE,
            f"File too large. Maximum size: {format_megabytes(self.policy.max_bytes)}",
        )


def format_megabytes(size_bytes: int) -> str:
    return f"{size_bytes / 1024 / 1024:.2f} MB"
