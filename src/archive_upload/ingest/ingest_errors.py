"""Domain-specific exceptions for the upload pipeline."""

from .ingest_models import FailureReason


class UploadError(Exception):
    """Base class for upload failures; carries the reported reason."""

    reason: FailureReason = FailureReason.INTERNAL_ERROR


class UnsupportedTypeError(UploadError):
    """Raised when extension or content-type is not allowed."""

    reason = FailureReason.UNSUPPORTED_TYPE


class PayloadTooLargeError(UploadError):
    """Raised when declared or observed size exceeds the ceiling."""

    reason = FailureReason.TOO_LARGE


class UnexpectedFieldError(UploadError):
    """Raised when a request carries more than one file part."""

    reason = FailureReason.UNEXPECTED_FIELD


class MissingFileError(UploadError):
    """Raised when the body holds no file part."""

    reason = FailureReason.NO_FILE


class MalformedBodyError(UploadError):
    """Raised when the multipart body cannot be parsed."""

    reason = FailureReason.INVALID_REQUEST


class UploadIOError(UploadError):
    """Raised on disk, permission or connection failures while streaming."""

    reason = FailureReason.IO_FAILURE


class UploadTimeoutError(UploadIOError):
    """Raised when an upload exceeds its wall-clock budget."""
