"""Upload orchestration: gate, validate, stream, hash, record."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

from starlette.requests import ClientDisconnect

from ..auth.auth_service import AccessGate, RateLimitedError, UnauthenticatedError
from ..exceptions import RepositoryError
from ..files.files_repository import StoredFileRepository
from .ingest_errors import (
    PayloadTooLargeError,
    UnsupportedTypeError,
    UploadError,
    UploadIOError,
    UploadTimeoutError,
)
from .ingest_models import (
    FailureReason,
    FilePart,
    StoredFile,
    UploadRequest,
    UploadResult,
    UploadStage,
    ValidationDecision,
)
from .multipart import MultipartEventStream
from .stream_ingestor import StreamIngestor
from .validation import UploadValidator

logger = logging.getLogger(__name__)

AUTH_REQUIRED_MESSAGE = "Authentication required"
INTERNAL_ERROR_MESSAGE = "Internal server error"


@dataclass(slots=True)
class _Lifecycle:
    client_address: str
    stage: UploadStage = UploadStage.RECEIVED
    warnings: list[str] = field(default_factory=list)

    def advance(self, stage: UploadStage) -> None:
        self.stage = stage
        logger.debug(
            "upload.stage",
            extra={"stage": stage.value, "client_ip": self.client_address},
        )

    def fail(self, reason: FailureReason, message: str, retry_after: int | None = None) -> UploadResult:
        logger.warning(
            "upload.failed",
            extra={
                "failed_stage": self.stage.value,
                "failure_reason": reason.value,
                "client_ip": self.client_address,
            },
        )
        return UploadResult(
            stage=UploadStage.FAILED,
            reason=reason,
            message=message,
            retry_after=retry_after,
            warnings=self.warnings,
        )


def raise_for_decision(decision: ValidationDecision) -> None:
    if decision.accepted:
        return
    if decision.reason is FailureReason.TOO_LARGE:
        raise PayloadTooLargeError(decision.message)
    raise UnsupportedTypeError(decision.message)


@dataclass(slots=True)
class UploadService:
    """Run one upload request through its lifecycle.

    ``received -> rate_checked -> authorized -> validated -> streaming ->
    hashed -> responded``; any failure ends in ``failed`` with a reason.
    Holds no per-request state between calls.
    """

    gate: AccessGate
    validator: UploadValidator
    ingestor: StreamIngestor
    repo: StoredFileRepository | None = None
    timeout_seconds: float | None = 600.0

    async def handle(self, request: UploadRequest) -> UploadResult:
        lifecycle = _Lifecycle(client_address=request.client_address)
        try:
            self.gate.rate_limit(request.client_address)
            lifecycle.advance(UploadStage.RATE_CHECKED)

            self.gate.authorize(request.token)
            lifecycle.advance(UploadStage.AUTHORIZED)

            raise_for_decision(self.validator.check_declared_length(request.declared_length))

            def accept_part(part: FilePart) -> None:
                decision = self.validator.validate(part.filename, part.content_type)
                raise_for_decision(decision)
                lifecycle.warnings.extend(decision.warnings)
                lifecycle.advance(UploadStage.VALIDATED)
                lifecycle.advance(UploadStage.STREAMING)

            events = MultipartEventStream(request.body, request.content_type)
            async with asyncio.timeout(self.timeout_seconds):
                stored = await self.ingestor.ingest(
                    events,
                    max_bytes=self.validator.policy.max_bytes,
                    accept_part=accept_part,
                )
            lifecycle.advance(UploadStage.HASHED)
        except RateLimitedError as exc:
            return lifecycle.fail(
                FailureReason.TOO_MANY_REQUESTS,
                "Too many upload attempts, try again later",
                retry_after=exc.retry_after,
            )
        except UnauthenticatedError:
            return lifecycle.fail(FailureReason.UNAUTHENTICATED, AUTH_REQUIRED_MESSAGE)
        except UploadError as exc:
            return lifecycle.fail(exc.reason, str(exc))
        except TimeoutError:
            error = UploadTimeoutError("Upload timed out")
            return lifecycle.fail(error.reason, str(error))
        except ClientDisconnect:
            error = UploadIOError("Client disconnected during upload")
            return lifecycle.fail(error.reason, str(error))
        except Exception:
            logger.exception(
                "upload.unexpected_error",
                extra={"failed_stage": lifecycle.stage.value, "client_ip": request.client_address},
            )
            return lifecycle.fail(FailureReason.INTERNAL_ERROR, INTERNAL_ERROR_MESSAGE)

        self._record(stored, request.client_address)
        lifecycle.advance(UploadStage.RESPONDED)
        logger.info(
            "upload.completed",
            extra={
                "stored_name": stored.filename,
                "original_name": stored.original_name,
                "size_bytes": stored.size_bytes,
                "client_ip": request.client_address,
            },
        )
        return UploadResult(stage=lifecycle.stage, stored=stored, warnings=lifecycle.warnings)

    def _record(self, stored: StoredFile, client_address: str) -> None:
        if self.repo is None:
            return
        try:
            self.repo.add(stored, client_address=client_address)
        except RepositoryError:
            # the file itself is committed; listings fall back to the stored name
            logger.exception("upload.metadata.record_failed", extra={"stored_name": stored.filename})
