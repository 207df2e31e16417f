"""HTTP routes for upload operations."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse

from ..api.errors import ApiError, rate_limited_error, unauthorized_error
from ..auth.auth_dependencies import client_address, extract_token
from .ingest_models import FailureReason, UploadRequest, UploadResult
from .ingest_service import UploadService

router = APIRouter(tags=["upload"])

STATUS_BY_REASON: dict[FailureReason, int] = {
    FailureReason.UNSUPPORTED_TYPE: status.HTTP_400_BAD_REQUEST,
    FailureReason.UNEXPECTED_FIELD: status.HTTP_400_BAD_REQUEST,
    FailureReason.NO_FILE: status.HTTP_400_BAD_REQUEST,
    FailureReason.INVALID_REQUEST: status.HTTP_400_BAD_REQUEST,
    FailureReason.UNAUTHENTICATED: status.HTTP_401_UNAUTHORIZED,
    FailureReason.TOO_LARGE: status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
    FailureReason.TOO_MANY_REQUESTS: status.HTTP_429_TOO_MANY_REQUESTS,
    FailureReason.IO_FAILURE: status.HTTP_500_INTERNAL_SERVER_ERROR,
    FailureReason.INTERNAL_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def get_upload_service(request: Request) -> UploadService:
    """Fetch upload service from application state."""
    try:
        return request.app.state.upload_service  # type: ignore[attr-defined]
    except AttributeError as exc:  # pragma: no cover
        raise RuntimeError("UploadService is not configured") from exc


def _declared_length(request: Request) -> int | None:
    raw = request.headers.get("content-length")
    if raw is None:
        return None
    try:
        value = int(raw)
    except ValueError:
        return None
    return value if value >= 0 else None


def to_api_error(result: UploadResult) -> ApiError:
    reason = result.reason or FailureReason.INTERNAL_ERROR
    if reason is FailureReason.TOO_MANY_REQUESTS:
        return rate_limited_error(result.retry_after or 1)
    if reason is FailureReason.UNAUTHENTICATED:
        return unauthorized_error(result.message)
    return ApiError(STATUS_BY_REASON[reason], reason.value, result.message)


@router.post("/upload")
async def upload(
    request: Request,
    service: UploadService = Depends(get_upload_service),
) -> JSONResponse:
    """Stream a single archive to disk and describe the stored file."""
    result = await service.handle(
        UploadRequest(
            client_address=client_address(request),
            content_type=request.headers.get("content-type"),
            declared_length=_declared_length(request),
            body=request.stream(),
            token=extract_token(request),
        )
    )
    if not result.ok or result.stored is None:
        raise to_api_error(result)

    stored = result.stored
    return JSONResponse(
        {
            "success": True,
            "message": "File uploaded successfully",
            "filename": stored.filename,
            "originalName": stored.original_name,
            "size": stored.size_bytes,
            "hash": stored.sha256,
            "uploadPath": str(stored.path),
            "uploadTime": stored.created_at.isoformat(),
            "warnings": result.warnings,
        }
    )
