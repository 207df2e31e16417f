"""Reusable error primitives for API exception handling."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping

from fastapi import Request, status
from fastapi.responses import JSONResponse


@dataclass(slots=True)
class ApiError(Exception):
    """Structured application-level error for HTTP handlers."""

    status_code: int
    code: str
    message: str
    headers: Mapping[str, str] | None = None

    def to_response(self) -> JSONResponse:
        """Materialise the error into a ``JSONResponse`` instance."""

        return JSONResponse(
            status_code=self.status_code,
            content={"success": False, "reason": self.code, "message": self.message},
            headers=dict(self.headers or {}),
        )


async def api_error_handler(_: Request, exc: ApiError) -> JSONResponse:
    """Convert :class:`ApiError` exceptions into JSON payloads."""

    return exc.to_response()


def unauthorized_error(message: str = "Authentication required") -> ApiError:
    """Return an :class:`ApiError` representing an authentication failure."""

    return ApiError(
        status.HTTP_401_UNAUTHORIZED,
        "unauthenticated",
        message,
        headers={"WWW-Authenticate": "Bearer"},
    )


def rate_limited_error(retry_after: int) -> ApiError:
    """Return an :class:`ApiError` for a client that exhausted its quota."""

    return ApiError(
        status.HTTP_429_TOO_MANY_REQUESTS,
        "too_many_requests",
        "Too many requests, try again later",
        headers={"Retry-After": str(max(1, retry_after))},
    )


def not_found_error(message: str) -> ApiError:
    """Return an :class:`ApiError` for a missing resource."""

    return ApiError(status.HTTP_404_NOT_FOUND, "not_found", message)


__all__ = [
    "ApiError",
    "api_error_handler",
    "not_found_error",
    "rate_limited_error",
    "unauthorized_error",
]
