"""Common authentication dependencies for FastAPI routers."""

from __future__ import annotations

from fastapi import Depends, Request

from ..api.errors import unauthorized_error
from .auth_service import AccessGate, UnauthenticatedError

SESSION_COOKIE = "upload_token"
TOKEN_QUERY_PARAM = "token"


def get_access_gate(request: Request) -> AccessGate:
    try:
        return request.app.state.access_gate  # type: ignore[attr-defined]
    except AttributeError as exc:  # pragma: no cover
        raise RuntimeError("AccessGate is not configured") from exc


def extract_token(request: Request) -> str | None:
    """Bearer header first, then ``?token=``, then the session cookie."""
    header = request.headers.get("authorization", "")
    scheme, _, credentials = header.partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()
    query_token = request.query_params.get(TOKEN_QUERY_PARAM)
    if query_token:
        return query_token
    return request.cookies.get(SESSION_COOKIE) or None


def client_address(request: Request) -> str:
    if request.client:
        return request.client.host
    return "unknown"


def require_listing_access(
    request: Request,
    gate: AccessGate = Depends(get_access_gate),
) -> None:
    """Enforce tokens on read-only routes when listing protection is on."""
    if not getattr(request.app.state, "protect_listing", True):
        return
    try:
        gate.authorize(extract_token(request))
    except UnauthenticatedError as exc:
        raise unauthorized_error() from exc


__all__ = [
    "SESSION_COOKIE",
    "client_address",
    "extract_token",
    "get_access_gate",
    "require_listing_access",
]
