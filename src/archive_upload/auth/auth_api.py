"""Authentication API endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ..api.errors import ApiError, rate_limited_error
from .auth_dependencies import SESSION_COOKIE, client_address, get_access_gate
from .auth_service import AccessGate, InvalidCredentialsError, RateLimitedError

router = APIRouter(tags=["auth"])


class AuthRequest(BaseModel):
    password: str = ""


@router.post("/auth")
def authenticate(
    payload: AuthRequest,
    request: Request,
    gate: AccessGate = Depends(get_access_gate),
) -> JSONResponse:
    try:
        token = gate.authenticate(payload.password, client_ip=client_address(request))
    except RateLimitedError as exc:
        raise rate_limited_error(exc.retry_after) from exc
    except InvalidCredentialsError as exc:
        raise ApiError(status.HTTP_401_UNAUTHORIZED, "unauthenticated", "Invalid password") from exc

    if token is None:
        return JSONResponse({"success": True, "token": None, "authRequired": False})

    body: dict[str, object] = {"success": True, "token": token.value, "authRequired": True}
    max_age = None
    if token.expires_at is not None:
        max_age = int((token.expires_at - token.created_at).total_seconds())
        body["expiresIn"] = max_age
    response = JSONResponse(body)
    response.set_cookie(
        SESSION_COOKIE,
        token.value,
        max_age=max_age,
        httponly=True,
        samesite="strict",
    )
    return response
