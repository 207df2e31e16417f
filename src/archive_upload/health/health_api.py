"""Liveness and gate-state probes."""

from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request

from ..auth.auth_dependencies import get_access_gate
from ..auth.auth_service import AccessGate

router = APIRouter(tags=["health"])


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("/health")
def health() -> dict:
    return {"status": "ok", "timestamp": _timestamp()}


@router.get("/status")
def server_status(request: Request, gate: AccessGate = Depends(get_access_gate)) -> dict:
    limits = request.app.state.config.upload_limits
    return {
        "status": "ok",
        "timestamp": _timestamp(),
        "authRequired": gate.guarded,
        "maxBytes": limits.max_bytes,
        "allowedExtensions": sorted(limits.allowed_extensions),
    }
