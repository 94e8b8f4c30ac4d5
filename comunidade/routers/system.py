"""System endpoints."""

from __future__ import annotations

import time

from fastapi import APIRouter

from .. import schemas

router = APIRouter(tags=["System"])

_START_TIME = time.time()


@router.get("/healthz", response_model=schemas.HealthResponse)
def healthz() -> schemas.HealthResponse:
    """Liveness check."""
    return schemas.HealthResponse(status="ok", uptime_s=round(time.time() - _START_TIME, 3))
