"""Liveness endpoint."""

from datetime import UTC, datetime

from fastapi import APIRouter

from authgw.api.deps import GatewayDep
from authgw.api.schemas import HealthResponse

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(gateway: GatewayDep) -> HealthResponse:
    """GET /health -- report that the process is serving."""
    return HealthResponse(
        service=gateway.settings.service_name,
        timestamp=datetime.now(UTC),
    )
