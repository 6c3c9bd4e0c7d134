"""Operator-only key rotation endpoints."""

import os

from fastapi import APIRouter

from authgw.api.deps import GatewayDep, OperatorToken
from authgw.api.schemas import (
    ActivatePayload,
    PurgePayload,
    PurgeResponse,
    RotateResponse,
    RotationStatusResponse,
    StageResponse,
)
from authgw.core.errors import MissingKeyMaterial
from authgw.crypto.keys import dated_kid

router = APIRouter(prefix="/key-rotation", tags=["key-rotation"])

NEW_PRIVATE_KEY_ENV = "JWT_PRIVATE_KEY_NEW"
NEW_PUBLIC_KEY_ENV = "JWT_PUBLIC_KEY_NEW"
NEW_KID_ENV = "JWT_NEW_KID"


def _new_key_material() -> tuple[str, str, str]:
    """Read the incoming key from the environment at call time."""
    private_pem = os.environ.get(NEW_PRIVATE_KEY_ENV, "")
    public_pem = os.environ.get(NEW_PUBLIC_KEY_ENV, "")
    if not private_pem or not public_pem:
        raise MissingKeyMaterial()
    kid = os.environ.get(NEW_KID_ENV) or dated_kid()
    return kid, private_pem, public_pem


@router.post("/rotate")
async def rotate(gateway: GatewayDep, _token: OperatorToken) -> RotateResponse:
    """POST /key-rotation/rotate -- add the new key and sign with it."""
    kid, private_pem, public_pem = _new_key_material()
    result = gateway.rotation.rotate(kid, private_pem, public_pem)
    return RotateResponse(
        message="Key rotation completed successfully",
        previous_active=result.previous_active,
        new_active=result.new_active,
        total_keys=result.total_keys,
    )


@router.post("/stage")
async def stage(gateway: GatewayDep, _token: OperatorToken) -> StageResponse:
    """POST /key-rotation/stage -- publish the new key without activating it."""
    kid, private_pem, public_pem = _new_key_material()
    result = gateway.rotation.add_without_activating(kid, private_pem, public_pem)
    return StageResponse(
        message="Key staged; activate it once verifiers have refreshed JWKS",
        kid=result.kid,
        active_kid=result.active_kid,
        total_keys=result.total_keys,
    )


@router.post("/activate")
async def activate(
    payload: ActivatePayload, gateway: GatewayDep, _token: OperatorToken
) -> RotateResponse:
    """POST /key-rotation/activate -- promote a staged key."""
    result = gateway.rotation.activate(payload.kid)
    return RotateResponse(
        message="Key activated",
        previous_active=result.previous_active,
        new_active=result.new_active,
        total_keys=result.total_keys,
    )


@router.post("/purge")
async def purge(
    gateway: GatewayDep, _token: OperatorToken, payload: PurgePayload | None = None
) -> PurgeResponse:
    """POST /key-rotation/purge -- drop retired keys."""
    payload = payload or PurgePayload()
    result = gateway.rotation.purge(payload.kids_to_purge, payload.min_age_minutes)
    return PurgeResponse(
        message=f"Purged {len(result.purged)} key(s)",
        purged=result.purged,
        active_kid=result.active_kid,
        remaining=result.remaining,
    )


@router.get("/status")
async def rotation_status(
    gateway: GatewayDep, _token: OperatorToken
) -> RotationStatusResponse:
    """GET /key-rotation/status -- active kid and every loaded kid."""
    state = gateway.rotation.status()
    return RotationStatusResponse(
        active_kid=state.active_kid,
        available_kids=state.available_kids,
        key_count=state.key_count,
        timestamp=state.timestamp,
    )
