"""Public JWKS endpoint."""

from fastapi import APIRouter, Response

from authgw.api.deps import GatewayDep
from authgw.crypto.types import JWKSResponse

router = APIRouter(tags=["jwks"])

JWKS_CACHE_CONTROL = "public, max-age=86400"


@router.get("/.well-known/jwks.json")
async def jwks(response: Response, gateway: GatewayDep) -> JWKSResponse:
    """JSON Web Key Set endpoint: every public key, active or retired."""
    response.headers["Cache-Control"] = JWKS_CACHE_CONTROL
    return gateway.jwks.document()
