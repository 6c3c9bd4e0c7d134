"""FastAPI dependencies: the per-app gateway and operator authentication."""

import secrets
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from authgw.core.container import Gateway

_security = HTTPBearer(auto_error=False)


def get_gateway(request: Request) -> Gateway:
    return request.app.state.gateway


GatewayDep = Annotated[Gateway, Depends(get_gateway)]


async def require_operator_token(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(_security)],
    gateway: GatewayDep,
) -> str:
    """Verify the AUTH_OPERATOR_TOKEN Bearer token."""
    expected = gateway.settings.operator_token
    if not expected:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        )
    if credentials is None or not secrets.compare_digest(
        credentials.credentials.encode("utf-8"), expected.encode("utf-8")
    ):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
        )
    return credentials.credentials


OperatorToken = Annotated[str, Depends(require_operator_token)]
