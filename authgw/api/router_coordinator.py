"""Inbound Coordinator requests: ``{payload: {action, ...}, response: {...}}``.

The Coordinator sends a response template; handlers fill only the fields
that the template already contains and the filled template is returned.
"""

import logging
from collections.abc import Awaitable, Callable
from enum import StrEnum
from typing import Any

from fastapi import APIRouter, Request
from starlette.responses import JSONResponse

from authgw.api.deps import GatewayDep
from authgw.core.container import Gateway
from authgw.core.errors import HTTP_BAD_REQUEST, HTTP_SERVER_ERROR
from authgw.directory.coordinator import decode_envelope

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["coordinator"])


class CoordinatorAction(StrEnum):
    GET_JWKS = "get-jwks"
    PERFORM_LOGOUT = "perform-logout"


Handler = Callable[[Gateway, dict[str, Any], dict[str, Any]], Awaitable[None]]


def _fill(response: dict[str, Any], **values: Any) -> None:
    """Set only the keys the caller's template declares."""
    for key, value in values.items():
        if key in response:
            response[key] = value


async def _handle_get_jwks(
    gateway: Gateway, _payload: dict[str, Any], response: dict[str, Any]
) -> None:
    document = gateway.jwks.document().model_dump()
    _fill(response, jwks=document, keys=document["keys"])
    logger.info("Coordinator get-jwks completed", extra={"action": "get-jwks"})


async def _handle_perform_logout(
    gateway: Gateway, payload: dict[str, Any], response: dict[str, Any]
) -> None:
    user_id = payload.get("user_id")
    await gateway.audit.record_logout(user_id if isinstance(user_id, str) else None)
    if user_id and isinstance(user_id, str):
        gateway.notifier.notify_logout(user_id)
    _fill(response, message="Logout completed successfully", status="success")
    logger.info(
        "Coordinator perform-logout completed",
        extra={"action": "perform-logout", "user_id": user_id},
    )


_HANDLERS: dict[CoordinatorAction, Handler] = {
    CoordinatorAction.GET_JWKS: _handle_get_jwks,
    CoordinatorAction.PERFORM_LOGOUT: _handle_perform_logout,
}


def _as_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


@router.post("/fill-content-metrics")
async def fill_content_metrics(request: Request, gateway: GatewayDep) -> JSONResponse:
    """POST /api/fill-content-metrics -- dispatch a Coordinator action."""
    try:
        body = decode_envelope(await request.body())
    except ValueError:
        logger.warning("Coordinator request body is not valid JSON")
        return JSONResponse(
            {"error": "Invalid JSON in request body"}, status_code=HTTP_BAD_REQUEST
        )
    if not isinstance(body, dict):
        return JSONResponse(
            {"error": "Invalid JSON in request body"}, status_code=HTTP_BAD_REQUEST
        )

    payload = _as_dict(body.get("payload"))
    response = _as_dict(body.get("response"))
    action = payload.get("action")
    if not action:
        logger.warning("Coordinator request without action")
        _fill(response, error="No action specified")
        return JSONResponse(response, status_code=HTTP_BAD_REQUEST)

    try:
        handler = _HANDLERS[CoordinatorAction(action)]
    except ValueError:
        logger.warning("Unknown coordinator action: %s", action)
        _fill(response, error=f"Unknown action: {action}")
        return JSONResponse(response, status_code=HTTP_BAD_REQUEST)

    try:
        await handler(gateway, payload, response)
    except Exception as exc:
        logger.exception("Coordinator action %s failed", action)
        _fill(response, error=str(exc) or "Internal server error")
        return JSONResponse(response, status_code=HTTP_SERVER_ERROR)
    return JSONResponse(response)
