"""Browser login endpoints: provider redirect, callback, session info, logout."""

import logging
from typing import Annotated

from fastapi import APIRouter, Query, Request
from fastapi.responses import RedirectResponse
from starlette.responses import JSONResponse, Response

from authgw.api.deps import GatewayDep
from authgw.api.responses import (
    HTTP_FOUND,
    error_response,
    frontend_error_redirect,
    frontend_redirect,
)
from authgw.api.schemas import MessageResponse, SessionUserResponse
from authgw.core.errors import GatewayError, TokenError
from authgw.oauth.session import OAuthCookieJar
from authgw.oauth.types import CallbackParams

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])

ACCESS_TOKEN_COOKIE = "access_token"
SUCCESS_PATH = "/auth/success"


def _extract_token(request: Request) -> str | None:
    """Session token from the access_token cookie, else a Bearer header."""
    cookie = request.cookies.get(ACCESS_TOKEN_COOKIE)
    if cookie:
        return cookie
    auth = request.headers.get("Authorization", "")
    if auth.startswith("Bearer "):
        return auth[len("Bearer ") :] or None
    return None


def _set_session_cookie(response: Response, token: str, max_age: int) -> None:
    response.set_cookie(
        ACCESS_TOKEN_COOKIE,
        token,
        max_age=max_age,
        path="/",
        secure=True,
        httponly=True,
        samesite="none",
    )


@router.get("/login/{provider}", response_model=None)
async def login(
    provider: str, request: Request, gateway: GatewayDep
) -> RedirectResponse | JSONResponse:
    """GET /login/{provider} -- redirect the browser to the identity provider."""
    jar = OAuthCookieJar(request.cookies, secure=gateway.settings.is_production)
    try:
        redirect = await gateway.flow.initiate(provider, jar)
    except GatewayError as exc:
        return error_response(exc)
    response = RedirectResponse(url=redirect.authorization_url, status_code=HTTP_FOUND)
    jar.apply_to(response)
    return response


@router.get("/auth/{provider}/callback", response_model=None)
async def callback(
    provider: str,
    request: Request,
    params: Annotated[CallbackParams, Query()],
    gateway: GatewayDep,
) -> RedirectResponse | JSONResponse:
    """GET /auth/{provider}/callback -- finish the login and set the session cookie."""
    settings = gateway.settings
    jar = OAuthCookieJar(request.cookies, secure=settings.is_production)
    response: RedirectResponse | JSONResponse
    try:
        result = await gateway.flow.handle_callback(provider, params, jar)
    except GatewayError as exc:
        if exc.redirect_to_frontend:
            response = frontend_error_redirect(settings.frontend_url, exc.message)
        else:
            response = error_response(exc)
        jar.apply_to(response)
        return response

    response = frontend_redirect(settings.frontend_url, SUCCESS_PATH)
    _set_session_cookie(response, result.token, gateway.authority.lifetime_seconds)
    jar.apply_to(response)
    return response


@router.get("/auth/me", response_model=None)
async def me(request: Request, gateway: GatewayDep) -> SessionUserResponse | JSONResponse:
    """GET /auth/me -- claims of the current session token."""
    token = _extract_token(request)
    if not token:
        return error_response(TokenError("No token provided"))
    try:
        claims = gateway.authority.verify(token)
    except TokenError as exc:
        return error_response(exc)
    return SessionUserResponse(
        sub=claims.sub,
        email=claims.email,
        organization_id=claims.organization_id,
        roles=claims.roles,
        exp=claims.exp,
    )


@router.post("/logout")
async def logout(
    request: Request, response: Response, gateway: GatewayDep
) -> MessageResponse:
    """POST /logout -- clear the session cookie and stamp the audit record."""
    token = _extract_token(request)
    if token:
        try:
            claims = gateway.authority.verify(token, allow_expired=True)
        except TokenError as exc:
            logger.info("Logout with unverifiable token: %s", exc.error_code)
        else:
            await gateway.audit.record_logout(claims.sub)

    response.delete_cookie(
        ACCESS_TOKEN_COOKIE,
        path="/",
        secure=True,
        httponly=True,
        samesite="none",
    )
    return MessageResponse(message="Logged out successfully")
