"""FastAPI application factory for the auth gateway."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from starlette.responses import JSONResponse

from authgw.api.responses import error_response
from authgw.api.router_coordinator import router as coordinator_router
from authgw.api.routes_auth import router as auth_router
from authgw.api.routes_health import router as health_router
from authgw.api.routes_jwks import router as jwks_router
from authgw.api.routes_rotation import router as rotation_router
from authgw.core.container import build_gateway
from authgw.core.errors import GatewayError
from authgw.core.logging import setup_logging
from authgw.core.settings import AuthSettings


def create_app(
    *,
    http_client: httpx.AsyncClient | None = None,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
) -> FastAPI:
    """Build and configure the FastAPI application."""
    settings = AuthSettings()
    setup_logging(settings.log_level, json_format=settings.log_json)
    gateway = build_gateway(
        settings=settings,
        http_client=http_client,
        session_factory=session_factory,
    )

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        yield
        await gateway.aclose()

    app = FastAPI(
        title="Auth Gateway",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.gateway = gateway

    origins = settings.get_cors_origin_list()
    if origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_credentials=True,
            allow_methods=["GET", "POST"],
            allow_headers=["Authorization", "Content-Type", "X-API-Key"],
        )

    @app.exception_handler(GatewayError)
    async def _gateway_error(_request: Request, exc: GatewayError) -> JSONResponse:
        return error_response(exc)

    app.include_router(health_router)
    app.include_router(jwks_router)
    app.include_router(auth_router)
    app.include_router(rotation_router)
    app.include_router(coordinator_router)

    return app
