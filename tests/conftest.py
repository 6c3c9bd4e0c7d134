"""Shared test fixtures for the auth gateway."""

import json
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any

import httpx
import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from authgw.core.app import create_app
from authgw.crypto.keys import generate_rsa_keypair, load_key_pair
from authgw.crypto.keystore import KeyStore
from authgw.crypto.types import KeyPair, SigningKeyData
from authgw.db.base import BaseEntity

GATEWAY_URL = "https://gateway.test"
FRONTEND_URL = "https://frontend.test"
COORDINATOR_URL = "https://coordinator.test"
GOOGLE_ISSUER = "https://accounts.google.test"
OPERATOR_TOKEN = "operator-secret"

KID_A = "auth-key-2025-01"
KID_B = "auth-key-2025-02"
KID_C = "auth-key-2025-03"

GOOGLE_METADATA = {
    "issuer": GOOGLE_ISSUER,
    "authorization_endpoint": f"{GOOGLE_ISSUER}/o/oauth2/v2/auth",
    "token_endpoint": "https://oauth2.google.test/token",
    "userinfo_endpoint": "https://openidconnect.google.test/v1/userinfo",
    "jwks_uri": "https://www.google.test/oauth2/v3/certs",
    "code_challenge_methods_supported": ["plain", "S256"],
}


@pytest.fixture(scope="session")
def key_a() -> SigningKeyData:
    return generate_rsa_keypair(KID_A)


@pytest.fixture(scope="session")
def key_b() -> SigningKeyData:
    return generate_rsa_keypair(KID_B)


@pytest.fixture(scope="session")
def key_c() -> SigningKeyData:
    return generate_rsa_keypair(KID_C)


def as_pair(data: SigningKeyData) -> KeyPair:
    return load_key_pair(data.kid, data.private_key_pem, data.public_key_pem)


@pytest.fixture
def key_store(key_a: SigningKeyData) -> KeyStore:
    """A store holding key A as the active key."""
    store = KeyStore()
    store.add(as_pair(key_a), make_active=True)
    return store


@pytest.fixture
async def session_factory() -> AsyncIterator[async_sessionmaker[AsyncSession]]:
    """In-memory SQLite session factory with the audit schema created."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(BaseEntity.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@dataclass
class FakeUpstreams:
    """Identity providers, the Coordinator and the frontend behind MockTransport."""

    google_email: str | None = "ada@example.com"
    github_emails: list[dict[str, Any]] = field(
        default_factory=lambda: [
            {"email": "ada-alt@example.com", "primary": False},
            {"email": "ada@example.com", "primary": True},
        ]
    )
    linkedin_email: str | None = "ada@example.com"
    token_status: int = 200
    directory_status: int = 200
    directory_body: Any = field(
        default_factory=lambda: {
            "user_id": "user-1",
            "organization_id": "org-1",
            "roles": ["admin"],
        }
    )
    directory_error: Exception | None = None
    discovery_status: int = 200
    requests: list[httpx.Request] = field(default_factory=list)

    def paths(self, host: str) -> list[str]:
        return [r.url.path for r in self.requests if r.url.host == host]

    def last(self, host: str, path: str) -> httpx.Request:
        matches = [r for r in self.requests if r.url.host == host and r.url.path == path]
        assert matches, f"no request to {host}{path}"
        return matches[-1]

    def _token(self, token: str) -> httpx.Response:
        if self.token_status != 200:
            return httpx.Response(self.token_status, json={"error": "invalid_grant"})
        return httpx.Response(200, json={"access_token": token, "token_type": "Bearer"})

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        host, path = request.url.host, request.url.path

        if host == "accounts.google.test" and path == "/.well-known/openid-configuration":
            if self.discovery_status != 200:
                return httpx.Response(self.discovery_status)
            return httpx.Response(200, json=GOOGLE_METADATA)
        if host == "oauth2.google.test" and path == "/token":
            return self._token("google-access-token")
        if host == "openidconnect.google.test" and path == "/v1/userinfo":
            body: dict[str, Any] = {"sub": "google-sub-1", "name": "Ada"}
            if self.google_email:
                body["email"] = self.google_email
            return httpx.Response(200, json=body)

        if host == "github.com" and path == "/login/oauth/access_token":
            return self._token("github-access-token")
        if host == "api.github.com" and path == "/user":
            return httpx.Response(200, json={"id": 42, "login": "ada", "email": None})
        if host == "api.github.com" and path == "/user/emails":
            return httpx.Response(200, json=self.github_emails)

        if host == "www.linkedin.com" and path == "/oauth/v2/accessToken":
            return self._token("linkedin-access-token")
        if host == "api.linkedin.com" and path == "/v2/userinfo":
            info: dict[str, Any] = {"sub": "li-1", "name": "Ada"}
            if self.linkedin_email:
                info["email"] = self.linkedin_email
            return httpx.Response(200, json=info)

        if host == "coordinator.test" and path == "/api/fill-content-metrics":
            if self.directory_error is not None:
                raise self.directory_error
            content = self.directory_body
            if not isinstance(content, str):
                content = json.dumps(content)
            return httpx.Response(self.directory_status, content=content.encode())

        if host == "frontend.test" and path == "/logout":
            return httpx.Response(200, json={"ok": True})

        return httpx.Response(404, json={"error": "unexpected upstream call"})


@pytest.fixture
def upstreams() -> FakeUpstreams:
    return FakeUpstreams()


@pytest.fixture
async def upstream_client(upstreams: FakeUpstreams) -> AsyncIterator[httpx.AsyncClient]:
    """Outbound HTTP client whose every request is answered by ``upstreams``."""
    async with httpx.AsyncClient(transport=httpx.MockTransport(upstreams.handler)) as ac:
        yield ac


@pytest.fixture
def gateway_env(monkeypatch: pytest.MonkeyPatch, key_a: SigningKeyData) -> None:
    """Production-mode configuration with key A in env slot 1."""
    env = {
        "AUTH_ENVIRONMENT": "production",
        "AUTH_BACKEND_URL": GATEWAY_URL,
        "AUTH_FRONTEND_URL": FRONTEND_URL,
        "AUTH_OPERATOR_TOKEN": OPERATOR_TOKEN,
        "AUTH_LOG_LEVEL": "warning",
        "JWT_PRIVATE_KEY_1": key_a.private_key_pem.replace("\n", "\\n"),
        "JWT_PUBLIC_KEY_1": key_a.public_key_pem.replace("\n", "\\n"),
        "JWT_KEY_ID_1": KID_A,
        "GOOGLE_CLIENT_ID": "google-client",
        "GOOGLE_CLIENT_SECRET": "google-secret",
        "GOOGLE_ISSUER_URL": GOOGLE_ISSUER,
        "GITHUB_CLIENT_ID": "github-client",
        "GITHUB_CLIENT_SECRET": "github-secret",
        "LINKEDIN_CLIENT_ID": "linkedin-client",
        "LINKEDIN_CLIENT_SECRET": "linkedin-secret",
        "COORDINATOR_URL": COORDINATOR_URL,
    }
    for name, value in env.items():
        monkeypatch.setenv(name, value)
    for name in (
        "JWT_PRIVATE_KEY_2",
        "JWT_PUBLIC_KEY_2",
        "JWT_ACTIVE_KID",
        "JWT_ENCRYPTION_KEY",
        "JWT_PRIVATE_KEY_NEW",
        "JWT_PUBLIC_KEY_NEW",
        "JWT_NEW_KID",
        "COORDINATOR_MOCK_MODE",
        "COORDINATOR_API_KEY",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def app(
    gateway_env: None,
    upstream_client: httpx.AsyncClient,
    session_factory: async_sessionmaker[AsyncSession],
) -> FastAPI:
    """A fully wired app whose upstream calls hit ``upstreams``."""
    return create_app(http_client=upstream_client, session_factory=session_factory)


@pytest.fixture
async def client(app: FastAPI) -> AsyncIterator[AsyncClient]:
    """Create an httpx test client against the app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url=GATEWAY_URL) as ac:
        yield ac
    await app.state.gateway.notifier.aclose()


def operator_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {OPERATOR_TOKEN}"}
