"""Tests for the browser login endpoints."""

from urllib.parse import parse_qs, urlsplit

from fastapi import FastAPI
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from authgw.crypto.types import IdentityClaims
from authgw.db.models_audit import AuditLogEntity
from authgw.oauth.types import ProviderKind
from conftest import FRONTEND_URL, GOOGLE_ISSUER, FakeUpstreams


def _cookies_set(response) -> dict[str, str]:
    """Map cookie name to its full Set-Cookie header."""
    headers = response.headers.get_list("set-cookie")
    return {h.split("=", 1)[0]: h for h in headers}


async def _login(client: AsyncClient, provider: str) -> str:
    response = await client.get(f"/login/{provider}")
    assert response.status_code == 302
    return parse_qs(urlsplit(response.headers["location"]).query)["state"][0]


class TestLogin:
    """Tests for GET /login/{provider}."""

    async def test_google_redirect_sets_session_cookies(self, client: AsyncClient) -> None:
        response = await client.get("/login/google")
        assert response.status_code == 302
        assert response.headers["location"].startswith(f"{GOOGLE_ISSUER}/o/oauth2/v2/auth?")
        cookies = _cookies_set(response)
        assert set(cookies) == {"oauth_google_state", "oauth_google_code_verifier"}
        for header in cookies.values():
            lowered = header.lower()
            assert "httponly" in lowered
            assert "secure" in lowered
            assert "samesite=lax" in lowered

    async def test_github_redirect(self, client: AsyncClient) -> None:
        response = await client.get("/login/github")
        assert response.status_code == 302
        assert response.headers["location"].startswith("https://github.com/login/oauth/authorize?")

    async def test_unsupported_provider(self, client: AsyncClient) -> None:
        response = await client.get("/login/myspace")
        assert response.status_code == 400
        assert response.json()["error"] == "unsupported_provider"

    async def test_provider_not_configured(self, app: FastAPI, client: AsyncClient) -> None:
        app.state.gateway.flow._providers.pop(ProviderKind.GOOGLE)
        response = await client.get("/login/google")
        assert response.status_code == 500
        assert response.json()["error"] == "provider_not_configured"

    async def test_discovery_outage(self, client: AsyncClient, upstreams: FakeUpstreams) -> None:
        upstreams.discovery_status = 503
        response = await client.get("/login/google")
        assert response.status_code == 503
        assert "set-cookie" not in response.headers


class TestCallback:
    """Tests for GET /auth/{provider}/callback."""

    async def test_success_sets_access_token(self, client: AsyncClient) -> None:
        state = await _login(client, "google")
        response = await client.get(
            "/auth/google/callback", params={"code": "auth-code", "state": state}
        )
        assert response.status_code == 302
        assert response.headers["location"] == f"{FRONTEND_URL}/auth/success"
        cookies = _cookies_set(response)
        access = cookies["access_token"].lower()
        assert "httponly" in access
        assert "secure" in access
        assert "samesite=none" in access
        assert "max-age=900" in access
        assert "max-age=0" in cookies["oauth_google_state"].lower()
        assert "max-age=0" in cookies["oauth_google_code_verifier"].lower()

    async def test_state_mismatch_is_json_and_clears_cookies(
        self, client: AsyncClient, upstreams: FakeUpstreams
    ) -> None:
        await _login(client, "google")
        response = await client.get(
            "/auth/google/callback", params={"code": "auth-code", "state": "forged"}
        )
        assert response.status_code == 400
        assert response.json() == {
            "error": "state_mismatch",
            "error_description": "Invalid state parameter",
        }
        cookies = _cookies_set(response)
        assert "access_token" not in cookies
        assert "max-age=0" in cookies["oauth_google_state"].lower()
        assert "/token" not in upstreams.paths("oauth2.google.test")

    async def test_not_provisioned_redirects_with_error(
        self, client: AsyncClient, upstreams: FakeUpstreams
    ) -> None:
        upstreams.directory_status = 404
        state = await _login(client, "google")
        response = await client.get(
            "/auth/google/callback", params={"code": "auth-code", "state": state}
        )
        assert response.status_code == 302
        location = response.headers["location"]
        assert location.startswith(f"{FRONTEND_URL}/?error=")
        assert parse_qs(urlsplit(location).query)["error"] == [
            "Account not provisioned. Contact your administrator."
        ]
        assert "access_token" not in _cookies_set(response)

    async def test_provider_error_redirects(self, client: AsyncClient) -> None:
        state = await _login(client, "github")
        response = await client.get(
            "/auth/github/callback",
            params={"state": state, "error": "access_denied"},
        )
        assert response.status_code == 302
        assert parse_qs(urlsplit(response.headers["location"]).query)["error"] == [
            "access_denied"
        ]

    async def test_directory_outage_redirects(
        self, client: AsyncClient, upstreams: FakeUpstreams
    ) -> None:
        upstreams.directory_status = 503
        state = await _login(client, "linkedin")
        response = await client.get(
            "/auth/linkedin/callback", params={"code": "c", "state": state}
        )
        assert response.status_code == 302
        assert parse_qs(urlsplit(response.headers["location"]).query)["error"] == [
            "Service temporarily unavailable. Please try again."
        ]

    async def test_linkedin_success(
        self, app: FastAPI, client: AsyncClient, upstreams: FakeUpstreams
    ) -> None:
        state = await _login(client, "linkedin")
        response = await client.get(
            "/auth/linkedin/callback", params={"code": "li-code", "state": state}
        )
        assert response.status_code == 302
        assert response.headers["location"] == f"{FRONTEND_URL}/auth/success"
        cookies = _cookies_set(response)
        assert "max-age=0" in cookies["oauth_linkedin_state"].lower()
        assert "oauth_linkedin_code_verifier" not in client.cookies
        assert "oauth_linkedin_state" not in client.cookies

        claims = app.state.gateway.authority.verify(client.cookies["access_token"])
        assert claims.sub == "user-1"
        assert claims.email == "ada@example.com"
        form = parse_qs(upstreams.last("www.linkedin.com", "/oauth/v2/accessToken").content.decode())
        assert form["code"] == ["li-code"]

    async def test_numeric_organization_id(
        self, app: FastAPI, client: AsyncClient, upstreams: FakeUpstreams
    ) -> None:
        upstreams.directory_body = {"user_id": "user-1", "organization_id": 42, "roles": []}
        state = await _login(client, "github")
        response = await client.get(
            "/auth/github/callback", params={"code": "c", "state": state}
        )
        assert response.status_code == 302
        assert response.headers["location"] == f"{FRONTEND_URL}/auth/success"
        cookies = _cookies_set(response)
        assert "max-age=0" in cookies["oauth_github_state"].lower()
        claims = app.state.gateway.authority.verify(client.cookies["access_token"])
        assert claims.organization_id == "42"

    async def test_missing_parameters(self, client: AsyncClient) -> None:
        response = await client.get("/auth/github/callback")
        assert response.status_code == 400
        assert response.json()["error"] == "missing_parameters"

    async def test_unsupported_provider(self, client: AsyncClient) -> None:
        response = await client.get("/auth/myspace/callback", params={"code": "c", "state": "s"})
        assert response.status_code == 400
        assert response.json()["error"] == "unsupported_provider"


class TestSessionEndpoints:
    """Tests for GET /auth/me and POST /logout."""

    async def test_me_with_bearer(self, app: FastAPI, client: AsyncClient) -> None:
        token = app.state.gateway.authority.issue(
            IdentityClaims(sub="user-9", email="z@example.com", organization_id="org-9")
        )
        response = await client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 200
        body = response.json()
        assert body["sub"] == "user-9"
        assert body["organizationId"] == "org-9"

    async def test_me_without_token(self, client: AsyncClient) -> None:
        response = await client.get("/auth/me")
        assert response.status_code == 401
        assert response.json()["error"] == "invalid_token"

    async def test_me_with_garbage(self, client: AsyncClient) -> None:
        response = await client.get("/auth/me", headers={"Authorization": "Bearer nope"})
        assert response.status_code == 401
        assert response.json()["error"] == "malformed_token"

    async def test_logout_always_succeeds(self, client: AsyncClient) -> None:
        response = await client.post("/logout")
        assert response.status_code == 200
        assert response.json() == {"message": "Logged out successfully"}
        assert "max-age=0" in _cookies_set(response)["access_token"].lower()

    async def test_login_me_logout(
        self,
        client: AsyncClient,
        session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        state = await _login(client, "github")
        await client.get("/auth/github/callback", params={"code": "c", "state": state})

        me = await client.get("/auth/me")
        assert me.status_code == 200
        assert me.json()["email"] == "ada@example.com"

        response = await client.post("/logout")
        assert response.json() == {"message": "Logged out successfully"}
        async with session_factory() as session:
            row = (await session.execute(select(AuditLogEntity))).scalar_one()
        assert row.provider == "github"
        assert row.logout_at is not None
