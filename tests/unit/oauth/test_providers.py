"""Tests for identity provider adapters."""

import json
from urllib.parse import parse_qs, urlsplit

import httpx
import pytest

from authgw.core.errors import (
    IdentityIncomplete,
    ProviderUnavailable,
    TokenExchangeFailed,
)
from authgw.core.settings import AuthSettings, ProviderSettings
from authgw.oauth.discovery import DiscoveryCache
from authgw.oauth.providers import (
    GitHubProvider,
    GoogleProvider,
    LinkedInProvider,
    build_provider_registry,
)
from authgw.oauth.types import ProviderKind
from conftest import GATEWAY_URL, GOOGLE_ISSUER, FakeUpstreams


def _query(url: str) -> dict[str, str]:
    return {k: v[0] for k, v in parse_qs(urlsplit(url).query).items()}


@pytest.fixture
def google(upstream_client: httpx.AsyncClient) -> GoogleProvider:
    return GoogleProvider(
        client_id="google-client",
        client_secret="google-secret",
        issuer_url=GOOGLE_ISSUER,
        redirect_uri=f"{GATEWAY_URL}/auth/google/callback",
        http_client=upstream_client,
        discovery=DiscoveryCache(upstream_client),
    )


@pytest.fixture
def github(upstream_client: httpx.AsyncClient) -> GitHubProvider:
    return GitHubProvider(
        client_id="github-client",
        client_secret="github-secret",
        redirect_uri=f"{GATEWAY_URL}/auth/github/callback",
        http_client=upstream_client,
    )


@pytest.fixture
def linkedin(upstream_client: httpx.AsyncClient) -> LinkedInProvider:
    return LinkedInProvider(
        client_id="linkedin-client",
        client_secret="linkedin-secret",
        redirect_uri=f"{GATEWAY_URL}/auth/linkedin/callback",
        http_client=upstream_client,
    )


class TestGoogleProvider:
    """Tests for the OIDC + PKCE adapter."""

    async def test_authorization_url_from_discovery(self, google: GoogleProvider) -> None:
        url = await google.build_authorization_url(state="st", code_challenge="ch")
        assert url.startswith(f"{GOOGLE_ISSUER}/o/oauth2/v2/auth?")
        query = _query(url)
        assert query["scope"] == "openid email profile"
        assert query["response_type"] == "code"
        assert query["state"] == "st"
        assert query["code_challenge"] == "ch"
        assert query["code_challenge_method"] == "S256"
        assert query["redirect_uri"] == f"{GATEWAY_URL}/auth/google/callback"

    async def test_discovery_is_fetched_once(
        self, google: GoogleProvider, upstreams: FakeUpstreams
    ) -> None:
        await google.build_authorization_url(state="s1", code_challenge="c1")
        await google.build_authorization_url(state="s2", code_challenge="c2")
        assert upstreams.paths("accounts.google.test").count(
            "/.well-known/openid-configuration"
        ) == 1

    async def test_discovery_failure(
        self, google: GoogleProvider, upstreams: FakeUpstreams
    ) -> None:
        upstreams.discovery_status = 503
        with pytest.raises(ProviderUnavailable):
            await google.build_authorization_url(state="s", code_challenge="c")

    async def test_exchange_sends_verifier(
        self, google: GoogleProvider, upstreams: FakeUpstreams
    ) -> None:
        token = await google.exchange_code("code-1", state="s", code_verifier="verifier-1")
        assert token == "google-access-token"
        form = parse_qs(upstreams.last("oauth2.google.test", "/token").content.decode())
        assert form["code_verifier"] == ["verifier-1"]
        assert form["grant_type"] == ["authorization_code"]

    async def test_refused_exchange(
        self, google: GoogleProvider, upstreams: FakeUpstreams
    ) -> None:
        upstreams.token_status = 400
        with pytest.raises(TokenExchangeFailed):
            await google.exchange_code("bad", state="s", code_verifier="v")

    async def test_upstream_outage_on_exchange(
        self, google: GoogleProvider, upstreams: FakeUpstreams
    ) -> None:
        await google.build_authorization_url(state="s", code_challenge="c")
        upstreams.token_status = 502
        with pytest.raises(ProviderUnavailable):
            await google.exchange_code("code", state="s", code_verifier="v")

    async def test_identity(self, google: GoogleProvider) -> None:
        identity = await google.fetch_identity("google-access-token")
        assert identity.email == "ada@example.com"
        assert identity.subject == "google-sub-1"
        assert identity.provider is ProviderKind.GOOGLE

    async def test_identity_without_email(
        self, google: GoogleProvider, upstreams: FakeUpstreams
    ) -> None:
        upstreams.google_email = None
        with pytest.raises(IdentityIncomplete):
            await google.fetch_identity("google-access-token")


class TestGitHubProvider:
    """Tests for the GitHub OAuth2 adapter."""

    async def test_authorization_url(self, github: GitHubProvider) -> None:
        url = await github.build_authorization_url(state="st", code_challenge=None)
        assert url.startswith("https://github.com/login/oauth/authorize?")
        query = _query(url)
        assert query["scope"] == "user:email read:user"
        assert "code_challenge" not in query

    async def test_exchange_posts_json(
        self, github: GitHubProvider, upstreams: FakeUpstreams
    ) -> None:
        assert await github.exchange_code("c", state="st", code_verifier=None) == (
            "github-access-token"
        )
        request = upstreams.last("github.com", "/login/oauth/access_token")
        assert request.headers["accept"] == "application/json"
        assert json.loads(request.content)["code"] == "c"

    async def test_exchange_error_body(
        self, github: GitHubProvider, upstreams: FakeUpstreams
    ) -> None:
        upstreams.token_status = 401
        with pytest.raises(TokenExchangeFailed, match="access token"):
            await github.exchange_code("c", state="st", code_verifier=None)

    async def test_primary_email_wins(self, github: GitHubProvider) -> None:
        identity = await github.fetch_identity("github-access-token")
        assert identity.email == "ada@example.com"
        assert identity.subject == "42"

    async def test_first_email_when_none_primary(
        self, github: GitHubProvider, upstreams: FakeUpstreams
    ) -> None:
        upstreams.github_emails = [
            {"email": "first@example.com", "primary": False},
            {"email": "second@example.com", "primary": False},
        ]
        assert (await github.fetch_identity("t")).email == "first@example.com"

    async def test_no_email_anywhere(
        self, github: GitHubProvider, upstreams: FakeUpstreams
    ) -> None:
        upstreams.github_emails = []
        with pytest.raises(IdentityIncomplete):
            await github.fetch_identity("t")


class TestLinkedInProvider:
    """Tests for the LinkedIn adapter."""

    async def test_authorization_url(self, linkedin: LinkedInProvider) -> None:
        url = await linkedin.build_authorization_url(state="st", code_challenge=None)
        assert url.startswith("https://www.linkedin.com/oauth/v2/authorization?")
        query = _query(url)
        assert query["response_type"] == "code"
        assert query["scope"] == "openid profile email"

    async def test_exchange_posts_form(
        self, linkedin: LinkedInProvider, upstreams: FakeUpstreams
    ) -> None:
        await linkedin.exchange_code("c", state="st", code_verifier=None)
        request = upstreams.last("www.linkedin.com", "/oauth/v2/accessToken")
        assert request.headers["content-type"] == "application/x-www-form-urlencoded"

    async def test_identity(self, linkedin: LinkedInProvider) -> None:
        assert (await linkedin.fetch_identity("t")).email == "ada@example.com"


class TestRegistry:
    """Tests for registry construction."""

    def test_unconfigured_providers_are_reported(
        self, upstream_client: httpx.AsyncClient
    ) -> None:
        registry = build_provider_registry(
            AuthSettings(backend_url=GATEWAY_URL),
            ProviderSettings(
                google_client_id="",
                google_client_secret="",
                github_client_id="id",
                github_client_secret="secret",
                linkedin_client_id="",
                linkedin_client_secret="",
            ),
            upstream_client,
        )
        assert set(registry) == set(ProviderKind)
        assert registry[ProviderKind.GITHUB].is_configured()
        assert not registry[ProviderKind.GOOGLE].is_configured()
        assert not registry[ProviderKind.LINKEDIN].is_configured()
