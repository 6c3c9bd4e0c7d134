"""Identity provider adapters behind one authorization-code interface.

Google is a full OIDC provider (discovery + PKCE). GitHub and LinkedIn use
fixed OAuth2 endpoints and a plain code exchange.
"""

import logging
from typing import Any, Protocol
from urllib.parse import urlencode

import httpx

from authgw.core.errors import (
    IdentityIncomplete,
    ProviderUnavailable,
    TokenExchangeFailed,
)
from authgw.core.settings import AuthSettings, ProviderSettings
from authgw.oauth.discovery import DiscoveryCache
from authgw.oauth.pkce import CHALLENGE_METHOD
from authgw.oauth.types import ProviderIdentity, ProviderKind

logger = logging.getLogger(__name__)

HTTP_CLIENT_ERROR_MIN = 400
HTTP_SERVER_ERROR_MIN = 500

GOOGLE_SCOPE = "openid email profile"

GITHUB_AUTHORIZE_URL = "https://github.com/login/oauth/authorize"
GITHUB_TOKEN_URL = "https://github.com/login/oauth/access_token"
GITHUB_USER_URL = "https://api.github.com/user"
GITHUB_EMAILS_URL = "https://api.github.com/user/emails"
GITHUB_SCOPE = "user:email read:user"

LINKEDIN_AUTHORIZE_URL = "https://www.linkedin.com/oauth/v2/authorization"
LINKEDIN_TOKEN_URL = "https://www.linkedin.com/oauth/v2/accessToken"
LINKEDIN_USERINFO_URL = "https://api.linkedin.com/v2/userinfo"
LINKEDIN_SCOPE = "openid profile email"


class OAuthProvider(Protocol):
    """What the login flow needs from an identity provider."""

    kind: ProviderKind
    uses_pkce: bool

    def is_configured(self) -> bool: ...

    async def build_authorization_url(
        self, *, state: str, code_challenge: str | None
    ) -> str: ...

    async def exchange_code(
        self, code: str, *, state: str, code_verifier: str | None
    ) -> str: ...

    async def fetch_identity(self, access_token: str) -> ProviderIdentity: ...


async def _send(
    http: httpx.AsyncClient, method: str, url: str, **kwargs: Any
) -> httpx.Response:
    """Send a request; network failures and 5xx become ProviderUnavailable."""
    try:
        response = await http.request(method, url, **kwargs)
    except httpx.TransportError as exc:
        logger.error("Provider request to %s failed: %s", url, exc)
        raise ProviderUnavailable() from exc
    if response.status_code >= HTTP_SERVER_ERROR_MIN:
        logger.error("Provider %s answered %d", url, response.status_code)
        raise ProviderUnavailable()
    return response


def _json_object(response: httpx.Response) -> dict[str, Any]:
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def _access_token_from(response: httpx.Response, provider: ProviderKind) -> str:
    body = _json_object(response)
    token = body.get("access_token")
    if response.status_code >= HTTP_CLIENT_ERROR_MIN or not token:
        logger.error(
            "%s token exchange failed  status=%d error=%s",
            provider.value,
            response.status_code,
            body.get("error", "missing access_token"),
            extra={"provider": provider.value},
        )
        raise TokenExchangeFailed(
            f"Failed to obtain access token from {provider.value.capitalize()}"
        )
    return str(token)


async def _get_profile(
    http: httpx.AsyncClient, url: str, access_token: str, provider: ProviderKind
) -> Any:
    response = await _send(
        http,
        "GET",
        url,
        headers={"Authorization": f"Bearer {access_token}", "Accept": "application/json"},
    )
    if response.status_code >= HTTP_CLIENT_ERROR_MIN:
        logger.error(
            "%s profile request refused  status=%d",
            provider.value,
            response.status_code,
            extra={"provider": provider.value},
        )
        raise TokenExchangeFailed("Provider refused the access token")
    try:
        return response.json()
    except ValueError as exc:
        raise IdentityIncomplete("Provider returned an unreadable profile") from exc


class GoogleProvider:
    """OpenID Connect login against Google, with PKCE (S256)."""

    kind = ProviderKind.GOOGLE
    uses_pkce = True

    def __init__(
        self,
        *,
        client_id: str,
        client_secret: str,
        issuer_url: str,
        redirect_uri: str,
        http_client: httpx.AsyncClient,
        discovery: DiscoveryCache,
    ) -> None:
        self._client_id = client_id
        self._client_secret = client_secret
        self._issuer_url = issuer_url
        self._redirect_uri = redirect_uri
        self._http = http_client
        self._discovery = discovery

    def is_configured(self) -> bool:
        return bool(self._client_id and self._client_secret)

    async def build_authorization_url(
        self, *, state: str, code_challenge: str | None
    ) -> str:
        metadata = await self._discovery.get(self._issuer_url)
        params = {
            "client_id": self._client_id,
            "redirect_uri": self._redirect_uri,
            "response_type": "code",
            "scope": GOOGLE_SCOPE,
            "state": state,
        }
        if code_challenge:
            params["code_challenge"] = code_challenge
            params["code_challenge_method"] = CHALLENGE_METHOD
        return f"{metadata.authorization_endpoint}?{urlencode(params)}"

    async def exchange_code(
        self, code: str, *, state: str, code_verifier: str | None
    ) -> str:
        metadata = await self._discovery.get(self._issuer_url)
        form = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": self._redirect_uri,
            "client_id": self._client_id,
            "client_secret": self._client_secret,
        }
        if code_verifier:
            form["code_verifier"] = code_verifier
        response = await _send(
            self._http,
            "POST",
            metadata.token_endpoint,
            data=form,
            headers={"Accept": "application/json"},
        )
        return _access_token_from(response, self.kind)

    async def fetch_identity(self, access_token: str) -> ProviderIdentity:
        metadata = await self._discovery.get(self._issuer_url)
        if not metadata.userinfo_endpoint:
            logger.error("Google discovery document has no userinfo endpoint")
            raise ProviderUnavailable()
        info = await _get_profile(
            self._http, metadata.userinfo_endpoint, access_token, self.kind
        )
        if not isinstance(info, dict):
            raise IdentityIncomplete()
        email = info.get("email") or info.get("emailAddress")
        if not email:
            raise IdentityIncomplete()
        return ProviderIdentity(
            provider=self.kind,
            email=email,
            subject=str(info.get("sub", "")),
            name=info.get("name"),
        )


class GitHubProvider:
    """Plain OAuth2 login against GitHub."""

    kind = ProviderKind.GITHUB
    uses_pkce = False

    def __init__(
        self,
        *,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        http_client: httpx.AsyncClient,
    ) -> None:
        self._client_id = client_id
        self._client_secret = client_secret
        self._redirect_uri = redirect_uri
        self._http = http_client

    def is_configured(self) -> bool:
        return bool(self._client_id and self._client_secret)

    async def build_authorization_url(
        self, *, state: str, code_challenge: str | None
    ) -> str:
        params = {
            "client_id": self._client_id,
            "redirect_uri": self._redirect_uri,
            "scope": GITHUB_SCOPE,
            "state": state,
        }
        return f"{GITHUB_AUTHORIZE_URL}?{urlencode(params)}"

    async def exchange_code(
        self, code: str, *, state: str, code_verifier: str | None
    ) -> str:
        response = await _send(
            self._http,
            "POST",
            GITHUB_TOKEN_URL,
            json={
                "client_id": self._client_id,
                "client_secret": self._client_secret,
                "code": code,
                "state": state,
            },
            headers={"Accept": "application/json"},
        )
        return _access_token_from(response, self.kind)

    async def fetch_identity(self, access_token: str) -> ProviderIdentity:
        profile = await _get_profile(self._http, GITHUB_USER_URL, access_token, self.kind)
        emails = await _get_profile(self._http, GITHUB_EMAILS_URL, access_token, self.kind)
        if not isinstance(profile, dict):
            raise IdentityIncomplete()
        email = _pick_github_email(emails) or profile.get("email")
        if not email:
            raise IdentityIncomplete()
        return ProviderIdentity(
            provider=self.kind,
            email=email,
            subject=str(profile.get("id", "")),
            name=profile.get("name") or profile.get("login"),
        )


def _pick_github_email(emails: Any) -> str | None:
    """Primary address if flagged, else the first listed one."""
    if not isinstance(emails, list) or not emails:
        return None
    entries = [e for e in emails if isinstance(e, dict)]
    chosen = next((e for e in entries if e.get("primary")), None)
    if chosen is None and entries:
        chosen = entries[0]
    return chosen.get("email") if chosen else None


class LinkedInProvider:
    """OAuth2 login against LinkedIn using its OpenID userinfo endpoint."""

    kind = ProviderKind.LINKEDIN
    uses_pkce = False

    def __init__(
        self,
        *,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        http_client: httpx.AsyncClient,
    ) -> None:
        self._client_id = client_id
        self._client_secret = client_secret
        self._redirect_uri = redirect_uri
        self._http = http_client

    def is_configured(self) -> bool:
        return bool(self._client_id and self._client_secret)

    async def build_authorization_url(
        self, *, state: str, code_challenge: str | None
    ) -> str:
        params = {
            "response_type": "code",
            "client_id": self._client_id,
            "redirect_uri": self._redirect_uri,
            "scope": LINKEDIN_SCOPE,
            "state": state,
        }
        return f"{LINKEDIN_AUTHORIZE_URL}?{urlencode(params)}"

    async def exchange_code(
        self, code: str, *, state: str, code_verifier: str | None
    ) -> str:
        response = await _send(
            self._http,
            "POST",
            LINKEDIN_TOKEN_URL,
            data={
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": self._redirect_uri,
                "client_id": self._client_id,
                "client_secret": self._client_secret,
            },
            headers={"Accept": "application/json"},
        )
        return _access_token_from(response, self.kind)

    async def fetch_identity(self, access_token: str) -> ProviderIdentity:
        info = await _get_profile(self._http, LINKEDIN_USERINFO_URL, access_token, self.kind)
        if not isinstance(info, dict) or not info.get("email"):
            raise IdentityIncomplete()
        return ProviderIdentity(
            provider=self.kind,
            email=info["email"],
            subject=str(info.get("sub", "")),
            name=info.get("name"),
        )


def callback_url(backend_url: str, kind: ProviderKind) -> str:
    return f"{backend_url.rstrip('/')}/auth/{kind.value}/callback"


def build_provider_registry(
    settings: AuthSettings,
    providers: ProviderSettings,
    http_client: httpx.AsyncClient,
) -> dict[ProviderKind, OAuthProvider]:
    """Create one adapter per supported provider, configured or not."""
    discovery = DiscoveryCache(http_client)
    return {
        ProviderKind.GOOGLE: GoogleProvider(
            client_id=providers.google_client_id,
            client_secret=providers.google_client_secret,
            issuer_url=providers.google_issuer_url,
            redirect_uri=callback_url(settings.backend_url, ProviderKind.GOOGLE),
            http_client=http_client,
            discovery=discovery,
        ),
        ProviderKind.GITHUB: GitHubProvider(
            client_id=providers.github_client_id,
            client_secret=providers.github_client_secret,
            redirect_uri=callback_url(settings.backend_url, ProviderKind.GITHUB),
            http_client=http_client,
        ),
        ProviderKind.LINKEDIN: LinkedInProvider(
            client_id=providers.linkedin_client_id,
            client_secret=providers.linkedin_client_secret,
            redirect_uri=callback_url(settings.backend_url, ProviderKind.LINKEDIN),
            http_client=http_client,
        ),
    }
