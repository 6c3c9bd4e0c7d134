"""Per-provider OAuth login state machine.

    INITIATED -> CALLBACK_RECEIVED -> IDENTITY_RESOLVED -> TOKEN_ISSUED
                                   \\-> REJECTED (any failure)

The OAuth session cookies for the provider are cleared on every callback
outcome, so a state value can be consumed at most once.
"""

import logging

from authgw.core.errors import (
    GatewayError,
    MissingParameters,
    ProviderError,
    ProviderNotConfigured,
    StateMismatch,
    UnsupportedProvider,
    UserNotProvisioned,
)
from authgw.crypto.token_authority import TokenAuthority
from authgw.crypto.types import IdentityClaims
from authgw.db.audit import AuditRecorder
from authgw.directory.coordinator import DirectoryClient
from authgw.oauth.pkce import (
    compute_code_challenge,
    generate_code_verifier,
    generate_state,
    states_match,
)
from authgw.oauth.providers import OAuthProvider
from authgw.oauth.session import OAuthCookieJar, OAuthSession
from authgw.oauth.types import (
    CallbackParams,
    LoginRedirect,
    LoginResult,
    LoginState,
    ProviderKind,
)

logger = logging.getLogger(__name__)


def parse_provider(name: str) -> ProviderKind:
    """Map a path segment onto a supported provider."""
    try:
        return ProviderKind(name.lower())
    except ValueError:
        raise UnsupportedProvider() from None


class OAuthLoginFlow:
    """Turns a provider login into a signed session token."""

    def __init__(
        self,
        providers: dict[ProviderKind, OAuthProvider],
        authority: TokenAuthority,
        directory: DirectoryClient,
        audit: AuditRecorder | None = None,
    ) -> None:
        self._providers = providers
        self._authority = authority
        self._directory = directory
        self._audit = audit

    def _configured(self, kind: ProviderKind) -> OAuthProvider:
        provider = self._providers.get(kind)
        if provider is None or not provider.is_configured():
            logger.error("OAuth provider not configured", extra={"provider": kind.value})
            raise ProviderNotConfigured()
        return provider

    async def initiate(self, provider_name: str, jar: OAuthCookieJar) -> LoginRedirect:
        """Start a login: fresh state (and PKCE verifier), provider redirect URL."""
        kind = parse_provider(provider_name)
        provider = self._configured(kind)

        state = generate_state()
        verifier = generate_code_verifier() if provider.uses_pkce else None
        challenge = compute_code_challenge(verifier) if verifier else None
        url = await provider.build_authorization_url(state=state, code_challenge=challenge)

        jar.store(OAuthSession(provider=kind, state=state, code_verifier=verifier))
        logger.info(
            "OAuth login initiated  pkce=%s",
            verifier is not None,
            extra={"provider": kind.value, "login_state": LoginState.INITIATED.value},
        )
        return LoginRedirect(provider=kind, authorization_url=url)

    async def handle_callback(
        self, provider_name: str, params: CallbackParams, jar: OAuthCookieJar
    ) -> LoginResult:
        """Validate the callback, resolve the identity and issue a token."""
        kind = parse_provider(provider_name)
        try:
            result = await self._complete(kind, params, jar)
        except GatewayError as exc:
            logger.warning(
                "OAuth login rejected: %s",
                exc.error_code,
                extra={"provider": kind.value, "login_state": LoginState.REJECTED.value},
            )
            raise
        finally:
            jar.clear(kind)
        return result

    async def _complete(
        self, kind: ProviderKind, params: CallbackParams, jar: OAuthCookieJar
    ) -> LoginResult:
        provider = self._configured(kind)
        if params.error:
            raise ProviderError(params.error_description or params.error)
        if not params.code or not params.state:
            raise MissingParameters()

        session = jar.load(kind)
        if not states_match(session.state, params.state):
            logger.error(
                "State verification failed  stored=%s",
                session.state is not None,
                extra={"provider": kind.value},
            )
            raise StateMismatch()
        if provider.uses_pkce and not session.code_verifier:
            raise MissingParameters("Missing PKCE code verifier")
        logger.info(
            "OAuth callback verified",
            extra={"provider": kind.value, "login_state": LoginState.CALLBACK_RECEIVED.value},
        )

        access_token = await provider.exchange_code(
            params.code, state=params.state, code_verifier=session.code_verifier
        )
        identity = await provider.fetch_identity(access_token)
        logger.info(
            "Provider identity resolved",
            extra={"provider": kind.value, "login_state": LoginState.IDENTITY_RESOLVED.value},
        )

        user = await self._directory.lookup(identity.email, kind.value)
        if user is None:
            raise UserNotProvisioned()

        claims = IdentityClaims(
            sub=user.user_id,
            email=identity.email,
            organization_id=user.organization_id,
            roles=user.roles,
        )
        token = self._authority.issue(claims)

        if self._audit is not None:
            await self._audit.record_login(
                user_id=user.user_id,
                email=identity.email,
                provider=kind.value,
                company_id=user.organization_id,
            )
        logger.info(
            "Session token issued",
            extra={
                "provider": kind.value,
                "user_id": user.user_id,
                "login_state": LoginState.TOKEN_ISSUED.value,
            },
        )
        return LoginResult(token=token, claims=claims, provider=kind)
