"""Component wiring for one application instance."""

import os
from collections.abc import Mapping
from dataclasses import dataclass

import httpx
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from authgw.core.settings import (
    AuthSettings,
    CoordinatorSettings,
    ProviderSettings,
    SigningSettings,
)
from authgw.crypto.jwks import JWKSPublisher
from authgw.crypto.key_source import load_key_store
from authgw.crypto.keystore import KeyStore
from authgw.crypto.rotation import RotationController
from authgw.crypto.token_authority import TokenAuthority
from authgw.db.audit import AuditRecorder
from authgw.db.engine import dispose_engine, get_session_factory
from authgw.directory.coordinator import DirectoryClient
from authgw.directory.notifier import FrontendNotifier
from authgw.oauth.flow import OAuthLoginFlow
from authgw.oauth.providers import build_provider_registry


@dataclass
class Gateway:
    """Everything the routes need, built once per app."""

    settings: AuthSettings
    signing: SigningSettings
    key_store: KeyStore
    authority: TokenAuthority
    jwks: JWKSPublisher
    rotation: RotationController
    flow: OAuthLoginFlow
    audit: AuditRecorder
    notifier: FrontendNotifier
    http_client: httpx.AsyncClient
    owns_http_client: bool
    owns_database: bool = False

    async def aclose(self) -> None:
        await self.notifier.aclose()
        if self.owns_http_client:
            await self.http_client.aclose()
        if self.owns_database:
            await dispose_engine()


def build_gateway(
    *,
    settings: AuthSettings | None = None,
    http_client: httpx.AsyncClient | None = None,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    environ: Mapping[str, str] | None = None,
) -> Gateway:
    """Load keys and assemble the signing authority and login flow."""
    settings = settings or AuthSettings()
    signing = SigningSettings()
    owns_client = http_client is None
    if http_client is None:
        http_client = httpx.AsyncClient(
            timeout=httpx.Timeout(settings.http_timeout_seconds)
        )

    key_store = load_key_store(settings, signing, os.environ if environ is None else environ)
    authority = TokenAuthority(
        key_store,
        issuer=signing.issuer,
        audience=signing.audience,
        lifetime_minutes=signing.expiry_minutes,
    )
    jwks = JWKSPublisher(key_store)
    owns_database = session_factory is None
    audit = AuditRecorder(session_factory or get_session_factory())
    flow = OAuthLoginFlow(
        build_provider_registry(settings, ProviderSettings(), http_client),
        authority,
        DirectoryClient(CoordinatorSettings(), http_client),
        audit,
    )
    return Gateway(
        settings=settings,
        signing=signing,
        key_store=key_store,
        authority=authority,
        jwks=jwks,
        rotation=RotationController(key_store, jwks),
        flow=flow,
        audit=audit,
        notifier=FrontendNotifier(settings.frontend_url, http_client),
        http_client=http_client,
        owns_http_client=owns_client,
        owns_database=owns_database,
    )
