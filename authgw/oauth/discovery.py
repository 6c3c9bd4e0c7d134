"""OpenID Connect discovery for upstream identity providers."""

import asyncio
import logging

import httpx
from pydantic import BaseModel

from authgw.core.errors import ProviderUnavailable

logger = logging.getLogger(__name__)

WELL_KNOWN_PATH = "/.well-known/openid-configuration"


class ProviderMetadata(BaseModel):
    """Subset of an upstream .well-known/openid-configuration document."""

    issuer: str
    authorization_endpoint: str
    token_endpoint: str
    userinfo_endpoint: str | None = None
    jwks_uri: str | None = None
    code_challenge_methods_supported: list[str] = []


class DiscoveryCache:
    """Fetches provider metadata once per issuer and keeps it for the process."""

    def __init__(self, http_client: httpx.AsyncClient) -> None:
        self._http = http_client
        self._lock = asyncio.Lock()
        self._documents: dict[str, ProviderMetadata] = {}

    async def get(self, issuer_url: str) -> ProviderMetadata:
        issuer = issuer_url.rstrip("/")
        cached = self._documents.get(issuer)
        if cached is not None:
            return cached
        async with self._lock:
            cached = self._documents.get(issuer)
            if cached is None:
                cached = await self._fetch(issuer)
                self._documents[issuer] = cached
            return cached

    async def _fetch(self, issuer: str) -> ProviderMetadata:
        url = f"{issuer}{WELL_KNOWN_PATH}"
        try:
            response = await self._http.get(url)
            response.raise_for_status()
            metadata = ProviderMetadata.model_validate(response.json())
        except httpx.HTTPError as exc:
            logger.error("OIDC discovery failed for %s: %s", issuer, exc)
            raise ProviderUnavailable() from exc
        except ValueError as exc:
            logger.error("OIDC discovery returned an invalid document for %s", issuer)
            raise ProviderUnavailable() from exc
        logger.info("Discovered OIDC issuer %s", metadata.issuer)
        return metadata
