"""Directory user lookup through the Coordinator service."""

import json
import logging
from typing import Any

import httpx
from pydantic import BaseModel, Field, ValidationError

from authgw.core.errors import DirectoryUnavailable
from authgw.core.settings import CoordinatorSettings

logger = logging.getLogger(__name__)

COORDINATOR_PATH = "/api/fill-content-metrics"
REQUESTER_SERVICE = "auth"
NOT_PROVISIONED_STATUSES = frozenset({403, 404})
HTTP_SERVER_ERROR_MIN = 500

MOCK_USER_ID = "dummy-user-123"
MOCK_ORGANIZATION_ID = "dummy-org-1"


class DirectoryUser(BaseModel):
    """A provisioned user as known to the Directory."""

    user_id: str
    organization_id: str | None = None
    roles: list[str] = Field(default_factory=list)


def decode_envelope(raw: Any) -> Any:
    """Decode a body that may be JSON or a JSON-encoded JSON string."""
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8")
    if isinstance(raw, str):
        raw = json.loads(raw)
    if isinstance(raw, str):
        raw = json.loads(raw)
    return raw


class DirectoryClient:
    """Resolves an email/provider pair to a Directory user, or None."""

    def __init__(
        self, settings: CoordinatorSettings, http_client: httpx.AsyncClient
    ) -> None:
        self._settings = settings
        self._http = http_client

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._settings.api_key:
            headers["X-API-Key"] = self._settings.api_key
        return headers

    async def lookup(self, email: str, provider: str) -> DirectoryUser | None:
        """Ask the Directory for the user; None means not provisioned."""
        if self._settings.mock_mode:
            logger.warning(
                "Coordinator mock mode enabled, returning development user",
                extra={"provider": provider},
            )
            return DirectoryUser(
                user_id=MOCK_USER_ID,
                organization_id=MOCK_ORGANIZATION_ID,
                roles=["user"],
            )

        envelope = {
            "requester_service": REQUESTER_SERVICE,
            "payload": {"action": "get-user", "email": email, "provider": provider},
            "response": {"user_id": "", "organization_id": "", "roles": []},
        }
        url = f"{self._settings.url.rstrip('/')}{COORDINATOR_PATH}"
        try:
            response = await self._http.post(
                url,
                json=envelope,
                headers=self._headers(),
                timeout=self._settings.timeout_seconds,
            )
        except httpx.HTTPError as exc:
            logger.error("Coordinator request failed: %s", exc)
            raise DirectoryUnavailable() from exc

        if response.status_code in NOT_PROVISIONED_STATUSES:
            logger.info(
                "Directory has no user for this login  status=%d",
                response.status_code,
                extra={"provider": provider},
            )
            return None
        if response.status_code >= HTTP_SERVER_ERROR_MIN or not response.is_success:
            logger.error("Coordinator answered %d", response.status_code)
            raise DirectoryUnavailable()

        try:
            body = decode_envelope(response.content)
        except ValueError as exc:
            logger.error("Coordinator returned a body that is not JSON")
            raise DirectoryUnavailable() from exc
        return _user_from(body)


def _user_from(body: Any) -> DirectoryUser | None:
    if not isinstance(body, dict):
        return None
    data = body
    if not data.get("user_id") and isinstance(body.get("response"), dict):
        data = body["response"]
    user_id = data.get("user_id")
    if not user_id:
        return None
    organization_id = data.get("organization_id")
    roles = data.get("roles") or []
    try:
        return DirectoryUser(
            user_id=str(user_id),
            organization_id=str(organization_id) if organization_id else None,
            roles=[str(r) for r in roles] if isinstance(roles, list) else [],
        )
    except ValidationError as exc:
        logger.error("Coordinator returned an unusable user record: %s", exc)
        raise DirectoryUnavailable() from exc
