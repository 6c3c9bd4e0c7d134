"""Transient per-provider OAuth session carried in HTTP-only cookies."""

from collections.abc import Mapping
from dataclasses import dataclass

from starlette.responses import Response

from authgw.oauth.types import ProviderKind

SESSION_MAX_AGE_SECONDS = 600
COOKIE_PATH = "/"


def state_cookie_name(provider: ProviderKind) -> str:
    return f"oauth_{provider.value}_state"


def verifier_cookie_name(provider: ProviderKind) -> str:
    return f"oauth_{provider.value}_code_verifier"


@dataclass(frozen=True)
class OAuthSession:
    """State (and Google code verifier) stored between redirect and callback."""

    provider: ProviderKind
    state: str | None = None
    code_verifier: str | None = None


class OAuthCookieJar:
    """Reads session cookies from a request and queues changes for a response.

    The flow only talks to the jar; the route applies the queued cookie
    writes and deletions to whatever response it finally returns.
    """

    def __init__(self, cookies: Mapping[str, str], *, secure: bool) -> None:
        self._cookies = dict(cookies)
        self._secure = secure
        self._pending_set: dict[str, str] = {}
        self._pending_clear: set[str] = set()

    def load(self, provider: ProviderKind) -> OAuthSession:
        return OAuthSession(
            provider=provider,
            state=self._cookies.get(state_cookie_name(provider)),
            code_verifier=self._cookies.get(verifier_cookie_name(provider)),
        )

    def store(self, session: OAuthSession) -> None:
        names = {
            state_cookie_name(session.provider): session.state,
            verifier_cookie_name(session.provider): session.code_verifier,
        }
        for name, value in names.items():
            if value:
                self._pending_set[name] = value
                self._pending_clear.discard(name)

    def clear(self, provider: ProviderKind) -> None:
        """Queue deletion of both session cookies for ``provider``."""
        for name in (state_cookie_name(provider), verifier_cookie_name(provider)):
            self._cookies.pop(name, None)
            self._pending_set.pop(name, None)
            self._pending_clear.add(name)

    @property
    def pending_set(self) -> dict[str, str]:
        return dict(self._pending_set)

    @property
    def pending_clear(self) -> set[str]:
        return set(self._pending_clear)

    def apply_to(self, response: Response) -> None:
        for name, value in self._pending_set.items():
            response.set_cookie(
                name,
                value,
                max_age=SESSION_MAX_AGE_SECONDS,
                path=COOKIE_PATH,
                secure=self._secure,
                httponly=True,
                samesite="lax",
            )
        for name in self._pending_clear:
            response.delete_cookie(
                name,
                path=COOKIE_PATH,
                secure=self._secure,
                httponly=True,
                samesite="lax",
            )
