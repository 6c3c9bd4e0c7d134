"""Type definitions for the OAuth login flow."""

from enum import StrEnum

from pydantic import BaseModel

from authgw.crypto.types import IdentityClaims


class ProviderKind(StrEnum):
    """Identity providers the gateway can log users in with."""

    GOOGLE = "google"
    GITHUB = "github"
    LINKEDIN = "linkedin"


class LoginState(StrEnum):
    """Progress of one login attempt."""

    INITIATED = "initiated"
    CALLBACK_RECEIVED = "callback_received"
    IDENTITY_RESOLVED = "identity_resolved"
    TOKEN_ISSUED = "token_issued"
    REJECTED = "rejected"


class CallbackParams(BaseModel):
    """Query parameters the provider sends back to the callback URL."""

    code: str | None = None
    state: str | None = None
    error: str | None = None
    error_description: str | None = None


class ProviderIdentity(BaseModel):
    """Identity as reported by the provider after code exchange."""

    provider: ProviderKind
    email: str
    subject: str = ""
    name: str | None = None


class LoginRedirect(BaseModel):
    provider: ProviderKind
    authorization_url: str


class LoginResult(BaseModel):
    token: str
    claims: IdentityClaims
    provider: ProviderKind
    state: LoginState = LoginState.TOKEN_ISSUED
