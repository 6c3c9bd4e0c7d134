"""Type definitions for signing keys, JWKS, and token operations."""

from dataclasses import dataclass
from datetime import datetime

from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey, RSAPublicKey
from pydantic import BaseModel, ConfigDict, Field

SIGNING_ALGORITHM = "RS256"


@dataclass(frozen=True)
class KeyPair:
    """A parsed RSA keypair registered under one key id."""

    kid: str
    private_key: RSAPrivateKey
    public_key: RSAPublicKey


class SigningKeyData(BaseModel):
    """PEM-encoded RSA keypair, as produced by key generation."""

    kid: str
    private_key_pem: str
    public_key_pem: str


class JWKEntry(BaseModel):
    """Single JWK entry in a JWKS response."""

    kty: str = "RSA"
    use: str = "sig"
    kid: str
    alg: str = SIGNING_ALGORITHM
    n: str
    e: str


class JWKSResponse(BaseModel):
    """JSON Web Key Set response."""

    keys: list[JWKEntry]


class IdentityClaims(BaseModel):
    """Resolved identity to embed in a session token."""

    sub: str
    email: str
    organization_id: str | None = None
    roles: list[str] = Field(default_factory=list)


class DecodedToken(BaseModel):
    """Verified session token claims."""

    model_config = ConfigDict(extra="allow")

    sub: str
    email: str = ""
    organization_id: str | None = None
    roles: list[str] = Field(default_factory=list)
    iss: str = ""
    aud: str = ""
    iat: int
    exp: int


class KeyStoreStatus(BaseModel):
    """Read-only projection of the key store."""

    active_kid: str | None
    available_kids: list[str]
    key_count: int


class RotationResult(BaseModel):
    previous_active: str | None
    new_active: str
    total_keys: int


class StagedKeyResult(BaseModel):
    kid: str
    active_kid: str | None
    total_keys: int


class PurgeResult(BaseModel):
    purged: list[str]
    active_kid: str | None
    remaining: list[str]


class RotationStatus(KeyStoreStatus):
    timestamp: datetime
