"""Session token signing and verification using RS256 and a KeyStore."""

import logging
from datetime import UTC, datetime, timedelta

import jwt
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPublicKey
from jwt.types import Options

from authgw.core.errors import (
    AllKeysFailed,
    ClaimMismatch,
    Expired,
    InvalidSignature,
    MalformedToken,
    NoActiveKey,
    TokenError,
)
from authgw.crypto.keystore import KeyStore
from authgw.crypto.types import SIGNING_ALGORITHM, DecodedToken, IdentityClaims

logger = logging.getLogger(__name__)

REQUIRED_CLAIMS = ["sub", "exp", "iat", "iss", "aud"]


def _translate(exc: jwt.PyJWTError) -> TokenError:
    """Map a PyJWT failure onto the gateway's token errors."""
    if isinstance(exc, jwt.ExpiredSignatureError):
        return Expired()
    if isinstance(exc, (jwt.InvalidSignatureError, jwt.InvalidAlgorithmError)):
        return InvalidSignature()
    if isinstance(
        exc,
        (
            jwt.InvalidIssuerError,
            jwt.InvalidAudienceError,
            jwt.MissingRequiredClaimError,
            jwt.ImmatureSignatureError,
            jwt.InvalidIssuedAtError,
        ),
    ):
        return ClaimMismatch(f"Token claims do not match: {exc}")
    if isinstance(exc, jwt.DecodeError):
        return MalformedToken()
    return TokenError(str(exc) or None)


class TokenAuthority:
    """Signs identity claims with the active key and verifies session tokens."""

    def __init__(
        self,
        key_store: KeyStore,
        *,
        issuer: str,
        audience: str,
        lifetime_minutes: int,
    ) -> None:
        self._keys = key_store
        self._issuer = issuer
        self._audience = audience
        self._lifetime = timedelta(minutes=lifetime_minutes)

    @property
    def lifetime_seconds(self) -> int:
        return int(self._lifetime.total_seconds())

    def issue(self, claims: IdentityClaims) -> str:
        """Create a signed RS256 token whose header names the active kid."""
        pair = self._keys.active()
        if pair is None:
            raise NoActiveKey()
        now = datetime.now(UTC)
        payload = {
            "sub": claims.sub,
            "email": claims.email,
            "organization_id": claims.organization_id,
            "roles": list(claims.roles),
            "iat": now,
            "exp": now + self._lifetime,
            "iss": self._issuer,
            "aud": self._audience,
        }
        return jwt.encode(
            payload,
            pair.private_key,
            algorithm=SIGNING_ALGORITHM,
            headers={"kid": pair.kid},
        )

    def _decode(
        self, token: str, key: RSAPublicKey, *, allow_expired: bool
    ) -> DecodedToken:
        opts: Options = {"require": REQUIRED_CLAIMS}
        if allow_expired:
            opts["verify_exp"] = False
        try:
            raw = jwt.decode(
                token,
                key,
                algorithms=[SIGNING_ALGORITHM],
                issuer=self._issuer,
                audience=self._audience,
                options=opts,
            )
        except jwt.PyJWTError as exc:
            raise _translate(exc) from exc
        return DecodedToken.model_validate(raw)

    def verify(self, token: str, *, allow_expired: bool = False) -> DecodedToken:
        """Verify a token against the key named in its header, else all keys.

        A kid that the store knows is authoritative: failures with that key
        are raised as-is. Tokens without a kid, or with one this instance no
        longer knows, are tried against every public key in kid order.
        """
        try:
            header = jwt.get_unverified_header(token)
        except jwt.PyJWTError as exc:
            raise MalformedToken() from exc

        kid = header.get("kid")
        key = self._keys.public_key(kid) if isinstance(kid, str) else None
        if key is not None:
            return self._decode(token, key, allow_expired=allow_expired)

        candidates = self._keys.all_public_keys()
        if not candidates:
            logger.error("No public keys available for token validation")
            raise AllKeysFailed()

        last_error: TokenError | None = None
        for candidate_kid in sorted(candidates):
            try:
                decoded = self._decode(
                    token, candidates[candidate_kid], allow_expired=allow_expired
                )
            except TokenError as exc:
                last_error = exc
                continue
            logger.debug("Token validated with fallback key %s", candidate_kid)
            return decoded
        raise last_error or AllKeysFailed()
