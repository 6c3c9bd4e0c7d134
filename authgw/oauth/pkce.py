"""State and PKCE (S256) value generation for outbound authorization requests."""

import hashlib
import secrets
from base64 import urlsafe_b64encode

STATE_BYTES = 32
VERIFIER_BYTES = 32
CHALLENGE_METHOD = "S256"


def generate_state() -> str:
    """Generate an unguessable CSRF state value."""
    return secrets.token_urlsafe(STATE_BYTES)


def generate_code_verifier() -> str:
    """Generate a PKCE code verifier (43 url-safe characters)."""
    return secrets.token_urlsafe(VERIFIER_BYTES)


def compute_code_challenge(code_verifier: str) -> str:
    """Derive the S256 challenge: BASE64URL(SHA256(verifier)) without padding."""
    digest = hashlib.sha256(code_verifier.encode("ascii")).digest()
    return urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


def states_match(stored: str | None, received: str | None) -> bool:
    """Constant-time comparison of the stored and returned state values."""
    if not stored or not received:
        return False
    return secrets.compare_digest(stored.encode("utf-8"), received.encode("utf-8"))
