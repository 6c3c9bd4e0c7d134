"""RSA key generation, parsing, encryption, and JWK conversion."""

import base64
from datetime import UTC, datetime

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey, RSAPublicKey

from authgw.core.errors import InvalidKeyMaterial
from authgw.crypto.types import JWKEntry, KeyPair, SigningKeyData

RSA_KEY_SIZE = 2048
RSA_PUBLIC_EXPONENT = 65537
KID_PREFIX = "auth-key"


def dated_kid(now: datetime | None = None, prefix: str = KID_PREFIX) -> str:
    """Return a conventional key id such as ``auth-key-2025-01``."""
    moment = now or datetime.now(UTC)
    return f"{prefix}-{moment:%Y-%m}"


def generate_rsa_keypair(kid: str | None = None) -> SigningKeyData:
    """Generate a new RSA-2048 keypair for JWT signing."""
    private_key = rsa.generate_private_key(
        public_exponent=RSA_PUBLIC_EXPONENT,
        key_size=RSA_KEY_SIZE,
    )
    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode()
    public_pem = (
        private_key.public_key()
        .public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )
        .decode()
    )
    return SigningKeyData(
        kid=kid or dated_kid(),
        private_key_pem=private_pem,
        public_key_pem=public_pem,
    )


def encrypt_private_key(private_pem: str, fernet_key: str) -> str:
    """Encrypt a PEM private key with Fernet for storage in a secret."""
    cipher = Fernet(fernet_key.encode())
    return cipher.encrypt(private_pem.encode()).decode()


def decrypt_private_key(encrypted: str, fernet_key: str) -> str:
    """Decrypt a Fernet-encrypted PEM private key."""
    try:
        cipher = Fernet(fernet_key.encode())
        return cipher.decrypt(normalize_pem(encrypted).encode()).decode()
    except (InvalidToken, ValueError):
        raise InvalidKeyMaterial("Private key could not be decrypted") from None


def normalize_pem(value: str) -> str:
    """Undo the literal ``\\n`` escaping common in single-line secrets."""
    return value.strip().replace("\\n", "\n")


def load_key_pair(kid: str, private_pem: str, public_pem: str) -> KeyPair:
    """Parse and cross-check PEM material into a KeyPair.

    Raises InvalidKeyMaterial when either half does not parse, is not RSA,
    or the public key does not belong to the private key.
    """
    if not kid:
        raise InvalidKeyMaterial("Key id is required")
    try:
        private_key = serialization.load_pem_private_key(
            normalize_pem(private_pem).encode(), password=None
        )
        public_key = serialization.load_pem_public_key(
            normalize_pem(public_pem).encode()
        )
    except (ValueError, TypeError) as exc:
        raise InvalidKeyMaterial(f"Invalid key format: {exc}") from None

    if not isinstance(private_key, RSAPrivateKey) or not isinstance(
        public_key, RSAPublicKey
    ):
        raise InvalidKeyMaterial("Only RSA keys are supported")
    if private_key.public_key().public_numbers() != public_key.public_numbers():
        raise InvalidKeyMaterial("Public key does not match private key")

    return KeyPair(kid=kid, private_key=private_key, public_key=public_key)


def _int_to_base64url(value: int) -> str:
    """Encode an integer as base64url without padding."""
    byte_length = (value.bit_length() + 7) // 8
    raw = value.to_bytes(byte_length, byteorder="big")
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode()


def public_key_to_jwk_entry(public_key: RSAPublicKey, kid: str) -> JWKEntry:
    """Convert an RSA public key to JWK format."""
    if not isinstance(public_key, RSAPublicKey):
        raise TypeError(f"Unsupported public key type: {type(public_key).__name__}")
    numbers = public_key.public_numbers()
    return JWKEntry(
        kid=kid,
        n=_int_to_base64url(numbers.n),
        e=_int_to_base64url(numbers.e),
    )
