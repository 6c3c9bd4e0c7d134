"""Startup loading of signing keys into a KeyStore.

Production reads indexed environment slots::

    JWT_PRIVATE_KEY_1 / JWT_PUBLIC_KEY_1 / JWT_KEY_ID_1
    JWT_PRIVATE_KEY_2 / JWT_PUBLIC_KEY_2 / JWT_KEY_ID_2
    ...

and stops at the first slot missing either key. Development reads a single
private/public PEM file pair.
"""

import logging
from collections.abc import Mapping
from pathlib import Path

from authgw.core.errors import InvalidKeyMaterial
from authgw.core.settings import AuthSettings, SigningSettings
from authgw.crypto.keys import KID_PREFIX, decrypt_private_key, load_key_pair
from authgw.crypto.keystore import KeyStore
from authgw.crypto.types import KeyPair

logger = logging.getLogger(__name__)

PRIVATE_KEY_ENV = "JWT_PRIVATE_KEY_{index}"
PUBLIC_KEY_ENV = "JWT_PUBLIC_KEY_{index}"
KEY_ID_ENV = "JWT_KEY_ID_{index}"


def load_indexed_keys(
    environ: Mapping[str, str], encryption_key: str = ""
) -> list[KeyPair]:
    """Scan ``JWT_*_<n>`` slots from 1 upward until one is missing."""
    pairs: list[KeyPair] = []
    index = 1
    while True:
        private_pem = environ.get(PRIVATE_KEY_ENV.format(index=index), "")
        public_pem = environ.get(PUBLIC_KEY_ENV.format(index=index), "")
        if not private_pem or not public_pem:
            break
        kid = environ.get(KEY_ID_ENV.format(index=index)) or f"{KID_PREFIX}-{index}"
        try:
            if encryption_key:
                private_pem = decrypt_private_key(private_pem, encryption_key)
            pairs.append(load_key_pair(kid, private_pem, public_pem))
        except InvalidKeyMaterial as exc:
            logger.error("Skipping key slot %d (%s): %s", index, kid, exc.message)
        else:
            logger.info("Loaded key from env slot %d: %s", index, kid)
        index += 1
    return pairs


def load_file_keys(signing: SigningSettings) -> list[KeyPair]:
    """Read the configured private/public PEM file pair, if present."""
    private_path = Path(signing.private_key_path)
    public_path = Path(signing.public_key_path)
    if not private_path.is_file() or not public_path.is_file():
        logger.warning(
            "Key files not found (%s, %s)", private_path, public_path
        )
        return []
    try:
        pair = load_key_pair(
            signing.key_id,
            private_path.read_text(encoding="utf-8"),
            public_path.read_text(encoding="utf-8"),
        )
    except (InvalidKeyMaterial, OSError) as exc:
        logger.error("Failed to load key from files (%s): %s", signing.key_id, exc)
        return []
    logger.info("Loaded key from files: %s", pair.kid)
    return [pair]


def resolve_active_kid(kids: set[str], configured: str) -> str | None:
    """Pick the configured kid if loaded, else the lexicographically last one.

    The fallback is a heuristic: with ``<prefix>-<year>-<month>`` ids it tends
    to select the newest key, but nothing guarantees that.
    """
    if configured and configured in kids:
        return configured
    if configured:
        logger.warning("JWT_ACTIVE_KID %s is not among the loaded keys", configured)
    if not kids:
        return None
    return max(kids)


def load_key_store(
    settings: AuthSettings,
    signing: SigningSettings,
    environ: Mapping[str, str],
) -> KeyStore:
    """Build a KeyStore from configuration; an empty store is not an error."""
    store = KeyStore()
    if settings.is_production:
        logger.info("Loading signing keys from environment variables")
        pairs = load_indexed_keys(environ, signing.encryption_key)
    else:
        logger.info("Loading signing keys from local files")
        pairs = load_file_keys(signing)

    for pair in pairs:
        store.add(pair)

    active = resolve_active_kid(store.all_kids(), signing.active_kid)
    if active is None:
        logger.error("No signing keys loaded. Token issuance will fail.")
        return store

    store.set_active(active)
    logger.info("Key store ready  active=%s keys=%d", active, len(store))
    return store
