"""Cached JSON Web Key Set derived from the KeyStore."""

import logging
import threading

from authgw.crypto.keys import public_key_to_jwk_entry
from authgw.crypto.keystore import KeyStore
from authgw.crypto.types import JWKEntry, JWKSResponse

logger = logging.getLogger(__name__)


class JWKSPublisher:
    """Publishes every known public key.

    The publisher does not observe the store: whoever mutates the store must
    call ``refresh()`` before returning.
    """

    def __init__(self, key_store: KeyStore) -> None:
        self._keys = key_store
        self._lock = threading.Lock()
        self._cache: JWKSResponse | None = None

    def _generate(self) -> JWKSResponse:
        entries: list[JWKEntry] = []
        for kid, public_key in sorted(self._keys.all_public_keys().items()):
            try:
                entries.append(public_key_to_jwk_entry(public_key, kid))
            except (TypeError, ValueError):
                logger.exception("Failed to convert key to JWK (kid: %s)", kid)
        if not entries:
            logger.warning("JWKS generated with no keys")
        return JWKSResponse(keys=entries)

    def document(self) -> JWKSResponse:
        """Return the cached document, generating it on first use."""
        cached = self._cache
        if cached is not None:
            return cached
        with self._lock:
            if self._cache is None:
                self._cache = self._generate()
            return self._cache

    def refresh(self) -> JWKSResponse:
        """Regenerate the document from the current store contents."""
        with self._lock:
            self._cache = self._generate()
            logger.info("JWKS cache refreshed  keys=%d", len(self._cache.keys))
            return self._cache
