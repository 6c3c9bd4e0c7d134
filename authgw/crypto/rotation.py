"""Key rotation: the only post-startup writer of the KeyStore.

Typical sequence, driven by an operator or a scheduled job::

    rotate("auth-key-2025-02", ...)   # new key signs, old key still verifies
    ... wait at least one token lifetime ...
    purge()                           # drop every non-active key

Every operation validates before mutating and refreshes the JWKS document
before it returns.
"""

import logging
import threading
from datetime import UTC, datetime

from authgw.crypto.jwks import JWKSPublisher
from authgw.crypto.keys import load_key_pair
from authgw.crypto.keystore import KeyStore
from authgw.crypto.types import (
    PurgeResult,
    RotationResult,
    RotationStatus,
    StagedKeyResult,
)

logger = logging.getLogger(__name__)

DEFAULT_PURGE_MIN_AGE_MINUTES = 60


class RotationController:
    """Adds, promotes and purges signing keys."""

    def __init__(self, key_store: KeyStore, publisher: JWKSPublisher) -> None:
        self._keys = key_store
        self._publisher = publisher
        self._lock = threading.Lock()

    def rotate(self, new_kid: str, private_pem: str, public_pem: str) -> RotationResult:
        """Add a key and make it active. The previous key stays verifiable."""
        pair = load_key_pair(new_kid, private_pem, public_pem)
        with self._lock:
            previous = self._keys.active_kid()
            logger.info("Starting key rotation  current=%s new=%s", previous, new_kid)
            self._keys.add(pair, make_active=True)
            self._publisher.refresh()
            total = len(self._keys)
        logger.info(
            "Key rotation completed  active=%s total=%d retained=%s",
            new_kid,
            total,
            previous,
        )
        return RotationResult(previous_active=previous, new_active=new_kid, total_keys=total)

    def add_without_activating(
        self, kid: str, private_pem: str, public_pem: str
    ) -> StagedKeyResult:
        """Publish a key ahead of the cutover without signing with it."""
        pair = load_key_pair(kid, private_pem, public_pem)
        with self._lock:
            self._keys.add(pair, make_active=False)
            self._publisher.refresh()
            active = self._keys.active_kid()
            total = len(self._keys)
        logger.info("Staged key %s, active remains %s", kid, active)
        return StagedKeyResult(kid=kid, active_kid=active, total_keys=total)

    def activate(self, kid: str) -> RotationResult:
        """Promote an already-published key to active."""
        with self._lock:
            previous = self._keys.active_kid()
            self._keys.set_active(kid)
            self._publisher.refresh()
            total = len(self._keys)
        logger.info("Activated key %s, previous %s", kid, previous, extra={"kid": kid})
        return RotationResult(previous_active=previous, new_active=kid, total_keys=total)

    def purge(
        self,
        kids: list[str] | None = None,
        min_age_minutes: int = DEFAULT_PURGE_MIN_AGE_MINUTES,
    ) -> PurgeResult:
        """Remove retired keys; the active key is never removed.

        With an explicit list, each listed key except the active one is
        removed. Without a list every non-active key goes: the store keeps no
        creation or retirement times, so ``min_age_minutes`` cannot be
        enforced here and callers must wait out the grace period themselves.
        """
        with self._lock:
            active = self._keys.active_kid()
            if kids is not None:
                targets = []
                for kid in kids:
                    if kid == active:
                        logger.warning("Cannot purge active key: %s", kid)
                    else:
                        targets.append(kid)
            else:
                logger.info(
                    "Auto-purge of all non-active keys  min_age_minutes=%d "
                    "(not enforced: keys carry no timestamps)",
                    min_age_minutes,
                )
                targets = sorted(self._keys.all_kids() - {active})

            purged = [kid for kid in targets if self._keys.remove(kid)]
            if purged:
                self._publisher.refresh()
            remaining = sorted(self._keys.all_kids())

        logger.info("Key purge completed  removed=%d remaining=%d", len(purged), len(remaining))
        return PurgeResult(purged=purged, active_kid=active, remaining=remaining)

    def status(self) -> RotationStatus:
        state = self._keys.status()
        return RotationStatus(
            active_kid=state.active_kid,
            available_kids=state.available_kids,
            key_count=state.key_count,
            timestamp=datetime.now(UTC),
        )
