"""In-memory registry of signing key pairs with one active key.

Readers never lock: every mutation builds a new immutable snapshot under a
writer lock and publishes it with a single reference assignment, so a reader
sees either the old or the new state, never a mix.
"""

import logging
import threading
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey, RSAPublicKey

from authgw.core.errors import UnknownKey
from authgw.crypto.types import KeyPair, KeyStoreStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Snapshot:
    active_kid: str | None = None
    keys: Mapping[str, KeyPair] = field(default_factory=lambda: MappingProxyType({}))


class KeyStore:
    """Holds ``kid -> KeyPair`` plus the kid used for new signatures."""

    def __init__(self) -> None:
        self._write_lock = threading.Lock()
        self._snapshot = _Snapshot()

    def _publish(self, active_kid: str | None, keys: dict[str, KeyPair]) -> None:
        self._snapshot = _Snapshot(active_kid=active_kid, keys=MappingProxyType(keys))

    # -- reads ---------------------------------------------------------------

    def active(self) -> KeyPair | None:
        """Return the active pair, read from a single snapshot."""
        snap = self._snapshot
        if snap.active_kid is None:
            return None
        return snap.keys.get(snap.active_kid)

    def active_kid(self) -> str | None:
        return self._snapshot.active_kid

    def active_private_key(self) -> RSAPrivateKey | None:
        pair = self.active()
        return pair.private_key if pair is not None else None

    def public_key(self, kid: str | None) -> RSAPublicKey | None:
        if not kid:
            return None
        pair = self._snapshot.keys.get(kid)
        return pair.public_key if pair is not None else None

    def all_public_keys(self) -> dict[str, RSAPublicKey]:
        return {kid: pair.public_key for kid, pair in self._snapshot.keys.items()}

    def all_kids(self) -> set[str]:
        return set(self._snapshot.keys)

    def status(self) -> KeyStoreStatus:
        snap = self._snapshot
        return KeyStoreStatus(
            active_kid=snap.active_kid,
            available_kids=sorted(snap.keys),
            key_count=len(snap.keys),
        )

    def __len__(self) -> int:
        return len(self._snapshot.keys)

    # -- writes --------------------------------------------------------------

    def add(self, pair: KeyPair, *, make_active: bool = False) -> None:
        """Insert or overwrite ``pair``; optionally make it the active key.

        The first key added to an empty store always becomes active.
        """
        with self._write_lock:
            snap = self._snapshot
            keys = dict(snap.keys)
            replaced = pair.kid in keys
            keys[pair.kid] = pair
            activate = make_active or snap.active_kid is None
            active_kid = pair.kid if activate else snap.active_kid
            self._publish(active_kid, keys)
        logger.info(
            "%s key %s%s",
            "Replaced" if replaced else "Added",
            pair.kid,
            " (active)" if activate else "",
            extra={"kid": pair.kid},
        )

    def remove(self, kid: str) -> bool:
        """Delete ``kid`` unless it is active or unknown. Returns True if removed."""
        with self._write_lock:
            snap = self._snapshot
            if kid not in snap.keys:
                logger.warning("Key not found for removal: %s", kid)
                return False
            if kid == snap.active_kid:
                logger.warning("Cannot remove active key: %s", kid)
                return False
            keys = dict(snap.keys)
            del keys[kid]
            self._publish(snap.active_kid, keys)
        logger.info("Removed key %s", kid, extra={"kid": kid})
        return True

    def set_active(self, kid: str) -> None:
        """Make ``kid`` the signing key. Raises UnknownKey if absent."""
        with self._write_lock:
            snap = self._snapshot
            if kid not in snap.keys:
                raise UnknownKey(f"Key not found: {kid}")
            self._publish(kid, dict(snap.keys))
        logger.info("Active key id changed to %s", kid, extra={"kid": kid})
