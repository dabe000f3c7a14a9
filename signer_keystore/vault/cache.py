"""
In-memory cache of decrypted private keys.

The lock guards the dictionary only. Callers must never hold it, or call
into this class, while waiting on passphrase retrieval or store I/O.

Security Note:
    Decrypted keys live in process memory until removed or the process
    exits. This is an accepted limitation for a signing service.
"""
import threading
from typing import Optional

from ..data import PrivateKey


class KeyCache:
    """Thread-safe key_id -> PrivateKey mapping."""

    def __init__(self):
        self._keys: dict[str, PrivateKey] = {}
        self._lock = threading.Lock()

    def get(self, key_id: str) -> Optional[PrivateKey]:
        with self._lock:
            return self._keys.get(key_id)

    def set(self, key: PrivateKey) -> None:
        with self._lock:
            self._keys[key.key_id] = key

    def pop(self, key_id: str) -> Optional[PrivateKey]:
        with self._lock:
            return self._keys.pop(key_id, None)

    def clear(self) -> None:
        with self._lock:
            self._keys.clear()

    def __contains__(self, key_id: object) -> bool:
        with self._lock:
            return key_id in self._keys

    def __len__(self) -> int:
        with self._lock:
            return len(self._keys)
