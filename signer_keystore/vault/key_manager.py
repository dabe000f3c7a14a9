"""
KeyManager — Encrypted private key storage for a signing service.

Public API:
- ``add_key(private_key)`` — encrypt under the default alias, persist, cache
- ``get_key(key_id)`` — cache → store + decrypt → cache
- ``remove_key(key_id)`` — drop from cache, then delete the record
- ``rotate_key_passphrase(key_id, new_alias)`` — re-wrap under a new alias
- ``list_keys()`` — always empty; not a discovery mechanism

Concurrency:
    The cache lock covers only the map operation itself. It is never held
    while a passphrase is retrieved or the store is read or written, so a
    slow passphrase prompt for one key does not block other keys.
    Operations on the *same* key id are not serialized against each other at
    the store level: a cache miss racing a removal can put the removed key
    back in the cache, and two rotations of one key can lose an update.
    This is accepted for the low-concurrency administrative path that
    rotates and removes keys.

Security Note:
    Never log passphrases, plaintext or ciphertext values. Only key ids and
    aliases.
"""
import logging
from typing import Optional, Union

from ..data import PrivateKey, PrivateKeyRecord, utcnow
from ..exceptions import (
    KeyNotFoundError,
    KeyValidationError,
    PassphraseRetrievalError,
)
from .cache import KeyCache
from .config import KeyStoreConfig
from .crypto import (
    DEFAULT_ITERATIONS,
    ENCRYPTION_ALG,
    KEYWRAP_ALG,
    open_private_key,
    seal_private_key,
)
from .passphrase import PassphraseRetriever
from .store import KeyRecordStore, MemoryKeyRecordStore, SQLiteKeyRecordStore

logger = logging.getLogger("signer.keystore")


class KeyManager:
    """Persists private keys encrypted under retrievable passphrases.

    Args:
        retriever: Passphrase retriever callable.
        default_alias: Alias that wraps newly added keys.
        store: Record store; an in-memory store when omitted.
        keywrap_alg: PBES2 key-wrap algorithm for new ciphertexts.
        encryption_alg: AES-GCM content algorithm for new ciphertexts.
        kdf_iterations: PBKDF2 iteration count for new ciphertexts.
    """

    def __init__(
        self,
        retriever: PassphraseRetriever,
        default_alias: str,
        store: Optional[KeyRecordStore] = None,
        keywrap_alg: str = KEYWRAP_ALG,
        encryption_alg: str = ENCRYPTION_ALG,
        kdf_iterations: int = DEFAULT_ITERATIONS,
    ):
        self._validate_name(default_alias, "default alias")
        self._retriever = retriever
        self._default_alias = default_alias
        self._store = store if store is not None else MemoryKeyRecordStore()
        self._keywrap_alg = keywrap_alg
        self._encryption_alg = encryption_alg
        self._kdf_iterations = kdf_iterations
        self._cache = KeyCache()

    @classmethod
    def from_config(
        cls,
        config: KeyStoreConfig,
        retriever: PassphraseRetriever,
    ) -> "KeyManager":
        """Build a KeyManager from validated configuration.

        Uses an SQLite store at ``config.db_path`` or an in-memory store.
        """
        store = (
            SQLiteKeyRecordStore(config.db_path)
            if config.db_path else MemoryKeyRecordStore()
        )
        return cls(
            retriever,
            config.default_alias,
            store=store,
            keywrap_alg=config.keywrap_alg,
            encryption_alg=config.encryption_alg,
            kdf_iterations=config.kdf_iterations,
        )

    @property
    def store(self) -> KeyRecordStore:
        return self._store

    @property
    def cache(self) -> KeyCache:
        return self._cache

    @property
    def default_alias(self) -> str:
        return self._default_alias

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    @staticmethod
    def _validate_name(value: str, what: str) -> None:
        """Raise KeyValidationError for an empty or non-string name."""
        if not isinstance(value, str) or not value:
            raise KeyValidationError(f"{what} must be a non-empty string")

    # ------------------------------------------------------------------
    # Passphrase helper
    # ------------------------------------------------------------------

    def _passphrase(self, key_id: str, alias: str, create: bool) -> Union[str, bytes]:
        """Ask the retriever once for the passphrase of ``alias``."""
        try:
            passphrase, alias_used = self._retriever(key_id, alias, create, 1)
        except PassphraseRetrievalError:
            raise
        except Exception as err:
            raise PassphraseRetrievalError(
                f"Unable to retrieve passphrase for key {key_id} "
                f"(alias {alias!r}): {err}"
            ) from err
        if not isinstance(passphrase, (str, bytes)):
            raise PassphraseRetrievalError(
                f"Passphrase for key {key_id} (alias {alias!r}) must be "
                f"str or bytes, got {type(passphrase).__name__}"
            )
        if not passphrase:
            raise PassphraseRetrievalError(
                f"Empty passphrase for key {key_id} (alias {alias!r})"
            )
        if alias_used and alias_used != alias:
            logger.debug(
                "Retriever answered key=%s alias=%s with alias=%s",
                key_id, alias, alias_used,
            )
        return passphrase

    def _load(self, key_id: str) -> PrivateKeyRecord:
        record = self._store.find_by_id(key_id)
        if record is None:
            raise KeyNotFoundError(key_id)
        return record

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def add_key(self, private_key: PrivateKey) -> None:
        """Encrypt and persist a new private key, then cache it.

        Args:
            private_key: Decrypted key; its ``key_id`` must be unused.

        Raises:
            KeyValidationError: If the key is not a PrivateKey with private
                bytes.
            PassphraseRetrievalError: If no passphrase could be obtained.
            EncryptionError: If sealing failed.
            DuplicateKeyError: If the key id already exists.
            StoreError: On other store failures.
        """
        if not isinstance(private_key, PrivateKey):
            raise KeyValidationError("add_key expects a PrivateKey")
        if not private_key.private:
            raise KeyValidationError("private key material is empty")
        key_id = private_key.key_id
        self._validate_name(key_id, "key id")

        passphrase = self._passphrase(key_id, self._default_alias, True)
        ciphertext = seal_private_key(
            private_key.private,
            passphrase,
            keywrap_alg=self._keywrap_alg,
            encryption_alg=self._encryption_alg,
            iterations=self._kdf_iterations,
        )
        now = utcnow()
        self._store.create(
            PrivateKeyRecord(
                key_id=key_id,
                algorithm=private_key.algorithm,
                public=private_key.public,
                private=ciphertext,
                passphrase_alias=self._default_alias,
                encryption_alg=self._encryption_alg,
                keywrap_alg=self._keywrap_alg,
                created_at=now,
                updated_at=now,
            )
        )
        self._cache.set(private_key)
        logger.debug("Key added: key=%s alias=%s", key_id, self._default_alias)

    def get_key(self, key_id: str) -> PrivateKey:
        """Return the decrypted private key.

        A cached key is returned without touching the store or retriever.

        Raises:
            KeyValidationError: If key_id is empty.
            KeyNotFoundError: If no record exists.
            PassphraseRetrievalError: If no passphrase could be obtained.
            DecryptionError: Wrong passphrase or corrupted ciphertext.
        """
        self._validate_name(key_id, "key id")
        cached = self._cache.get(key_id)
        if cached is not None:
            return cached

        logger.debug("Key cache miss: key=%s", key_id)
        record = self._load(key_id)
        passphrase = self._passphrase(key_id, record.passphrase_alias, False)
        private = open_private_key(record.private, passphrase)
        private_key = PrivateKey(
            algorithm=record.algorithm,
            public=record.public,
            private=private,
            key_id=record.key_id,
        )
        # concurrent misses may both land here; values are identical
        self._cache.set(private_key)
        return private_key

    def remove_key(self, key_id: str) -> None:
        """Drop the key from cache, then delete its record.

        Raises:
            KeyNotFoundError: If no record exists. The cache entry, if any,
                has already been removed.
        """
        self._validate_name(key_id, "key id")
        self._cache.pop(key_id)
        self._store.delete(key_id)
        logger.debug("Key removed: key=%s", key_id)

    def rotate_key_passphrase(self, key_id: str, new_alias: str) -> None:
        """Re-wrap a key's ciphertext under the passphrase of ``new_alias``.

        The cached key is left as is: the plaintext does not change.

        Raises:
            KeyValidationError: If key_id or new_alias is empty.
            KeyNotFoundError: If no record exists.
            PassphraseRetrievalError: If either passphrase is unavailable.
            DecryptionError: If the current passphrase does not open the key.
            EncryptionError: If re-sealing failed.
        """
        self._validate_name(key_id, "key id")
        self._validate_name(new_alias, "passphrase alias")

        record = self._load(key_id)
        passphrase = self._passphrase(key_id, record.passphrase_alias, False)
        private = open_private_key(record.private, passphrase)

        new_passphrase = self._passphrase(key_id, new_alias, True)
        ciphertext = seal_private_key(
            private,
            new_passphrase,
            keywrap_alg=self._keywrap_alg,
            encryption_alg=self._encryption_alg,
            iterations=self._kdf_iterations,
        )
        old_alias = record.passphrase_alias
        self._store.update(
            record.model_copy(
                update={
                    "private": ciphertext,
                    "passphrase_alias": new_alias,
                    "encryption_alg": self._encryption_alg,
                    "keywrap_alg": self._keywrap_alg,
                    "updated_at": utcnow(),
                }
            )
        )
        logger.debug(
            "Key passphrase rotated: key=%s alias=%s -> %s",
            key_id, old_alias, new_alias,
        )

    def list_keys(self) -> dict[str, str]:
        """Return an empty mapping; this store does not enumerate keys."""
        return {}

