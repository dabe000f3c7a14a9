"""Key Vault — Private keys encrypted at rest under rotatable passphrases.

Security Note (Threat Model):
    Decrypted private keys are cached in process memory for the lifetime of
    the process. A memory dump of the signing service exposes them.
    This is an accepted limitation — mitigation requires HSM/secure
    enclave integration which is out of scope.
"""

from .key_manager import KeyManager
from .key_rotation import rotate_passphrases
from .cache import KeyCache
from .config import KeyStoreConfig, generate_passphrase
from .crypto import open_private_key, seal_private_key
from .passphrase import (
    AliasPassphraseRetriever,
    EnvPassphraseRetriever,
    PassphraseResult,
    PassphraseRetriever,
    constant_retriever,
)
from .store import KeyRecordStore, MemoryKeyRecordStore, SQLiteKeyRecordStore

__all__ = [
    "KeyManager",
    "rotate_passphrases",
    "KeyCache",
    "KeyStoreConfig",
    "generate_passphrase",
    "seal_private_key",
    "open_private_key",
    "PassphraseResult",
    "PassphraseRetriever",
    "constant_retriever",
    "AliasPassphraseRetriever",
    "EnvPassphraseRetriever",
    "KeyRecordStore",
    "MemoryKeyRecordStore",
    "SQLiteKeyRecordStore",
]
