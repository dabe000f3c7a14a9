"""Signer Keystore.

Persistent, encrypted private-key store for a signing service.
"""
from .version import __version__
from .data import KeyAlgorithm, PrivateKey, PrivateKeyRecord, generate_private_key
from .exceptions import (
    KeyStoreError,
    KeyValidationError,
    PassphraseRetrievalError,
    EncryptionError,
    DecryptionError,
    DuplicateKeyError,
    KeyNotFoundError,
    StoreError,
)
from .vault import KeyManager, KeyStoreConfig
