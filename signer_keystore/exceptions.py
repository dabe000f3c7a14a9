"""
Keystore Exceptions.

Every public KeyManager operation raises one of these; lower-level errors
are chained with ``raise ... from``.

Security Note:
    Messages carry key identifiers and aliases only, never secrets.
"""


class KeyStoreError(Exception):
    """Base class for all keystore errors."""


class KeyValidationError(KeyStoreError, ValueError):
    """Missing or malformed input."""


class PassphraseRetrievalError(KeyStoreError):
    """The passphrase retriever failed to produce a secret."""


class EncryptionError(KeyStoreError):
    """Private key material could not be sealed."""


class DecryptionError(KeyStoreError):
    """Wrong passphrase or corrupted ciphertext.

    Both causes raise this same error with the same message.
    """


class DuplicateKeyError(KeyStoreError):
    """A record with this key identifier already exists."""

    def __init__(self, key_id: str):
        self.key_id = key_id
        super().__init__(f"private key already exists: {key_id}")


class KeyNotFoundError(KeyStoreError, KeyError):
    """No record with this key identifier."""

    def __init__(self, key_id: str):
        self.key_id = key_id
        super().__init__(f"private key not found: {key_id}")

    def __str__(self) -> str:
        # KeyError.__str__ would repr() the message
        return str(self.args[0])


class StoreError(KeyStoreError):
    """Generic record store failure."""
