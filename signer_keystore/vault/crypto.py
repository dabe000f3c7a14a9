"""
Vault Crypto Core — Passphrase-based envelope encryption of private keys.

Private key bytes are sealed into a JWE compact serialization (RFC 7516):

    BASE64URL(header) . BASE64URL(wrapped CEK) . BASE64URL(iv)
        . BASE64URL(ciphertext) . BASE64URL(tag)

- Key wrap:   PBES2 (RFC 7518 §4.8): PBKDF2-HMAC(passphrase, alg||0x00||salt)
              → AES Key Wrap of a random content-encryption key (CEK)
- Content:    AES-GCM under the CEK, protected header as AAD

The header names ``alg``/``enc`` plus the PBKDF2 salt and count, so a blob
can always be opened with the algorithms it was sealed with.

Security Note:
    Never log plaintext, passphrases or ciphertext values.
    Every failure in ``open_private_key`` raises the same DecryptionError so a
    wrong passphrase is indistinguishable from a corrupted blob.
"""
import os
import base64
import binascii
import logging
from typing import Union

import orjson
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from cryptography.hazmat.primitives.keywrap import (
    InvalidUnwrap,
    aes_key_unwrap,
    aes_key_wrap,
)
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from ..exceptions import DecryptionError, EncryptionError

logger = logging.getLogger("signer.keystore")

NONCE_SIZE = 12  # 96-bit GCM IV
SALT_SIZE = 16
TAG_SIZE = 16

# Defaults of the signing service
KEYWRAP_ALG = "PBES2-HS256+A128KW"
ENCRYPTION_ALG = "A256GCM"
DEFAULT_ITERATIONS = 10000

MIN_ITERATIONS = 1000
MAX_ITERATIONS = 1_000_000

# alg -> (PBKDF2 hash, key-encryption key length)
KEYWRAP_ALGORITHMS = {
    "PBES2-HS256+A128KW": (hashes.SHA256, 16),
    "PBES2-HS384+A192KW": (hashes.SHA384, 24),
    "PBES2-HS512+A256KW": (hashes.SHA512, 32),
}

# enc -> content-encryption key length
ENCRYPTION_ALGORITHMS = {
    "A128GCM": 16,
    "A192GCM": 24,
    "A256GCM": 32,
}

_DECRYPT_FAILED = "unable to decrypt private key"


def _b64e(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def _b64d(data: str) -> bytes:
    return base64.urlsafe_b64decode(data + "=" * (-len(data) % 4))


def _as_bytes(passphrase: Union[str, bytes]) -> bytes:
    if isinstance(passphrase, str):
        return passphrase.encode("utf-8")
    return bytes(passphrase)


# ---------------------------------------------------------------------------
# Key derivation
# ---------------------------------------------------------------------------

def derive_wrapping_key(
    passphrase: Union[str, bytes],
    alg: str,
    salt: bytes,
    iterations: int,
) -> bytes:
    """Derive the key-encryption key for a PBES2 algorithm.

    Args:
        passphrase: Secret from the passphrase retriever.
        alg: PBES2 algorithm name, used both to pick the hash and as the
            salt prefix.
        salt: Random salt input (``p2s``).
        iterations: PBKDF2 iteration count (``p2c``).

    Returns:
        Key-encryption key sized for the AES Key Wrap variant of ``alg``.
    """
    hash_cls, length = KEYWRAP_ALGORITHMS[alg]
    kdf = PBKDF2HMAC(
        algorithm=hash_cls(),
        length=length,
        salt=alg.encode("ascii") + b"\x00" + salt,
        iterations=iterations,
    )
    return kdf.derive(_as_bytes(passphrase))


# ---------------------------------------------------------------------------
# Seal / open
# ---------------------------------------------------------------------------

def seal_private_key(
    plaintext: bytes,
    passphrase: Union[str, bytes],
    keywrap_alg: str = KEYWRAP_ALG,
    encryption_alg: str = ENCRYPTION_ALG,
    iterations: int = DEFAULT_ITERATIONS,
) -> str:
    """Encrypt private key bytes under a passphrase.

    Args:
        plaintext: Private key bytes.
        passphrase: Wrapping secret.
        keywrap_alg: PBES2 key-wrap algorithm.
        encryption_alg: AES-GCM content-encryption algorithm.
        iterations: PBKDF2 iteration count.

    Returns:
        JWE compact serialization string.

    Raises:
        EncryptionError: On unsupported algorithms, empty inputs or a
            failure of the underlying primitives.
    """
    if keywrap_alg not in KEYWRAP_ALGORITHMS:
        raise EncryptionError(f"Unsupported key wrap algorithm: {keywrap_alg}")
    if encryption_alg not in ENCRYPTION_ALGORITHMS:
        raise EncryptionError(f"Unsupported encryption algorithm: {encryption_alg}")
    if not MIN_ITERATIONS <= iterations <= MAX_ITERATIONS:
        raise EncryptionError(
            f"KDF iterations must be between {MIN_ITERATIONS} and {MAX_ITERATIONS}"
        )
    if not plaintext:
        raise EncryptionError("Refusing to seal empty private key material")
    if not passphrase:
        raise EncryptionError("Refusing to seal under an empty passphrase")

    try:
        salt = os.urandom(SALT_SIZE)
        kek = derive_wrapping_key(passphrase, keywrap_alg, salt, iterations)
        cek = os.urandom(ENCRYPTION_ALGORITHMS[encryption_alg])
        wrapped = aes_key_wrap(kek, cek)

        header = {
            "alg": keywrap_alg,
            "enc": encryption_alg,
            "p2c": iterations,
            "p2s": _b64e(salt),
        }
        protected = _b64e(orjson.dumps(header))
        nonce = os.urandom(NONCE_SIZE)
        sealed = AESGCM(cek).encrypt(nonce, plaintext, protected.encode("ascii"))
    except (ValueError, TypeError) as err:
        raise EncryptionError(f"Failed to seal private key: {err}") from err

    ct, tag = sealed[:-TAG_SIZE], sealed[-TAG_SIZE:]
    return ".".join(
        (protected, _b64e(wrapped), _b64e(nonce), _b64e(ct), _b64e(tag))
    )


def read_header(blob: str) -> dict:
    """Return the protected header of a sealed blob.

    Raises:
        DecryptionError: If the blob is not a well-formed JWE.
    """
    try:
        protected = blob.split(".", 1)[0]
        header = orjson.loads(_b64d(protected))
    except (AttributeError, ValueError, binascii.Error, orjson.JSONDecodeError):
        raise DecryptionError(_DECRYPT_FAILED) from None
    if not isinstance(header, dict):
        raise DecryptionError(_DECRYPT_FAILED)
    return header


def open_private_key(blob: str, passphrase: Union[str, bytes]) -> bytes:
    """Decrypt a blob produced by ``seal_private_key``.

    The algorithms are taken from the blob's own header.

    Args:
        blob: JWE compact serialization.
        passphrase: Wrapping secret.

    Returns:
        Private key bytes.

    Raises:
        DecryptionError: Wrong passphrase, tampered or malformed blob.
    """
    parts = blob.split(".") if isinstance(blob, str) else []
    if len(parts) != 5:
        raise DecryptionError(_DECRYPT_FAILED)
    header = read_header(blob)
    alg = header.get("alg")
    enc = header.get("enc")
    iterations = header.get("p2c")
    if (
        alg not in KEYWRAP_ALGORITHMS
        or enc not in ENCRYPTION_ALGORITHMS
        or not isinstance(iterations, int)
        or not MIN_ITERATIONS <= iterations <= MAX_ITERATIONS
        or not isinstance(header.get("p2s"), str)
    ):
        raise DecryptionError(_DECRYPT_FAILED)

    try:
        salt = _b64d(header["p2s"])
        wrapped, nonce, ct, tag = (_b64d(p) for p in parts[1:])
        if len(nonce) != NONCE_SIZE or len(tag) != TAG_SIZE:
            raise ValueError("bad iv or tag length")
        kek = derive_wrapping_key(passphrase, alg, salt, iterations)
        cek = aes_key_unwrap(kek, wrapped)
        if len(cek) != ENCRYPTION_ALGORITHMS[enc]:
            raise ValueError("content key size does not match enc")
        return AESGCM(cek).decrypt(nonce, ct + tag, parts[0].encode("ascii"))
    except (InvalidUnwrap, InvalidTag, ValueError, TypeError, binascii.Error):
        raise DecryptionError(_DECRYPT_FAILED) from None
