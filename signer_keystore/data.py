"""
Key data model — decrypted keys, persisted records and key generation.

``PrivateKey`` is the in-memory (decrypted) form held by the cache.
``PrivateKeyRecord`` is the at-rest row handed to a record store; its
``private`` field is an opaque, self-describing JWE blob.
"""
import base64
import hashlib
from enum import Enum
from typing import Any, Optional
from datetime import datetime, timezone

import orjson
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec, ed25519, rsa


class KeyAlgorithm(str, Enum):
    """Key algorithm identifiers understood by the signing service."""
    ED25519 = "ed25519"
    ECDSA = "ecdsa"
    RSA = "rsa"
    ECDSA_X509 = "ecdsa-x509"
    RSA_X509 = "rsa-x509"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def key_id_for(algorithm: str, public: bytes) -> str:
    """Content-derived key identifier.

    SHA-256 over the canonical JSON form of the public half of the key:
    ``{"keytype": ..., "keyval": {"private": null, "public": <b64>}}``
    with sorted keys and no whitespace.
    """
    canonical = orjson.dumps(
        {
            "keytype": algorithm,
            "keyval": {
                "private": None,
                "public": base64.b64encode(public).decode("ascii"),
            },
        },
        option=orjson.OPT_SORT_KEYS,
    )
    return hashlib.sha256(canonical).hexdigest()


def _check_algorithm(value: str) -> str:
    if isinstance(value, KeyAlgorithm):
        return value.value
    try:
        return KeyAlgorithm(value).value
    except ValueError:
        raise ValueError(f"Unsupported key algorithm: {value!r}") from None


class PrivateKey(BaseModel):
    """A decrypted private key.

    ``key_id`` is derived from algorithm and public bytes when not given.
    Instances are immutable, so a cached key cannot be altered by callers.
    Private bytes are excluded from ``repr``.
    """

    model_config = ConfigDict(frozen=True)

    algorithm: str
    public: bytes
    private: bytes = Field(repr=False)
    key_id: str = ""

    @field_validator("algorithm", mode="before")
    @classmethod
    def validate_algorithm(cls, v: str) -> str:
        return _check_algorithm(v)

    @model_validator(mode="before")
    @classmethod
    def derive_key_id(cls, data: Any) -> Any:
        if not isinstance(data, dict) or data.get("key_id"):
            return data
        public = data.get("public")
        if isinstance(public, str):
            public = public.encode("utf-8")
        if not isinstance(public, (bytes, bytearray)):
            return data
        try:
            algorithm = _check_algorithm(data.get("algorithm"))
        except ValueError:
            # reported by the algorithm field validator
            return data
        return {**data, "key_id": key_id_for(algorithm, bytes(public))}


class PrivateKeyRecord(BaseModel):
    """Persisted row for one private key.

    Only ``private``, ``passphrase_alias`` and ``updated_at`` change after
    creation, and only through passphrase rotation.
    """

    key_id: str
    algorithm: str
    public: bytes
    private: str = Field(repr=False)
    passphrase_alias: str
    encryption_alg: str
    keywrap_alg: str
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


def generate_private_key(
    algorithm: str = KeyAlgorithm.ED25519,
    key_id: Optional[str] = None
) -> PrivateKey:
    """Generate fresh key material.

    Args:
        algorithm: ``ed25519``, ``ecdsa`` (P-256) or ``rsa`` (2048 bits).
        key_id: Optional explicit identifier; derived from the public key
            otherwise.

    Returns:
        A new PrivateKey. ed25519 keys are raw 32-byte encodings; ecdsa and
        rsa keys are PKCS#8 DER (private) and SubjectPublicKeyInfo DER
        (public).

    Raises:
        ValueError: If the algorithm cannot be generated here.
    """
    algorithm = _check_algorithm(algorithm)
    if algorithm == KeyAlgorithm.ED25519.value:
        sk = ed25519.Ed25519PrivateKey.generate()
        return PrivateKey(
            algorithm=algorithm,
            public=sk.public_key().public_bytes_raw(),
            private=sk.private_bytes_raw(),
            key_id=key_id or "",
        )
    if algorithm == KeyAlgorithm.ECDSA.value:
        sk = ec.generate_private_key(ec.SECP256R1())
    elif algorithm == KeyAlgorithm.RSA.value:
        sk = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    else:
        raise ValueError(f"Cannot generate keys for algorithm {algorithm!r}")
    private = sk.private_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
    public = sk.public_key().public_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    return PrivateKey(
        algorithm=algorithm, public=public, private=private, key_id=key_id or ""
    )
