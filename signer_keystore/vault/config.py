"""
Keystore Configuration — validated settings read from the environment.

    KEYSTORE_DEFAULT_ALIAS   = <alias used to wrap newly added keys>
    KEYSTORE_KEYWRAP_ALG     = PBES2-HS256+A128KW | PBES2-HS384+A192KW | PBES2-HS512+A256KW
    KEYSTORE_ENCRYPTION_ALG  = A128GCM | A192GCM | A256GCM
    KEYSTORE_KDF_ITERATIONS  = <PBKDF2 iteration count>
    KEYSTORE_DB_PATH         = <sqlite file>; in-memory store when unset

Security Note:
    Passphrases are never part of this configuration; they come from the
    passphrase retriever.
"""
import os
import secrets
import logging
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from .crypto import (
    DEFAULT_ITERATIONS,
    ENCRYPTION_ALG,
    ENCRYPTION_ALGORITHMS,
    KEYWRAP_ALG,
    KEYWRAP_ALGORITHMS,
    MAX_ITERATIONS,
    MIN_ITERATIONS,
)

logger = logging.getLogger("signer.keystore")

DEFAULT_ALIAS = "signer"


def generate_passphrase(nbytes: int = 32) -> str:
    """Generate a random URL-safe passphrase.

    This is a utility for operators provisioning a new alias.
    """
    return secrets.token_urlsafe(nbytes)


class KeyStoreConfig(BaseModel):
    """Validated keystore configuration."""

    default_alias: str = Field(default=DEFAULT_ALIAS, min_length=1)
    keywrap_alg: str = Field(default=KEYWRAP_ALG)
    encryption_alg: str = Field(default=ENCRYPTION_ALG)
    kdf_iterations: int = Field(
        default=DEFAULT_ITERATIONS, ge=MIN_ITERATIONS, le=MAX_ITERATIONS
    )
    db_path: Optional[str] = None

    @field_validator("keywrap_alg")
    @classmethod
    def validate_keywrap(cls, v: str) -> str:
        """Validate the key-wrap algorithm is supported."""
        if v not in KEYWRAP_ALGORITHMS:
            raise ValueError(f"Unsupported key wrap algorithm: {v}")
        return v

    @field_validator("encryption_alg")
    @classmethod
    def validate_encryption(cls, v: str) -> str:
        """Validate the content-encryption algorithm is supported."""
        if v not in ENCRYPTION_ALGORITHMS:
            raise ValueError(f"Unsupported encryption algorithm: {v}")
        return v

    @classmethod
    def from_env(cls) -> "KeyStoreConfig":
        """Create KeyStoreConfig by loading values from environment.

        Returns:
            Populated KeyStoreConfig instance.
        """
        config = cls(
            default_alias=os.environ.get("KEYSTORE_DEFAULT_ALIAS", DEFAULT_ALIAS),
            keywrap_alg=os.environ.get("KEYSTORE_KEYWRAP_ALG", KEYWRAP_ALG),
            encryption_alg=os.environ.get("KEYSTORE_ENCRYPTION_ALG", ENCRYPTION_ALG),
            kdf_iterations=int(
                os.environ.get("KEYSTORE_KDF_ITERATIONS", DEFAULT_ITERATIONS)
            ),
            db_path=os.environ.get("KEYSTORE_DB_PATH") or None,
        )
        logger.debug(
            "Keystore config: alias=%s keywrap=%s enc=%s db=%s",
            config.default_alias, config.keywrap_alg,
            config.encryption_alg, config.db_path or "<memory>",
        )
        return config
