"""
Passphrase retrieval — the external credential source for key wrapping.

A retriever is any callable with the signature::

    retriever(key_id: str, alias: str, create: bool, attempt: int)
        -> tuple[str | bytes, str]

returning ``(passphrase, alias_used)``. Failure is signalled by raising.
``create`` is True when the passphrase will wrap key material for the first
time under ``alias``; ``attempt`` counts tries for interactive retrievers.

Security Note:
    Retrievers must never log the secret. Only key ids and aliases.
"""
import os
import logging
from typing import NamedTuple, Optional, Protocol, Union

from ..exceptions import PassphraseRetrievalError

logger = logging.getLogger("signer.keystore")

ENV_PREFIX = "KEYSTORE_PASSPHRASE_"


class PassphraseResult(NamedTuple):
    passphrase: Union[str, bytes]
    alias: str


class PassphraseRetriever(Protocol):
    def __call__(
        self, key_id: str, alias: str, create: bool, attempt: int
    ) -> tuple[Union[str, bytes], str]:
        ...


def constant_retriever(passphrase: Union[str, bytes]) -> PassphraseRetriever:
    """Retriever that always answers with the same passphrase."""
    def retriever(key_id: str, alias: str, create: bool, attempt: int):
        return PassphraseResult(passphrase, alias)
    return retriever


class AliasPassphraseRetriever:
    """Retriever backed by a fixed alias -> passphrase table.

    Args:
        passphrases: Mapping of alias to secret.
    """

    def __init__(self, passphrases: dict[str, Union[str, bytes]]):
        self._passphrases = dict(passphrases)

    def __call__(
        self, key_id: str, alias: str, create: bool, attempt: int
    ) -> PassphraseResult:
        try:
            return PassphraseResult(self._passphrases[alias], alias)
        except KeyError:
            raise PassphraseRetrievalError(
                f"No passphrase configured for alias {alias!r}"
            ) from None


class EnvPassphraseRetriever:
    """Retriever reading passphrases from environment variables.

    The secret for alias ``root-2024`` is read from
    ``KEYSTORE_PASSPHRASE_ROOT_2024`` (with the default prefix). The
    environment is read on every call so rotated variables are picked up
    without a restart.
    """

    def __init__(self, prefix: str = ENV_PREFIX, environ: Optional[dict] = None):
        self.prefix = prefix
        self._environ = os.environ if environ is None else environ

    def env_name(self, alias: str) -> str:
        return f"{self.prefix}{alias.upper().replace('-', '_')}"

    def __call__(
        self, key_id: str, alias: str, create: bool, attempt: int
    ) -> PassphraseResult:
        name = self.env_name(alias)
        value = self._environ.get(name)
        if not value:
            raise PassphraseRetrievalError(
                f"Passphrase for alias {alias!r} not set; define {name}"
            )
        logger.debug("Passphrase for alias=%s read from %s", alias, name)
        return PassphraseResult(value, alias)
