"""
Vault Key Rotation — Batch re-wrapping of private keys under a new alias.

Used when a passphrase profile is retired: every listed key is re-encrypted
under ``new_alias`` one at a time. A failure on one key is logged and
counted, and the batch continues; this includes errors raised by
the record store itself. Keys already wrapped under ``new_alias``
are rotated again (fresh salt and IV), so re-running a batch is harmless.

Security Note:
    Plaintext exists in memory only during re-encryption of each key.
    Never log plaintext or ciphertext values.
"""
import logging
from collections.abc import Iterable

from .key_manager import KeyManager

logger = logging.getLogger("signer.keystore")


def rotate_passphrases(
    manager: KeyManager,
    key_ids: Iterable[str],
    new_alias: str,
) -> dict:
    """Rotate the passphrase of every key in ``key_ids`` to ``new_alias``.

    Args:
        manager: KeyManager owning the keys.
        key_ids: Identifiers of the keys to rotate.
        new_alias: Alias whose passphrase wraps the keys afterwards.

    Returns:
        Stats dict with keys: total, rotated, errors, failed (list of the
        key ids that could not be rotated).
    """
    stats = {"total": 0, "rotated": 0, "errors": 0, "failed": []}

    logger.info("Starting passphrase rotation to alias=%s", new_alias)

    for key_id in key_ids:
        stats["total"] += 1
        try:
            manager.rotate_key_passphrase(key_id, new_alias)
            stats["rotated"] += 1
        except Exception as err:
            logger.error(
                "Error rotating key=%s to alias=%s: %s", key_id, new_alias, err,
            )
            stats["errors"] += 1
            stats["failed"].append(key_id)

    logger.info(
        "Passphrase rotation complete: total=%d rotated=%d errors=%d",
        stats["total"], stats["rotated"], stats["errors"],
    )
    return stats
