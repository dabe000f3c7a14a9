"""
Vault Record Stores — persistence of encrypted private key records.

KeyManager only depends on the ``KeyRecordStore`` protocol:
create / find_by_id / update / delete by key identifier. Each call is atomic
on its own; nothing spans two calls in a transaction, so concurrent
operations on the same key id are not serialized here.

Security Note:
    Records hold ciphertext and public keys only. Never log the ``private``
    column.
"""
import os
import sqlite3
import logging
import threading
from typing import Optional, Protocol
from datetime import datetime

from ..data import PrivateKeyRecord
from ..exceptions import DuplicateKeyError, KeyNotFoundError, StoreError

logger = logging.getLogger("signer.keystore")


class KeyRecordStore(Protocol):
    def create(self, record: PrivateKeyRecord) -> None:
        """Insert a record; DuplicateKeyError if the key id exists."""

    def find_by_id(self, key_id: str) -> Optional[PrivateKeyRecord]:
        """Return the record or None."""

    def update(self, record: PrivateKeyRecord) -> None:
        """Overwrite by key id; KeyNotFoundError if absent."""

    def delete(self, key_id: str) -> None:
        """Remove by key id; KeyNotFoundError if absent."""


class MemoryKeyRecordStore:
    """Dictionary-backed store for tests and single-process deployments.

    Records are copied on the way in and out.
    """

    def __init__(self):
        self._records: dict[str, PrivateKeyRecord] = {}
        self._lock = threading.Lock()

    def create(self, record: PrivateKeyRecord) -> None:
        with self._lock:
            if record.key_id in self._records:
                raise DuplicateKeyError(record.key_id)
            self._records[record.key_id] = record.model_copy()

    def find_by_id(self, key_id: str) -> Optional[PrivateKeyRecord]:
        with self._lock:
            record = self._records.get(key_id)
        return record.model_copy() if record is not None else None

    def update(self, record: PrivateKeyRecord) -> None:
        with self._lock:
            if record.key_id not in self._records:
                raise KeyNotFoundError(record.key_id)
            self._records[record.key_id] = record.model_copy()

    def delete(self, key_id: str) -> None:
        with self._lock:
            if self._records.pop(key_id, None) is None:
                raise KeyNotFoundError(key_id)

    def __len__(self) -> int:
        return len(self._records)


# ---------------------------------------------------------------------------
# SQL statements
# ---------------------------------------------------------------------------

_CREATE_TABLE = """
CREATE TABLE IF NOT EXISTS private_keys (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    key_id TEXT NOT NULL UNIQUE,
    encryption_alg TEXT NOT NULL,
    keywrap_alg TEXT NOT NULL,
    algorithm TEXT NOT NULL,
    passphrase_alias TEXT NOT NULL,
    public BLOB NOT NULL,
    private TEXT NOT NULL
)
"""

_INSERT_KEY = """
INSERT INTO private_keys (
    created_at, updated_at, key_id, encryption_alg, keywrap_alg,
    algorithm, passphrase_alias, public, private
)
VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
"""

_SELECT_KEY = """
SELECT key_id, algorithm, public, private, passphrase_alias,
       encryption_alg, keywrap_alg, created_at, updated_at
FROM private_keys
WHERE key_id = ?
"""

_UPDATE_KEY = """
UPDATE private_keys
SET private = ?, passphrase_alias = ?, encryption_alg = ?,
    keywrap_alg = ?, updated_at = ?
WHERE key_id = ?
"""

_DELETE_KEY = """
DELETE FROM private_keys WHERE key_id = ?
"""


class SQLiteKeyRecordStore:
    """SQLite-backed store using a ``private_keys`` table.

    Args:
        path: Database file, or ``":memory:"``.
    """

    def __init__(self, path: str = "db/keystore.db"):
        if path != ":memory:":
            # If no directory, default to current working directory
            dir_path = os.path.dirname(path) or "."
            os.makedirs(dir_path, exist_ok=True)
        self.path = path
        try:
            self.db = sqlite3.connect(path, check_same_thread=False)
            self.db.execute(_CREATE_TABLE)
            self.db.commit()
        except sqlite3.Error as err:
            raise StoreError(f"Unable to open key database {path}: {err}") from err
        # one connection shared by all threads
        self._lock = threading.Lock()

    def _execute(self, sql: str, params: tuple) -> sqlite3.Cursor:
        with self._lock:
            try:
                cur = self.db.execute(sql, params)
                self.db.commit()
                return cur
            except sqlite3.IntegrityError:
                self.db.rollback()
                raise
            except sqlite3.Error as err:
                self.db.rollback()
                raise StoreError(f"Key database error: {err}") from err

    def _fetch_one(self, sql: str, params: tuple) -> Optional[tuple]:
        with self._lock:
            try:
                return self.db.execute(sql, params).fetchone()
            except sqlite3.Error as err:
                raise StoreError(f"Key database error: {err}") from err

    def create(self, record: PrivateKeyRecord) -> None:
        try:
            self._execute(
                _INSERT_KEY,
                (
                    record.created_at.isoformat(),
                    record.updated_at.isoformat(),
                    record.key_id,
                    record.encryption_alg,
                    record.keywrap_alg,
                    record.algorithm,
                    record.passphrase_alias,
                    record.public,
                    record.private,
                ),
            )
        except sqlite3.IntegrityError as err:
            raise DuplicateKeyError(record.key_id) from err

    def find_by_id(self, key_id: str) -> Optional[PrivateKeyRecord]:
        row = self._fetch_one(_SELECT_KEY, (key_id,))
        if row is None:
            return None
        (
            key_id, algorithm, public, private, alias,
            encryption_alg, keywrap_alg, created_at, updated_at,
        ) = row
        try:
            return PrivateKeyRecord(
                key_id=key_id,
                algorithm=algorithm,
                public=bytes(public),
                private=private,
                passphrase_alias=alias,
                encryption_alg=encryption_alg,
                keywrap_alg=keywrap_alg,
                created_at=datetime.fromisoformat(created_at),
                updated_at=datetime.fromisoformat(updated_at),
            )
        except (TypeError, ValueError) as err:
            # pydantic.ValidationError is a ValueError
            raise StoreError(f"Corrupted key record {key_id}: {err}") from err

    def update(self, record: PrivateKeyRecord) -> None:
        try:
            cur = self._execute(
                _UPDATE_KEY,
                (
                    record.private,
                    record.passphrase_alias,
                    record.encryption_alg,
                    record.keywrap_alg,
                    record.updated_at.isoformat(),
                    record.key_id,
                ),
            )
        except sqlite3.IntegrityError as err:
            raise StoreError(f"Key database error: {err}") from err
        if cur.rowcount == 0:
            raise KeyNotFoundError(record.key_id)

    def delete(self, key_id: str) -> None:
        try:
            cur = self._execute(_DELETE_KEY, (key_id,))
        except sqlite3.IntegrityError as err:
            raise StoreError(f"Key database error: {err}") from err
        if cur.rowcount == 0:
            raise KeyNotFoundError(key_id)

    def close(self) -> None:
        with self._lock:
            self.db.close()
