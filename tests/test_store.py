"""
Tests for the key record stores.

Both adapters are run through the same contract tests; SQLite additionally
gets persistence tests against a database file.
"""
import pytest

from signer_keystore.data import PrivateKey, PrivateKeyRecord
from signer_keystore.exceptions import DuplicateKeyError, KeyNotFoundError, StoreError
from signer_keystore.vault import (
    KeyManager,
    MemoryKeyRecordStore,
    SQLiteKeyRecordStore,
    constant_retriever,
)
from signer_keystore.vault.crypto import MIN_ITERATIONS


def make_record(key_id="k1", private="a.b.c.d.e", alias="a1"):
    return PrivateKeyRecord(
        key_id=key_id,
        algorithm="ecdsa",
        public=b"\x00public\xff",
        private=private,
        passphrase_alias=alias,
        encryption_alg="A256GCM",
        keywrap_alg="PBES2-HS256+A128KW",
    )


@pytest.fixture(params=["memory", "sqlite"])
def store(request):
    if request.param == "memory":
        yield MemoryKeyRecordStore()
    else:
        db = SQLiteKeyRecordStore(":memory:")
        yield db
        db.close()


class TestStoreContract:
    """Tests shared by every KeyRecordStore adapter."""

    def test_create_and_find(self, store):
        """Test a created record is found unchanged."""
        record = make_record()
        store.create(record)
        assert store.find_by_id("k1") == record

    def test_find_missing(self, store):
        """Test find_by_id returns None for an unknown id."""
        assert store.find_by_id("missing") is None

    def test_create_duplicate(self, store):
        """Test a duplicate create is rejected and nothing is merged."""
        record = make_record()
        store.create(record)
        with pytest.raises(DuplicateKeyError):
            store.create(make_record(private="x.x.x.x.x", alias="a9"))
        assert store.find_by_id("k1") == record

    def test_update(self, store):
        """Test update overwrites ciphertext and alias."""
        store.create(make_record())
        store.update(make_record(private="n.e.w.c.t", alias="a2"))
        found = store.find_by_id("k1")
        assert found.private == "n.e.w.c.t"
        assert found.passphrase_alias == "a2"

    def test_update_missing(self, store):
        with pytest.raises(KeyNotFoundError):
            store.update(make_record())

    def test_delete(self, store):
        """Test a deleted record is gone and a second delete fails."""
        store.create(make_record())
        store.delete("k1")
        assert store.find_by_id("k1") is None
        with pytest.raises(KeyNotFoundError):
            store.delete("k1")

    def test_records_are_independent(self, store):
        """Test records for different ids do not interfere."""
        store.create(make_record("k1"))
        store.create(make_record("k2", alias="a2"))
        store.delete("k1")
        assert store.find_by_id("k2").passphrase_alias == "a2"


class TestMemoryStore:

    def test_returns_copies(self):
        """Test mutating a returned record does not change the store."""
        store = MemoryKeyRecordStore()
        store.create(make_record())
        found = store.find_by_id("k1")
        found.passphrase_alias = "mutated"
        assert store.find_by_id("k1").passphrase_alias == "a1"


class TestSQLiteStore:
    """Tests for the SQLite adapter against a database file."""

    def test_persists_across_connections(self, tmp_path):
        """Test records survive closing and reopening the database."""
        path = str(tmp_path / "keys" / "keystore.db")
        record = make_record()
        store = SQLiteKeyRecordStore(path)
        store.create(record)
        store.close()

        reopened = SQLiteKeyRecordStore(path)
        assert reopened.find_by_id("k1") == record
        with pytest.raises(DuplicateKeyError):
            reopened.create(make_record())
        reopened.close()

    def test_timestamps_round_trip(self, tmp_path):
        """Test audit timestamps keep their timezone."""
        store = SQLiteKeyRecordStore(str(tmp_path / "keystore.db"))
        record = make_record()
        store.create(record)
        found = store.find_by_id("k1")
        assert found.created_at == record.created_at
        assert found.created_at.tzinfo is not None
        store.close()

    def test_key_manager_restart(self, tmp_path):
        """Test a new KeyManager decrypts keys added by a previous one."""
        path = str(tmp_path / "keystore.db")
        key = PrivateKey(
            algorithm="rsa", public=b"pub", private=b"priv", key_id="k1"
        )
        retriever = constant_retriever("p1")

        first = KeyManager(
            retriever, "a1", store=SQLiteKeyRecordStore(path),
            kdf_iterations=MIN_ITERATIONS,
        )
        first.add_key(key)
        first.store.close()

        second = KeyManager(
            retriever, "a1", store=SQLiteKeyRecordStore(path),
            kdf_iterations=MIN_ITERATIONS,
        )
        assert second.get_key("k1") == key
        second.store.close()

    def test_corrupted_row_is_store_error(self):
        """Test an unparseable stored timestamp surfaces as StoreError."""
        store = SQLiteKeyRecordStore(":memory:")
        store.create(make_record())
        store.db.execute(
            "UPDATE private_keys SET created_at = ? WHERE key_id = ?",
            ("not-a-timestamp", "k1"),
        )
        store.db.commit()
        with pytest.raises(StoreError):
            store.find_by_id("k1")
        store.close()
