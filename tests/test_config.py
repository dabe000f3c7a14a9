"""
Tests for keystore configuration and the stock passphrase retrievers.
"""
import pytest
from pydantic import ValidationError

from signer_keystore.exceptions import PassphraseRetrievalError
from signer_keystore.vault import (
    AliasPassphraseRetriever,
    EnvPassphraseRetriever,
    KeyManager,
    KeyStoreConfig,
    MemoryKeyRecordStore,
    SQLiteKeyRecordStore,
    constant_retriever,
    generate_passphrase,
)


class TestKeyStoreConfig:
    """Tests for KeyStoreConfig validation and loading."""

    def test_defaults(self):
        config = KeyStoreConfig()
        assert config.default_alias == "signer"
        assert config.keywrap_alg == "PBES2-HS256+A128KW"
        assert config.encryption_alg == "A256GCM"
        assert config.kdf_iterations == 10000
        assert config.db_path is None

    def test_from_env(self, monkeypatch, tmp_path):
        """Test every setting is read from the environment."""
        monkeypatch.setenv("KEYSTORE_DEFAULT_ALIAS", "root-2024")
        monkeypatch.setenv("KEYSTORE_KEYWRAP_ALG", "PBES2-HS512+A256KW")
        monkeypatch.setenv("KEYSTORE_ENCRYPTION_ALG", "A128GCM")
        monkeypatch.setenv("KEYSTORE_KDF_ITERATIONS", "2000")
        monkeypatch.setenv("KEYSTORE_DB_PATH", str(tmp_path / "k.db"))
        config = KeyStoreConfig.from_env()
        assert config.default_alias == "root-2024"
        assert config.keywrap_alg == "PBES2-HS512+A256KW"
        assert config.encryption_alg == "A128GCM"
        assert config.kdf_iterations == 2000
        assert config.db_path == str(tmp_path / "k.db")

    def test_from_env_defaults(self, monkeypatch):
        for name in (
            "KEYSTORE_DEFAULT_ALIAS", "KEYSTORE_KEYWRAP_ALG",
            "KEYSTORE_ENCRYPTION_ALG", "KEYSTORE_KDF_ITERATIONS",
            "KEYSTORE_DB_PATH",
        ):
            monkeypatch.delenv(name, raising=False)
        assert KeyStoreConfig.from_env() == KeyStoreConfig()

    @pytest.mark.parametrize("field, value", [
        ("keywrap_alg", "dir"),
        ("encryption_alg", "A256CBC-HS512"),
        ("kdf_iterations", 10),
        ("kdf_iterations", 10_000_000),
        ("default_alias", ""),
    ])
    def test_invalid_values(self, field, value):
        with pytest.raises(ValidationError):
            KeyStoreConfig(**{field: value})

    def test_generate_passphrase(self):
        first = generate_passphrase()
        assert len(first) >= 32
        assert first != generate_passphrase()


class TestFromConfig:
    """Tests for building a KeyManager from configuration."""

    def test_memory_store_without_db_path(self):
        manager = KeyManager.from_config(
            KeyStoreConfig(default_alias="a1"), constant_retriever("p1")
        )
        assert isinstance(manager.store, MemoryKeyRecordStore)
        assert manager.default_alias == "a1"

    def test_sqlite_store_with_db_path(self, tmp_path):
        config = KeyStoreConfig(db_path=str(tmp_path / "keystore.db"))
        manager = KeyManager.from_config(config, constant_retriever("p1"))
        assert isinstance(manager.store, SQLiteKeyRecordStore)
        manager.store.close()


class TestRetrievers:
    """Tests for the stock passphrase retrievers."""

    def test_constant_retriever(self):
        retriever = constant_retriever("secret")
        assert retriever("k1", "a1", False, 1) == ("secret", "a1")

    def test_alias_retriever(self):
        retriever = AliasPassphraseRetriever({"a1": "p1", "a2": b"p2"})
        assert retriever("k1", "a2", True, 1) == (b"p2", "a2")

    def test_alias_retriever_unknown_alias(self):
        retriever = AliasPassphraseRetriever({"a1": "p1"})
        with pytest.raises(PassphraseRetrievalError):
            retriever("k1", "a2", False, 1)

    def test_env_retriever_name(self):
        retriever = EnvPassphraseRetriever(environ={})
        assert retriever.env_name("root-2024") == "KEYSTORE_PASSPHRASE_ROOT_2024"

    def test_env_retriever(self, monkeypatch):
        """Test the secret is read from the process environment."""
        monkeypatch.setenv("KEYSTORE_PASSPHRASE_TIMESTAMP", "p-ts")
        retriever = EnvPassphraseRetriever()
        assert retriever("k1", "timestamp", False, 1) == ("p-ts", "timestamp")

    def test_env_retriever_missing(self):
        retriever = EnvPassphraseRetriever(
            prefix="SIGNER_", environ={"SIGNER_A1": ""}
        )
        with pytest.raises(PassphraseRetrievalError, match="SIGNER_A1"):
            retriever("k1", "a1", False, 1)
