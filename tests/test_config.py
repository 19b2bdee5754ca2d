"""Configuration accessor tests."""

from pathlib import Path

from cipherdeck.core import config
from cipherdeck.core.anchor import MemoryAnchor
from cipherdeck.core.store import RecordStore


def test_defaults(monkeypatch):
    for name in ("CIPHER_API_KEY", "RECORDS_DIR", "VAULT_DIR", "DEFAULT_ARCHETYPE", "DEFAULT_DRIFT_RATING"):
        monkeypatch.delenv(name, raising=False)

    assert config.get_records_dir() == Path(config.RECORDS_DIR)
    assert config.get_default_archetype() == config.DEFAULT_ARCHETYPE
    assert config.get_default_drift_rating() == config.DEFAULT_DRIFT_RATING
    assert config.ARCHIVE_FILENAME == "core-matrix-pack.zip"


def test_environment_overrides(monkeypatch, tmp_path):
    monkeypatch.setenv("CIPHER_API_KEY", "rotated")
    monkeypatch.setenv("RECORDS_DIR", str(tmp_path / "records"))
    monkeypatch.setenv("VAULT_DIR", str(tmp_path / "vault"))
    monkeypatch.setenv("DEFAULT_DRIFT_RATING", "0.25")

    assert config.get_api_key() == "rotated"
    assert config.get_records_dir() == tmp_path / "records"
    assert config.get_vault_dir() == tmp_path / "vault"
    assert config.get_default_drift_rating() == 0.25


def test_empty_vault_dir_disables_second_root(monkeypatch):
    monkeypatch.setenv("VAULT_DIR", "")
    assert config.get_vault_dir() is None
    monkeypatch.setenv("VAULT_DIR", "   ")
    assert config.get_vault_dir() is None


def test_factories(monkeypatch, tmp_path):
    monkeypatch.setenv("RECORDS_DIR", str(tmp_path / "records"))
    monkeypatch.setenv("VAULT_DIR", "")
    monkeypatch.setenv("MEMORY_ANCHOR_PATH", str(tmp_path / "anchor.json"))

    store = config.get_record_store()
    assert isinstance(store, RecordStore)
    assert not store.is_open
    assert store.storage.vault is None
    assert store.storage.authoritative.path == tmp_path / "records"

    anchor = config.get_memory_anchor()
    assert isinstance(anchor, MemoryAnchor)
    assert anchor.path == tmp_path / "anchor.json"


def test_validate_config(monkeypatch, tmp_path):
    monkeypatch.setenv("CIPHER_API_KEY", "secret")
    monkeypatch.setenv("ARCHIVE_COMPRESSION_LEVEL", "9")
    monkeypatch.setenv("RECORDS_DIR", str(tmp_path / "records"))
    monkeypatch.setenv("VAULT_DIR", str(tmp_path / "vault"))
    assert config.validate_config() == []

    monkeypatch.setenv("CIPHER_API_KEY", " ")
    monkeypatch.setenv("ARCHIVE_COMPRESSION_LEVEL", "12")
    monkeypatch.setenv("VAULT_DIR", str(tmp_path / "records"))
    issues = config.validate_config()
    assert len(issues) == 3
    assert any("CIPHER_API_KEY" in issue for issue in issues)
    assert any("ARCHIVE_COMPRESSION_LEVEL" in issue for issue in issues)
    assert any("VAULT_DIR" in issue for issue in issues)
