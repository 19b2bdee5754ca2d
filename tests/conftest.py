"""
Shared fixtures: a store on temporary dual roots, an anchor, and an API client.
"""

import json

import pytest
from fastapi.testclient import TestClient

from cipherdeck.api.main import create_app
from cipherdeck.core.anchor import MemoryAnchor
from cipherdeck.core.audit import AuditLog
from cipherdeck.core.storage import RecordStorage
from cipherdeck.core.store import RecordStore

TEST_API_KEY = "test-cipher-secret"
AUTH_HEADERS = {"x-api-key": TEST_API_KEY}


@pytest.fixture
def primary_dir(tmp_path):
    return tmp_path / "matrices"


@pytest.fixture
def vault_dir(tmp_path):
    return tmp_path / "vault"


@pytest.fixture
def audit_path(tmp_path):
    return tmp_path / "logs" / "vault-trail.log"


@pytest.fixture
def storage(primary_dir, vault_dir):
    return RecordStorage(primary_dir, vault_dir)


@pytest.fixture
def store(storage, audit_path):
    """Open store over the temporary primary + vault roots."""
    record_store = RecordStore(storage, audit=AuditLog(audit_path))
    record_store.open()
    yield record_store
    record_store.close()


@pytest.fixture
def anchor(tmp_path):
    path = tmp_path / "Vault_Memory_Anchor.json"
    path.write_text(json.dumps({"anchor": "cipher", "phase": "one"}), encoding="utf-8")
    memory_anchor = MemoryAnchor(path)
    memory_anchor.load()
    return memory_anchor


@pytest.fixture
def app(store, anchor):
    return create_app(store=store, anchor=anchor, api_key=TEST_API_KEY)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


def read_audit_lines(path):
    if not path.exists():
        return []
    return path.read_text(encoding="utf-8").splitlines()
