"""Operational script tests."""

import zipfile
from unittest.mock import patch

import pytest

from cipherdeck.core.errors import StorageIOError
from cipherdeck.core.storage import RecordStorage
from cipherdeck.core.store import RecordStore
from scripts import export_archive, reload_store, run_server


@pytest.fixture
def configured_roots(monkeypatch, tmp_path):
    records, vault = tmp_path / "matrices", tmp_path / "vault"
    monkeypatch.setenv("RECORDS_DIR", str(records))
    monkeypatch.setenv("VAULT_DIR", str(vault))
    monkeypatch.setenv("AUDIT_LOG_PATH", str(tmp_path / "vault-trail.log"))

    with RecordStore(RecordStorage(records, vault)) as seeded:
        for n in range(3):
            seeded.create({"n": n})
    return records, vault


def test_export_archive(configured_roots, tmp_path, capsys):
    target = tmp_path / "out.zip"
    assert export_archive.main([str(target)]) == 0
    assert "Exported 3 matrices" in capsys.readouterr().out

    with zipfile.ZipFile(target) as archive:
        assert len(archive.namelist()) == 3


def test_export_archive_with_limit(configured_roots, tmp_path):
    target = tmp_path / "first.zip"
    assert export_archive.main([str(target), "--limit", "1"]) == 0
    with zipfile.ZipFile(target) as archive:
        assert len(archive.namelist()) == 1


def test_export_archive_bad_limit(configured_roots, tmp_path, capsys):
    assert export_archive.main([str(tmp_path / "x.zip"), "--limit", "-2"]) == 1
    assert "ERROR" in capsys.readouterr().out


def test_reload_store_reports_skips(configured_roots, capsys):
    _, vault = configured_roots
    (vault / "broken.json").write_text("{", encoding="utf-8")

    assert reload_store.main() == 0
    out = capsys.readouterr().out
    assert "Loaded 3 matrices" in out
    assert "Skipped 1 unreadable files" in out


def test_pick_port_moves_to_next_free_port(capsys):
    with patch.object(run_server, "port_available", side_effect=[False, False, True]):
        assert run_server.pick_port("127.0.0.1", 8080, 5) == 8082
    assert "Port 8080 busy" in capsys.readouterr().out


def test_pick_port_gives_up(capsys):
    with patch.object(run_server, "port_available", return_value=False):
        with pytest.raises(RuntimeError):
            run_server.pick_port("127.0.0.1", 8080, 2)


def test_reload_store_closes_on_error(configured_roots, capsys):
    with patch.object(RecordStore, "open", side_effect=StorageIOError("root unreadable")), \
         patch.object(RecordStore, "close") as close:
        assert reload_store.main() == 1

    close.assert_called_once()
    assert "ERROR: root unreadable" in capsys.readouterr().out
