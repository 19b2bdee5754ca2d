"""Audit trail tests."""

import re

from cipherdeck.core.audit import DELETE, UPLOAD, AuditLog
from cipherdeck.core.schema import AuditEntry

LINE_RE = re.compile(r"^\[\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}Z\] [A-Z]+: \S+")


def test_append_creates_parent_directories(tmp_path):
    path = tmp_path / "nested" / "logs" / "vault-trail.log"
    audit = AuditLog(path)

    assert audit.record(UPLOAD, "mtx-0a1b2c3d-1") is True
    assert audit.record(DELETE, "mtx-0a1b2c3d-1") is True

    lines = path.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 2
    assert all(LINE_RE.match(line) for line in lines)
    assert lines[0].endswith("UPLOAD: mtx-0a1b2c3d-1")
    assert lines[1].endswith("DELETE: mtx-0a1b2c3d-1")


def test_append_keeps_existing_lines(tmp_path):
    path = tmp_path / "vault-trail.log"
    path.write_text("[2024-01-01T00:00:00.000Z] UPLOAD: older\n", encoding="utf-8")

    AuditLog(path).append(AuditEntry(operation_kind=UPLOAD, record_id="newer"))

    lines = path.read_text(encoding="utf-8").splitlines()
    assert lines[0].endswith("UPLOAD: older")
    assert lines[1].endswith("UPLOAD: newer")


def test_write_failure_returns_false(tmp_path):
    # A directory where the log file should be makes every append fail
    path = tmp_path / "vault-trail.log"
    path.mkdir()

    assert AuditLog(path).record(UPLOAD, "mtx-0a1b2c3d-1") is False
