"""
Append-only audit trail of store mutations.

One line per entry, ISO-8601 timestamp first. The trail is best effort:
a failed append is logged and reported to the caller as False, it never
undoes the mutation that triggered it.
"""

import threading
from pathlib import Path

from .schema import AuditEntry
from ..util.logging import logger

UPLOAD = "UPLOAD"
UPDATE = "UPDATE"
DELETE = "DELETE"
RELOAD = "RELOAD"
EXPORT = "EXPORT"


class AuditLog:
    """Audit trail appender backed by a single file."""

    def __init__(self, path):
        self.path = Path(path)
        self._lock = threading.Lock()

    def append(self, entry: AuditEntry) -> bool:
        line = entry.to_line()
        with self._lock:
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                with open(self.path, "a", encoding="utf-8") as handle:
                    handle.write(line)
            except OSError as e:
                logger.error(f"Vault log write failed: {e}")
                return False
        return True

    def record(self, kind: str, record_id: str, detail: str = "") -> bool:
        return self.append(AuditEntry(operation_kind=kind, record_id=record_id, detail=detail))
