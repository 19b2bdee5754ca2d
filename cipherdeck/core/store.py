"""
Record store - the canonical id -> record index and its durable backing.

The in-memory index is the source of truth while the service runs; disk is
only read by open() and reload(). Every mutation is written through to the
durable roots before the index changes, all under one lock, so the index
never reflects a write the authoritative root has not accepted.
"""

import copy
import json
import threading
import time
from typing import Any, Dict, List, Optional

from . import audit as audit_kinds
from .audit import AuditLog
from .errors import InvalidPayload, NotFound, PartialWriteError, StorageIOError
from .ids import generate_id
from .schema import ARCHETYPE_FIELD, DRIFT_RATING_FIELD, RESERVED_FIELDS, Record, utc_now_iso
from .storage import RecordStorage
from ..util.logging import logger


class RecordStore:
    """Owns the record index and mediates every read and write."""

    def __init__(self, storage: RecordStorage, audit: Optional[AuditLog] = None,
                 default_archetype: str = "stabilizer", default_drift_rating: float = 1.0):
        self.storage = storage
        self.audit = audit
        self.default_archetype = default_archetype
        self.default_drift_rating = default_drift_rating

        self._index: Dict[str, Record] = {}
        self._lock = threading.RLock()
        self._opened = False
        self.skipped: List = []
        self.opened_at: Optional[float] = None

    # Lifecycle

    def open(self) -> int:
        """Create the durable roots and load the index; returns records loaded."""
        with self._lock:
            self.storage.open()
            count = self._load()
            self._opened = True
            self.opened_at = time.monotonic()
            return count

    def reload(self) -> int:
        """Discard the index and rebuild it from the authoritative root."""
        with self._lock:
            count = self._load()
            self._audit(audit_kinds.RELOAD, "*", f"loaded={count} skipped={len(self.skipped)}")
            return count

    def close(self) -> None:
        with self._lock:
            self._index = {}
            self._opened = False

    @property
    def is_open(self) -> bool:
        return self._opened

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def _load(self) -> int:
        result = self.storage.load()
        self._index = result.records
        self.skipped = result.skipped
        return len(self._index)

    # Reads

    def get(self, record_id: str) -> Record:
        with self._lock:
            record = self._index.get(record_id)
            if record is None:
                raise NotFound(record_id)
            return copy.deepcopy(record)

    def contains(self, record_id: str) -> bool:
        with self._lock:
            return record_id in self._index

    def count(self) -> int:
        with self._lock:
            return len(self._index)

    def list_ids(self) -> List[str]:
        return [record.id for record in self._ordered()]

    def list_records(self) -> List[Record]:
        return [copy.deepcopy(record) for record in self._ordered()]

    def snapshot(self, limit: Optional[int] = None) -> List[Record]:
        """
        Current records, oldest first, without copying.

        Indexed records are replaced on update and never mutated in place,
        so the returned objects stay consistent. Callers must not modify them.
        """
        records = self._ordered()
        if limit is not None:
            records = records[:limit]
        return records

    def _ordered(self) -> List[Record]:
        with self._lock:
            return sorted(self._index.values(), key=lambda r: (str(r.created_at), str(r.id)))

    # Writes

    def create(self, payload) -> Record:
        """Assign an id, fill defaults, persist and index a new record."""
        if not isinstance(payload, dict):
            raise InvalidPayload("Invalid matrix upload format.")

        data = self._prepare(payload)
        self._fill_defaults(data)

        with self._lock:
            record_id = generate_id()
            while record_id in self._index:
                record_id = generate_id()

            record = Record(id=record_id, created_at=utc_now_iso(), payload=data)
            self._persist(record, audit_kinds.UPLOAD)
            return copy.deepcopy(record)

    def update(self, record_id: str, partial) -> Record:
        """Shallow-merge partial into an existing record's payload."""
        if not isinstance(partial, dict):
            raise InvalidPayload("Invalid matrix update format.")

        changes = self._prepare(partial)

        with self._lock:
            current = self._index.get(record_id)
            if current is None:
                raise NotFound(record_id)

            merged = copy.deepcopy(current.payload)
            merged.update(changes)
            self._fill_defaults(merged)

            record = Record(id=current.id, created_at=current.created_at, payload=merged)
            self._persist(record, audit_kinds.UPDATE, detail=f"keys={sorted(changes)}")
            return copy.deepcopy(record)

    def delete(self, record_id: str) -> None:
        """Remove a record from the index and every root. Idempotent."""
        with self._lock:
            existed = record_id in self._index
            try:
                removed = self.storage.remove(record_id)
            except InvalidPayload:
                # Not a storable id, so nothing can exist under it
                logger.log_record_operation("delete", str(record_id), "skipped", {"reason": "invalid id"})
                return
            except PartialWriteError as e:
                self._index.pop(record_id, None)
                self._audit(audit_kinds.DELETE, record_id, f"partial: failed on {e.failed_root}")
                logger.log_record_operation("delete", record_id, "partial", {"failed_root": e.failed_root})
                raise
            except StorageIOError:
                logger.log_record_operation("delete", record_id, "failed")
                raise

            self._index.pop(record_id, None)
            if existed or removed:
                self._audit(audit_kinds.DELETE, record_id)
                logger.log_record_operation("delete", record_id)

    # Internals

    def _prepare(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        data = {}
        for key, value in payload.items():
            if not isinstance(key, str):
                raise InvalidPayload(f"Matrix keys must be strings, got {key!r}")
            if key in RESERVED_FIELDS:
                logger.debug(f"Ignoring reserved field '{key}' in matrix payload")
                continue
            data[key] = copy.deepcopy(value)

        try:
            json.dumps(data)
        except (TypeError, ValueError) as e:
            raise InvalidPayload(f"Matrix payload is not JSON serializable: {e}")
        return data

    def _fill_defaults(self, data: Dict[str, Any]) -> None:
        if data.get(ARCHETYPE_FIELD) is None:
            data[ARCHETYPE_FIELD] = self.default_archetype
        if data.get(DRIFT_RATING_FIELD) is None:
            data[DRIFT_RATING_FIELD] = self.default_drift_rating

    def _persist(self, record: Record, kind: str, detail: str = "") -> None:
        """Write through to storage, then index. Caller holds the lock."""
        try:
            self.storage.write(record)
        except PartialWriteError as e:
            self._index[record.id] = record
            self._audit(kind, record.id, f"partial: failed on {e.failed_root}")
            logger.log_record_operation(kind.lower(), record.id, "partial", {"failed_root": e.failed_root})
            raise
        except StorageIOError:
            logger.log_record_operation(kind.lower(), record.id, "failed")
            raise

        self._index[record.id] = record
        self._audit(kind, record.id, detail)
        logger.log_record_operation(kind.lower(), record.id)

    def _audit(self, kind: str, record_id: str, detail: str = "") -> None:
        if self.audit is None:
            return
        try:
            self.audit.record(kind, record_id, detail)
        except Exception as e:
            # The mutation is already durable
            logger.error(f"Audit append for {kind} {record_id} failed: {e}")
