"""
Record and audit entry shapes.

A record is stored as one flat JSON object: the caller's payload keys plus
the service-owned fields below.
"""

import copy
import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

RESERVED_FIELDS = ("id", "created_at")
ARCHETYPE_FIELD = "archetype"
DRIFT_RATING_FIELD = "drift_rating"
LEGACY_ID_FIELD = "matrixId"


def utc_now_iso() -> str:
    """ISO-8601 UTC timestamp with millisecond precision."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass
class Record:
    id: str
    created_at: str
    payload: Dict[str, Any] = field(default_factory=dict)

    @property
    def archetype(self) -> Optional[str]:
        return self.payload.get(ARCHETYPE_FIELD)

    @property
    def drift_rating(self) -> Optional[float]:
        return self.payload.get(DRIFT_RATING_FIELD)

    def to_dict(self) -> Dict[str, Any]:
        """Canonical form: payload keys first, then id and created_at."""
        data = copy.deepcopy(self.payload)
        data["id"] = self.id
        data["created_at"] = self.created_at
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2, ensure_ascii=False)

    @classmethod
    def from_dict(cls, data: Dict[str, Any], fallback_id: Optional[str] = None,
                  fallback_created_at: Optional[str] = None) -> "Record":
        """
        Build a record from its canonical form.

        The id comes from the record's own `id` field, then the legacy
        `matrixId` field, then fallback_id (the file name stem).
        """
        payload = {k: copy.deepcopy(v) for k, v in data.items() if k not in RESERVED_FIELDS}
        record_id = data.get("id") or data.get(LEGACY_ID_FIELD) or fallback_id
        if not record_id or not isinstance(record_id, str):
            raise ValueError("record has no usable identifier")
        created_at = data.get("created_at")
        if created_at is not None and not isinstance(created_at, str):
            raise ValueError(f"created_at must be a string, got {type(created_at).__name__}")
        created_at = created_at or fallback_created_at or utc_now_iso()
        return cls(id=record_id, created_at=created_at, payload=payload)


@dataclass(frozen=True)
class AuditEntry:
    operation_kind: str
    record_id: str
    detail: str = ""
    timestamp: str = field(default_factory=utc_now_iso)

    def to_line(self) -> str:
        line = f"[{self.timestamp}] {self.operation_kind}: {self.record_id}"
        if self.detail:
            line += f" {self.detail}"
        return line + "\n"
