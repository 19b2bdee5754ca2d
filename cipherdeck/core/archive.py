"""
Export bundles - a zip of selected records, produced as a byte stream.

The zip writer targets an unseekable sink that is drained after every
entry, so at most one compressed entry is held in memory regardless of how
many records are exported.
"""

import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, List, Optional

from .audit import EXPORT
from .errors import InvalidPayload
from .schema import Record
from ..util.logging import logger

ALL = "all"
FIRST_N = "first_n"
PLACEHOLDER_NAME = "placeholder.txt"
PLACEHOLDER_TEXT = "Placeholder: No matrices available"


@dataclass(frozen=True)
class ArchiveSelector:
    """Which records go into an archive."""
    policy: str = ALL
    limit: Optional[int] = None

    def __post_init__(self):
        if self.policy not in (ALL, FIRST_N):
            raise InvalidPayload(f"Unknown archive policy: {self.policy}")
        if self.policy == FIRST_N and (self.limit is None or self.limit < 0):
            raise InvalidPayload("first_n archives need a non-negative limit")

    @classmethod
    def all(cls) -> "ArchiveSelector":
        return cls(ALL)

    @classmethod
    def first(cls, limit: int) -> "ArchiveSelector":
        return cls(FIRST_N, limit)

    @property
    def effective_limit(self) -> Optional[int]:
        return self.limit if self.policy == FIRST_N else None


class _StreamSink:
    """Write-only buffer without tell()/seek(), drained by the generator."""

    def __init__(self):
        self._chunks: List[bytes] = []

    def write(self, data) -> int:
        self._chunks.append(bytes(data))
        return len(data)

    def flush(self) -> None:
        pass

    def drain(self) -> bytes:
        data = b"".join(self._chunks)
        self._chunks = []
        return data


class ArchiveBuilder:
    """Builds zip export bundles from a record store snapshot."""

    def __init__(self, store, audit=None, compression_level: int = 9):
        self.store = store
        self.audit = audit
        self.compression_level = compression_level

    def build(self, selector: ArchiveSelector = None) -> Iterator[bytes]:
        """
        Stream a zip of the selected records.

        The snapshot is taken by this call, before any bytes are produced;
        later store mutations do not affect an archive already in progress.
        Each record becomes <id>.json in its canonical JSON form.
        """
        selector = selector or ArchiveSelector.all()
        records = self.store.snapshot(limit=selector.effective_limit)
        return self._stream(records, selector)

    def _stream(self, records: List[Record], selector: ArchiveSelector) -> Iterator[bytes]:
        sink = _StreamSink()
        entries = 0
        with zipfile.ZipFile(sink, mode="w", compression=zipfile.ZIP_DEFLATED,
                             compresslevel=self.compression_level) as archive:
            if not records:
                archive.writestr(PLACEHOLDER_NAME, PLACEHOLDER_TEXT)
            for record in records:
                archive.writestr(f"{record.id}.json", record.to_json().encode("utf-8"))
                entries += 1
                chunk = sink.drain()
                if chunk:
                    yield chunk

        tail = sink.drain()
        if tail:
            yield tail

        logger.log_archive(selector.policy, entries, details={"limit": selector.limit})
        if self.audit is not None:
            self.audit.record(EXPORT, "*", f"policy={selector.policy} entries={entries}")

    def build_to_file(self, selector: ArchiveSelector, path) -> int:
        """Write an archive to path; returns the number of records exported."""
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        with open(target, "wb") as handle:
            for chunk in self.build(selector):
                handle.write(chunk)

        with zipfile.ZipFile(target) as written:
            return len([name for name in written.namelist() if name != PLACEHOLDER_NAME])
