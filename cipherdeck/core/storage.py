"""
Directory-backed persistence for records.

One file per record, named <id>.json, holding the record's canonical JSON.
Two roots may be configured: the primary records directory and the vault.
The vault, when present, is authoritative: the store's index is loaded from
it and every write is published there first.
"""

import json
import os
import re
import tempfile
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple

from .errors import CorruptRecord, InvalidPayload, PartialWriteError, StorageIOError
from .ids import is_valid_id
from .schema import Record
from ..util.logging import logger

RECORD_SUFFIX = ".json"
STAGING_SUFFIX = ".tmp"
_SAFE_NAME = re.compile(r"^[A-Za-z0-9_-][A-Za-z0-9._-]*$")


def record_filename(record_id: str) -> str:
    """File name for a record id; rejects anything that could leave the root."""
    if not isinstance(record_id, str) or not _SAFE_NAME.match(record_id):
        raise InvalidPayload(f"Invalid matrix id: {record_id!r}")
    return f"{record_id}{RECORD_SUFFIX}"


class DirectoryRoot:
    """A single durable root directory."""

    def __init__(self, path, name: str = None):
        self.path = Path(path)
        self.name = name or str(self.path)

    def ensure(self) -> None:
        try:
            self.path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageIOError(f"Cannot create storage root {self.path}: {e}")

    def file_for(self, record_id: str) -> Path:
        return self.path / record_filename(record_id)

    def stage(self, record_id: str, data: bytes) -> Path:
        """Write data to a temporary file inside the root; returns its path."""
        self.ensure()
        fd, tmp_path = tempfile.mkstemp(
            dir=str(self.path),
            prefix=f".{record_id}.",
            suffix=STAGING_SUFFIX,
        )
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(data)
                handle.flush()
                os.fsync(handle.fileno())
        except BaseException:
            self.discard(Path(tmp_path))
            raise
        return Path(tmp_path)

    def publish(self, staged: Path, record_id: str) -> Path:
        """Atomically move a staged file into place."""
        target = self.file_for(record_id)
        os.replace(staged, target)
        return target

    def discard(self, staged: Path) -> None:
        try:
            os.unlink(staged)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Failed to remove staging file {staged}: {e}")

    def remove(self, record_id: str) -> bool:
        """Remove a record file; False when it was already absent."""
        return self.remove_name(record_filename(record_id))

    def remove_name(self, name: str) -> bool:
        """Remove a file of this root by bare name; False when already absent."""
        if name in ("", ".", "..") or Path(name).name != name:
            raise InvalidPayload(f"Invalid record file name: {name!r}")
        try:
            os.unlink(self.path / name)
            return True
        except FileNotFoundError:
            return False

    def scan(self) -> Iterator[Path]:
        """Record files in the root, staging files excluded, sorted by name."""
        if not self.path.exists():
            return iter(())
        try:
            entries = sorted(self.path.iterdir())
        except OSError as e:
            raise StorageIOError(f"Cannot list storage root {self.path}: {e}")
        return (
            p for p in entries
            if p.suffix == RECORD_SUFFIX and not p.name.startswith(".") and p.is_file()
        )

    def read(self, path: Path) -> Record:
        """Parse one record file; raises CorruptRecord on any parse problem."""
        try:
            with open(path, "r", encoding="utf-8") as handle:
                data = json.load(handle)
        except json.JSONDecodeError as e:
            raise CorruptRecord(path, f"invalid JSON: {e}")
        except UnicodeDecodeError as e:
            raise CorruptRecord(path, f"invalid encoding: {e}")
        except OSError as e:
            raise CorruptRecord(path, f"unreadable: {e}")

        if not isinstance(data, dict):
            raise CorruptRecord(path, f"expected a JSON object, got {type(data).__name__}")

        try:
            mtime = datetime.fromtimestamp(path.stat().st_mtime, timezone.utc)
            fallback_created_at = mtime.isoformat(timespec="milliseconds").replace("+00:00", "Z")
        except OSError:
            fallback_created_at = None

        try:
            record = Record.from_dict(data, fallback_id=path.stem, fallback_created_at=fallback_created_at)
        except ValueError as e:
            raise CorruptRecord(path, str(e))

        if not _SAFE_NAME.match(record.id):
            raise CorruptRecord(path, f"unsafe matrix id {record.id!r}")
        return record


@dataclass
class LoadResult:
    records: Dict[str, Record] = field(default_factory=dict)
    skipped: List[Tuple[str, str]] = field(default_factory=list)
    # Record id -> file names other than <id>.json that hold the record
    aliases: Dict[str, List[str]] = field(default_factory=dict)


class RecordStorage:
    """
    Persistence interface used by the record store.

    Writes are staged in every root before anything is published, so
    ordinary failures (disk full, permissions) surface with nothing visible.
    Publishing goes to the authoritative root first, then to the mirror.
    """

    def __init__(self, primary, vault=None):
        self.primary = primary if isinstance(primary, DirectoryRoot) else DirectoryRoot(primary, "primary")
        if vault is not None and not isinstance(vault, DirectoryRoot):
            vault = DirectoryRoot(vault, "vault")
        self.vault = vault
        self.aliases: Dict[str, List[str]] = {}

    @property
    def authoritative(self) -> DirectoryRoot:
        return self.vault if self.vault is not None else self.primary

    @property
    def roots(self) -> List[DirectoryRoot]:
        """Roots in publish order, authoritative first."""
        if self.vault is None:
            return [self.primary]
        return [self.vault, self.primary]

    def open(self) -> None:
        for root in self.roots:
            root.ensure()

    def write(self, record: Record) -> None:
        """Persist a record to every root."""
        data = record.to_json().encode("utf-8")

        staged: List[Tuple[DirectoryRoot, Path]] = []
        try:
            for root in self.roots:
                staged.append((root, root.stage(record.id, data)))
        except (OSError, StorageIOError) as e:
            for root, path in staged:
                root.discard(path)
            raise StorageIOError(f"Failed to stage matrix {record.id}: {e}")

        committed: List[str] = []
        for index, (root, path) in enumerate(staged):
            try:
                root.publish(path, record.id)
            except OSError as e:
                for pending_root, pending_path in staged[index:]:
                    pending_root.discard(pending_path)
                if not committed:
                    raise StorageIOError(f"Failed to write matrix {record.id} to {root.name}: {e}")
                raise PartialWriteError(record.id, committed, root.name, e)
            committed.append(root.name)

        self._drop_aliases(record.id)

    def remove(self, record_id: str) -> bool:
        """Remove a record from every root; True when any file was removed."""
        names = [record_filename(record_id)] + self.aliases.get(record_id, [])
        removed = False
        committed: List[str] = []
        for root in self.roots:
            try:
                for name in names:
                    removed = root.remove_name(name) or removed
            except OSError as e:
                if not committed:
                    raise StorageIOError(f"Failed to delete matrix {record_id} from {root.name}: {e}")
                raise PartialWriteError(record_id, committed, root.name, e)
            committed.append(root.name)

        self.aliases.pop(record_id, None)
        return removed

    def _drop_aliases(self, record_id: str) -> None:
        """Delete copies held under other names once <id>.json is published."""
        for name in self.aliases.pop(record_id, []):
            for root in self.roots:
                try:
                    root.remove_name(name)
                except OSError as e:
                    logger.warning(f"Failed to remove stale file {name} for {record_id} from {root.name}: {e}")

    def load(self) -> LoadResult:
        """Read every well-formed record from the authoritative root."""
        root = self.authoritative
        root.ensure()
        result = LoadResult()
        sources: Dict[str, List[Tuple[str, Record]]] = {}

        for path in root.scan():
            try:
                record = root.read(path)
            except CorruptRecord as e:
                logger.log_load_skip(str(path), e.reason)
                result.skipped.append((str(path), e.reason))
                continue

            if not is_valid_id(record.id):
                logger.debug(f"Loaded record with non-standard id {record.id} from {path.name}")
            sources.setdefault(record.id, []).append((path.name, record))

        for record_id, found in sources.items():
            canonical = record_filename(record_id)
            # <id>.json wins, otherwise the last file in name order
            chosen_name, chosen = next(((n, r) for n, r in found if n == canonical), found[-1])
            if len(found) > 1:
                logger.warning(f"Duplicate matrix id {record_id} in {[n for n, _ in found]}; using {chosen_name}")
            result.records[record_id] = chosen
            others = [n for n, _ in found if n != canonical]
            if others:
                result.aliases[record_id] = others

        self.aliases = {record_id: list(names) for record_id, names in result.aliases.items()}
        logger.log_store_load(root.name, len(result.records), len(result.skipped))
        return result

    def describe(self) -> Dict[str, Any]:
        return {
            "primary": str(self.primary.path),
            "vault": str(self.vault.path) if self.vault is not None else None,
            "authoritative": self.authoritative.name,
        }
