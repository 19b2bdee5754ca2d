"""
Error taxonomy for the record service.

Each error carries the HTTP status the service boundary reports it with.
"""

from typing import List, Optional


class CipherDeckError(Exception):
    """Base class for expected service errors."""
    status_code = 500

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message or self.__class__.__name__


class InvalidPayload(CipherDeckError):
    """Malformed or absent record payload."""
    status_code = 400


class InvalidInput(CipherDeckError):
    """Review input is not an object."""
    status_code = 400


class MissingIdentifier(CipherDeckError):
    """Certification requested without an identifier."""
    status_code = 400


class NotFound(CipherDeckError):
    """Unknown record identifier."""
    status_code = 404

    def __init__(self, record_id: str):
        super().__init__(f"Matrix not found: {record_id}")
        self.record_id = record_id


class Unauthorized(CipherDeckError):
    status_code = 403

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message)


class StorageIOError(CipherDeckError):
    """Durable storage read/write failure."""
    status_code = 500


class PartialWriteError(StorageIOError):
    """
    A write reached the authoritative root but not every mirror.

    The authoritative root is what the index is loaded from, so the store
    keeps its index in line with it and reports the divergence.
    """

    def __init__(self, record_id: str, committed_roots: List[str], failed_root: str, cause: Optional[BaseException] = None):
        super().__init__(
            f"Partial write for {record_id}: committed to {committed_roots}, failed on {failed_root}: {cause}"
        )
        self.record_id = record_id
        self.committed_roots = committed_roots
        self.failed_root = failed_root
        self.cause = cause

    @property
    def committed(self) -> bool:
        return bool(self.committed_roots)


class CorruptRecord(CipherDeckError):
    """Persisted file could not be parsed into a record (load time only)."""

    def __init__(self, path, reason: str):
        super().__init__(f"Corrupt record file {path}: {reason}")
        self.path = path
        self.reason = reason
