"""
CipherDeck configuration - environment driven.
Values can also come from a local .env file.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# Shared secret checked against the x-api-key header
API_KEY = os.getenv("CIPHER_API_KEY", "cipher-secret")

# Process binding
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "8080"))
PORT_RETRY_LIMIT = int(os.getenv("PORT_RETRY_LIMIT", "5"))

# Durable roots (VAULT_DIR="" disables the second root)
RECORDS_DIR = os.getenv("RECORDS_DIR", "./matrices")
VAULT_DIR = os.getenv("VAULT_DIR", "./vault")
AUDIT_LOG_PATH = os.getenv("AUDIT_LOG_PATH", "./vault-trail.log")
MEMORY_ANCHOR_PATH = os.getenv("MEMORY_ANCHOR_PATH", "./Vault_Memory_Anchor.json")

# Record defaults
DEFAULT_ARCHETYPE = os.getenv("DEFAULT_ARCHETYPE", "stabilizer")
DEFAULT_DRIFT_RATING = float(os.getenv("DEFAULT_DRIFT_RATING", "1.0"))

# Export bundles
ARCHIVE_COMPRESSION_LEVEL = int(os.getenv("ARCHIVE_COMPRESSION_LEVEL", "9"))
ARCHIVE_FILENAME = "core-matrix-pack.zip"

DEBUG = os.getenv("DEBUG", "false").lower() == "true"

# Version string
VERSION = "1.0.0-phase-one"
PHASE = "one"


def debug_enabled():
    """Check if debug mode is enabled."""
    return os.getenv("DEBUG", "false").lower() == "true"


def get_api_key() -> str:
    """Get the shared API secret."""
    return os.getenv("CIPHER_API_KEY", API_KEY)


def get_records_dir() -> Path:
    """Get the primary records directory."""
    return Path(os.getenv("RECORDS_DIR", RECORDS_DIR))


def get_vault_dir():
    """Get the vault directory, or None when the second root is disabled."""
    value = os.getenv("VAULT_DIR", VAULT_DIR)
    if not value or not value.strip():
        return None
    return Path(value)


def get_audit_log_path() -> Path:
    """Get the audit trail file path."""
    return Path(os.getenv("AUDIT_LOG_PATH", AUDIT_LOG_PATH))


def get_memory_anchor_path() -> Path:
    """Get the vault memory anchor file path."""
    return Path(os.getenv("MEMORY_ANCHOR_PATH", MEMORY_ANCHOR_PATH))


def get_default_archetype() -> str:
    return os.getenv("DEFAULT_ARCHETYPE", DEFAULT_ARCHETYPE)


def get_default_drift_rating() -> float:
    return float(os.getenv("DEFAULT_DRIFT_RATING", str(DEFAULT_DRIFT_RATING)))


def get_archive_compression_level() -> int:
    return int(os.getenv("ARCHIVE_COMPRESSION_LEVEL", str(ARCHIVE_COMPRESSION_LEVEL)))


def get_record_store():
    """Build a record store from the configured roots. The caller opens it."""
    from .audit import AuditLog
    from .storage import RecordStorage
    from .store import RecordStore

    storage = RecordStorage(get_records_dir(), get_vault_dir())
    return RecordStore(
        storage,
        audit=AuditLog(get_audit_log_path()),
        default_archetype=get_default_archetype(),
        default_drift_rating=get_default_drift_rating(),
    )


def get_memory_anchor():
    """Build the vault memory anchor. The caller loads it."""
    from .anchor import MemoryAnchor
    return MemoryAnchor(get_memory_anchor_path())


def validate_config():
    """Validate configuration and return any issues."""
    issues = []

    if not get_api_key().strip():
        issues.append("CIPHER_API_KEY must not be empty")

    level = get_archive_compression_level()
    if level < 0 or level > 9:
        issues.append(f"Invalid ARCHIVE_COMPRESSION_LEVEL: {level}")

    if PORT < 1 or PORT > 65535:
        issues.append(f"Invalid PORT: {PORT}")

    if PORT_RETRY_LIMIT < 0:
        issues.append("PORT_RETRY_LIMIT must be >= 0")

    vault_dir = get_vault_dir()
    if vault_dir is not None and vault_dir.resolve() == get_records_dir().resolve():
        issues.append("VAULT_DIR must differ from RECORDS_DIR")

    return issues
