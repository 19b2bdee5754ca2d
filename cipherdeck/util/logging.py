"""
Structured logging for store, archive and service operations.
Logging calls never change control flow or return values.
"""

import logging
from typing import Any, Dict


class StructuredLogger:
    """Structured logger for record store and service boundary operations."""

    def __init__(self, name: str = "cipherdeck"):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(logging.INFO)

        # Create handler if not already set
        if not self.logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            )
            handler.setFormatter(formatter)
            self.logger.addHandler(handler)

    def log_operation(self, operation: str, status: str, details: Dict[str, Any] = None):
        """Log a structured operation."""
        message = f"Operation: {operation}, Status: {status}"
        if details:
            message += f", Details: {details}"

        if status in ("failed", "error"):
            self.logger.error(message)
        elif status in ("skipped", "partial", "rejected"):
            self.logger.warning(message)
        else:
            self.logger.info(message)

    def log_record_operation(self, operation: str, record_id: str, status: str = "success", details: Dict[str, Any] = None):
        """Log a record store mutation or lookup."""
        log_details = {"record_id": record_id}
        if details:
            log_details.update(details)

        self.log_operation(f"record.{operation}", status, log_details)

    def log_store_load(self, root: str, loaded: int, skipped: int):
        """Log a store load or reload."""
        self.log_operation("store.load", "success", {
            "root": root,
            "loaded": loaded,
            "skipped": skipped
        })

    def log_load_skip(self, path: str, reason: str):
        """Log a persisted file skipped during load."""
        # Keep reason short, file contents may be arbitrary
        self.log_operation("store.load", "skipped", {
            "path": path,
            "reason": reason[:100] + "..." if len(reason) > 100 else reason
        })

    def log_archive(self, policy: str, entries: int, status: str = "success", details: Dict[str, Any] = None):
        """Log archive assembly."""
        log_details = {"policy": policy, "entries": entries}
        if details:
            log_details.update(details)

        self.log_operation("archive.build", status, log_details)

    def log_auth_failure(self, path: str, reason: str):
        """Log a rejected credential without echoing the supplied value."""
        self.log_operation("auth.check", "rejected", {"path": path, "reason": reason})

    # Standard logging methods for compatibility
    def info(self, message: str) -> None:
        """Log an info message."""
        self.logger.info(message)

    def warning(self, message: str) -> None:
        """Log a warning message."""
        self.logger.warning(message)

    def error(self, message: str) -> None:
        """Log an error message."""
        self.logger.error(message)

    def debug(self, message: str) -> None:
        """Log a debug message."""
        self.logger.debug(message)


# Global logger instance
logger = StructuredLogger()
