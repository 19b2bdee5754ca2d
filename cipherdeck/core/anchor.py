"""
Vault memory anchor - a JSON document loaded at startup.

Updates are merged in memory only and are never written back to the
anchor file.
"""

import copy
import json
import threading
from pathlib import Path
from typing import Any, Dict

from .errors import InvalidPayload
from ..util.logging import logger


class MemoryAnchor:
    def __init__(self, path=None):
        self.path = Path(path) if path else None
        self._memory: Dict[str, Any] = {}
        self._lock = threading.Lock()

    def load(self) -> bool:
        """Load the anchor file. A missing or corrupt file leaves memory empty."""
        with self._lock:
            self._memory = {}
            if self.path is None or not self.path.exists():
                logger.info("No vault memory found. Starting with empty memory.")
                return False

            try:
                with open(self.path, "r", encoding="utf-8") as handle:
                    data = json.load(handle)
            except (OSError, json.JSONDecodeError, UnicodeDecodeError) as e:
                logger.error(f"Failed to load vault memory from {self.path}: {e}")
                return False

            if not isinstance(data, dict):
                logger.error(f"Vault memory at {self.path} is not a JSON object")
                return False

            self._memory = data
            logger.info(f"Vault memory loaded ({len(data)} keys).")
            return True

    def update(self, updates) -> Dict[str, Any]:
        """Shallow-merge updates into memory and return the new snapshot."""
        if not isinstance(updates, dict):
            raise InvalidPayload("Invalid vault memory update format.")
        with self._lock:
            self._memory.update(copy.deepcopy(updates))
            return copy.deepcopy(self._memory)

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            return copy.deepcopy(self._memory)

    @property
    def loaded(self) -> bool:
        with self._lock:
            return bool(self._memory)
