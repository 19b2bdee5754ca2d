"""Record identifier generation."""

import re
import secrets
import time

ID_PREFIX = "mtx"
ID_PATTERN = re.compile(r"^mtx-[0-9a-f]{8}-\d+$")


def generate_id() -> str:
    """Return a new id: 4 random bytes as hex plus a millisecond timestamp."""
    return f"{ID_PREFIX}-{secrets.token_hex(4)}-{int(time.time() * 1000)}"


def is_valid_id(value) -> bool:
    """Check whether value has the generated id format."""
    return isinstance(value, str) and bool(ID_PATTERN.match(value))
