"""
Shared-secret authentication for the CipherDeck API.

Every protected route depends on verify_key, which runs before the route
body so a rejected request never reaches the store.
"""

import secrets
from typing import Optional

from fastapi import Header, Request

from ..core.errors import Unauthorized
from ..util.logging import logger

API_KEY_HEADER = "x-api-key"


def keys_match(supplied: Optional[str], expected: Optional[str]) -> bool:
    """Exact equality check on the raw header value."""
    if supplied is None or not expected:
        return False
    return secrets.compare_digest(supplied.encode("utf-8"), expected.encode("utf-8"))


def verify_key(request: Request, x_api_key: Optional[str] = Header(None)) -> None:
    """FastAPI dependency rejecting requests without the configured secret."""
    expected = request.app.state.api_key
    if not keys_match(x_api_key, expected):
        reason = "missing header" if x_api_key is None else "key mismatch"
        logger.log_auth_failure(request.url.path, reason)
        raise Unauthorized()
