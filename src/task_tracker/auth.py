"""
Password hashing and bearer-token sessions for the REST API.

Passwords are stored as werkzeug password hashes in the users table. Tokens
are opaque random strings kept in process memory; restarting the server logs
every client out, which the client handles through its 401 redirect.
"""

import secrets
import threading
from typing import Dict, Optional

from werkzeug.security import generate_password_hash, check_password_hash


def hash_password(password: str) -> str:
    """Return a salted hash suitable for the users.password column."""
    return generate_password_hash(password)


def verify_password(password: str, encoded: Optional[str]) -> bool:
    """Check a password against a hash produced by hash_password."""
    if not encoded:
        return False
    try:
        return check_password_hash(encoded, password)
    except ValueError:
        # Stored value is not a recognised hash format
        return False


class TokenRegistry:
    """Thread-safe map of issued bearer tokens to user ids."""

    def __init__(self):
        self._tokens: Dict[str, str] = {}
        self._lock = threading.Lock()

    def issue(self, uid: str) -> str:
        token = secrets.token_urlsafe(32)
        with self._lock:
            self._tokens[token] = uid
        return token

    def resolve(self, token: str) -> Optional[str]:
        with self._lock:
            return self._tokens.get(token)

    def revoke(self, token: str) -> bool:
        with self._lock:
            return self._tokens.pop(token, None) is not None

    def revoke_user(self, uid: str) -> int:
        """Drop every token issued to a user; returns how many were removed."""
        with self._lock:
            stale = [token for token, owner in self._tokens.items() if owner == uid]
            for token in stale:
                del self._tokens[token]
            return len(stale)
