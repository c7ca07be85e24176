"""
Services - Session Store

Server-side web sessions in a TTL cache. The cookie carries only an opaque
token; the token maps to a user id until it expires or is deleted.
"""

import secrets
import threading
from typing import Optional

from cachetools import TTLCache

from policy_server.config import get_settings


class SessionStore:
    """TTL-based session store keyed by random token."""

    def __init__(self, settings=None):
        self.settings = settings or get_settings()
        self._lock = threading.Lock()
        self._sessions = TTLCache(
            maxsize=self.settings.auth.max_sessions,
            ttl=self.settings.auth.session_ttl_seconds,
        )

    def create(self, user_id: int) -> str:
        """
        Start a session for a user.

        Args:
            user_id: Authenticated user

        Returns:
            Opaque session token for the cookie
        """
        token = secrets.token_urlsafe(32)
        with self._lock:
            self._sessions[token] = user_id
        return token

    def get(self, token: Optional[str]) -> Optional[int]:
        """User id for a live session token, or None."""
        if not token:
            return None
        with self._lock:
            return self._sessions.get(token)

    def delete(self, token: Optional[str]) -> None:
        """End a session."""
        if not token:
            return
        with self._lock:
            self._sessions.pop(token, None)

    def get_stats(self) -> dict:
        """Get session statistics."""
        with self._lock:
            return {
                "size": len(self._sessions),
                "maxsize": self._sessions.maxsize,
                "ttl": self._sessions.ttl,
            }
