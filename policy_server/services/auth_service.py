"""
Services - Access Gate

Password verification, API key issuance and the two identity resolvers
(web session cookie and extension API key). Every resolver failure raises
the same Unauthenticated error; the cause is only logged.
"""

import hashlib
import hmac
import logging
import re
import secrets
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
from fastapi.requests import HTTPConnection

from policy_server.config import get_settings
from policy_server.errors import Unauthenticated
from policy_server.schemas import ApiKeyRecord, User
from policy_server.services.session_store import SessionStore
from policy_server.storage.base import ActivityLog, ApiKeyStore, UserStore

logger = logging.getLogger(__name__)


API_KEY_PREFIX = "pk_"
API_KEY_PATTERN = re.compile(r"^pk_[A-Za-z0-9_-]{32,128}$")
LOG_PREFIX_CHARS = 8


# ─────────────────────────────────────────────
#  Passwords
# ─────────────────────────────────────────────

def hash_password(password: str, rounds: int = 12) -> str:
    """bcrypt hash of a password, as text."""
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Check a password against a stored bcrypt hash."""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed hash, or a password bcrypt refuses (over 72 bytes)
        return False


def hash_api_key(api_key: str) -> str:
    """SHA-256 hex digest used as the storage key for an API key."""
    return hashlib.sha256(api_key.encode("utf-8")).hexdigest()


def key_prefix(value: str) -> str:
    """Short, loggable prefix of a secret."""
    return value[:LOG_PREFIX_CHARS]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ─────────────────────────────────────────────
#  Identity Resolvers
# ─────────────────────────────────────────────

class IdentityResolver(ABC):
    """Resolves the caller of a request to a user id."""

    def resolve(self, request: HTTPConnection) -> int:
        """
        Resolve the request's credential.

        Raises:
            Unauthenticated: credential missing or not valid
        """
        return self.resolve_token(self.credential(request))

    @abstractmethod
    def credential(self, request: HTTPConnection) -> Optional[str]:
        """Raw credential carried by the request, if any."""
        ...

    @abstractmethod
    def resolve_token(self, token: Optional[str]) -> int:
        ...


class SessionResolver(IdentityResolver):
    """Web session cookie → server-side session store."""

    def __init__(self, sessions: SessionStore, settings=None):
        self.settings = settings or get_settings()
        self.sessions = sessions
        self.cookie_name = self.settings.auth.session_cookie_name

    def credential(self, request: HTTPConnection) -> Optional[str]:
        return request.cookies.get(self.cookie_name)

    def resolve_token(self, token: Optional[str]) -> int:
        if not token:
            raise Unauthenticated("no session cookie")

        user_id = self.sessions.get(token)
        if user_id is None:
            logger.info("Rejected unknown or expired session")
            raise Unauthenticated("unknown or expired session")
        return user_id


class ApiKeyResolver(IdentityResolver):
    """Extension API key header → API key store."""

    def __init__(self, keys: ApiKeyStore, settings=None):
        self.settings = settings or get_settings()
        self.keys = keys
        self.header_name = self.settings.auth.api_key_header

    def credential(self, request: HTTPConnection) -> Optional[str]:
        return request.headers.get(self.header_name)

    def resolve_token(self, token: Optional[str]) -> int:
        if not token:
            raise Unauthenticated("no API key")

        token = token.strip()
        if not API_KEY_PATTERN.match(token):
            logger.warning("Rejected malformed API key")
            raise Unauthenticated("malformed API key")

        digest = hash_api_key(token)
        record = self.keys.get_key_by_hash(digest)
        if record is None or not hmac.compare_digest(record.key_hash, digest):
            logger.warning(f"Rejected unknown API key {key_prefix(token)}...")
            raise Unauthenticated("unknown API key")

        if record.expires_at is not None and record.expires_at <= _utcnow():
            logger.warning(f"Rejected expired API key {record.key_prefix}...")
            raise Unauthenticated("expired API key")

        return record.owner_user_id


# ─────────────────────────────────────────────
#  Services
# ─────────────────────────────────────────────

class ApiKeyService:
    """Issues and rotates the single active API key of a user."""

    def __init__(self, keys: ApiKeyStore, activities: ActivityLog, settings=None):
        self.settings = settings or get_settings()
        self.keys = keys
        self.activities = activities

    def generate_key(self, user_id: int) -> str:
        """
        Create or replace the user's API key.

        Args:
            user_id: Owner of the key (already authenticated)

        Returns:
            Plaintext key; only its digest is stored
        """
        api_key = API_KEY_PREFIX + secrets.token_urlsafe(32)
        issued_at = _utcnow()
        ttl_days = self.settings.auth.api_key_ttl_days

        record = ApiKeyRecord(
            key_hash=hash_api_key(api_key),
            key_prefix=key_prefix(api_key),
            owner_user_id=user_id,
            issued_at=issued_at,
            expires_at=issued_at + timedelta(days=ttl_days) if ttl_days > 0 else None,
        )
        previous = self.keys.upsert_key(record)

        if previous is not None:
            logger.info(
                f"Rotated API key for user {user_id}: "
                f"{previous.key_prefix}... -> {record.key_prefix}..."
            )
        else:
            logger.info(f"Issued API key {record.key_prefix}... for user {user_id}")

        self.activities.record_activity(
            user_id=user_id,
            action="generated_api_key",
            resource_type="api_key",
            details="Generated new API key for Chrome extension",
        )
        return api_key


class AuthService:
    """Username/password login and session lifecycle."""

    def __init__(
        self,
        users: UserStore,
        sessions: SessionStore,
        activities: ActivityLog,
        settings=None,
    ):
        self.settings = settings or get_settings()
        self.users = users
        self.sessions = sessions
        self.activities = activities
        # Compared against when the username is unknown
        self._dummy_hash = hash_password(
            secrets.token_hex(16), rounds=self.settings.auth.bcrypt_rounds
        )

    def authenticate(self, username: str, password: str) -> User:
        """
        Verify credentials.

        Raises:
            Unauthenticated: unknown user or wrong password
        """
        user = self.users.get_user_by_username(username or "")
        if user is None:
            verify_password(password or "", self._dummy_hash)
            logger.info("Login rejected: unknown user")
            raise Unauthenticated("unknown user")

        if not verify_password(password or "", user.password_hash):
            logger.info(f"Login rejected for user {user.id}: bad password")
            raise Unauthenticated("bad password")

        return user

    def login(self, username: str, password: str, channel: str = "web") -> User:
        """Authenticate and record the login activity."""
        user = self.authenticate(username, password)
        action = "login" if channel == "web" else f"{channel}_login"
        self.activities.record_activity(
            user_id=user.id,
            action=action,
            resource_type="user",
            resource_id=user.id,
            details=f"Logged in via {channel}",
        )
        logger.info(f"User {user.id} logged in via {channel}")
        return user

    def start_session(self, user: User) -> str:
        """New session token for an authenticated user."""
        return self.sessions.create(user.id)

    def end_session(self, token: Optional[str]) -> None:
        self.sessions.delete(token)

    def current_user(self, user_id: int) -> User:
        """User for a resolved id; a deleted user is unauthenticated."""
        user = self.users.get_user(user_id)
        if user is None:
            raise Unauthenticated("user no longer exists")
        return user
