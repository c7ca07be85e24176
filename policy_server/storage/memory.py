"""
Storage - In-Memory Store

Thread-safe in-memory implementation of every collaborator interface.
"""

import threading
from datetime import datetime, timezone
from typing import Dict, List, Optional

from policy_server.schemas import (
    Activity,
    AnswerResult,
    ApiKeyRecord,
    Policy,
    Query,
    SearchRecord,
    User,
)
from policy_server.storage.base import (
    ActivityLog,
    ApiKeyStore,
    PolicyCorpus,
    SearchRepository,
    UserStore,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MemoryStorage(PolicyCorpus, SearchRepository, ActivityLog, ApiKeyStore, UserStore):
    """In-memory storage for users, policies, searches, activities and API keys."""

    def __init__(self):
        self._lock = threading.Lock()
        self._users: Dict[int, User] = {}
        self._policies: Dict[int, Policy] = {}
        self._searches: List[SearchRecord] = []
        self._activities: List[Activity] = []
        # owner_user_id -> record, key_hash -> owner_user_id
        self._keys_by_user: Dict[int, ApiKeyRecord] = {}
        self._owner_by_hash: Dict[str, int] = {}
        self._next_user_id = 1
        self._next_policy_id = 1
        self._next_search_id = 1
        self._next_activity_id = 1

    # ─────────────────────────────────────────────
    #  Users
    # ─────────────────────────────────────────────

    def add_user(
        self,
        username: str,
        password_hash: str,
        name: str = "",
        email: str = "",
    ) -> User:
        with self._lock:
            if any(u.username == username for u in self._users.values()):
                raise ValueError(f"Username already exists: {username}")
            user = User(
                id=self._next_user_id,
                username=username,
                name=name or username,
                email=email or f"{username}@example.com",
                password_hash=password_hash,
            )
            self._users[user.id] = user
            self._next_user_id += 1
            return user

    def get_user(self, user_id: int) -> Optional[User]:
        with self._lock:
            return self._users.get(user_id)

    def get_user_by_username(self, username: str) -> Optional[User]:
        with self._lock:
            for user in self._users.values():
                if user.username == username:
                    return user
            return None

    # ─────────────────────────────────────────────
    #  Policies
    # ─────────────────────────────────────────────

    def add_policy(
        self,
        title: str,
        content: str,
        category_id: int = 1,
        updated_at: Optional[datetime] = None,
        policy_id: Optional[int] = None,
        description: Optional[str] = None,
        policy_ref: Optional[str] = None,
    ) -> Policy:
        with self._lock:
            pid = policy_id if policy_id is not None else self._next_policy_id
            if pid in self._policies:
                raise ValueError(f"Policy id already exists: {pid}")
            policy = Policy(
                id=pid,
                title=title,
                content=content,
                category_id=category_id,
                updated_at=updated_at or _utcnow(),
                description=description,
                policy_ref=policy_ref,
            )
            self._policies[pid] = policy
            self._next_policy_id = max(self._next_policy_id, pid + 1)
            return policy

    def list_policies(self) -> List[Policy]:
        with self._lock:
            return list(self._policies.values())

    def get_policy(self, policy_id: int) -> Optional[Policy]:
        with self._lock:
            return self._policies.get(policy_id)

    # ─────────────────────────────────────────────
    #  Searches
    # ─────────────────────────────────────────────

    def record_search(self, query: Query, result: AnswerResult) -> SearchRecord:
        if query is None or result is None:
            raise ValueError("A search record needs both a query and a result")
        with self._lock:
            record = SearchRecord(
                id=self._next_search_id,
                query=query,
                result=result.model_dump_json(by_alias=True, exclude_none=True),
                timestamp=_utcnow(),
            )
            self._searches.append(record)
            self._next_search_id += 1
            return record

    def list_searches(self, user_id: int, limit: int = 50) -> List[SearchRecord]:
        with self._lock:
            mine = [r for r in self._searches if r.query.issuer_user_id == user_id]
        return list(reversed(mine))[:limit]

    # ─────────────────────────────────────────────
    #  Activities
    # ─────────────────────────────────────────────

    def record_activity(
        self,
        user_id: int,
        action: str,
        resource_type: str,
        details: Optional[str] = None,
        resource_id: Optional[int] = None,
    ) -> Activity:
        with self._lock:
            activity = Activity(
                id=self._next_activity_id,
                user_id=user_id,
                action=action,
                resource_type=resource_type,
                resource_id=resource_id,
                details=details,
                timestamp=_utcnow(),
            )
            self._activities.append(activity)
            self._next_activity_id += 1
            return activity

    def list_activities(self, limit: int = 50) -> List[Activity]:
        with self._lock:
            return list(reversed(self._activities))[:limit]

    # ─────────────────────────────────────────────
    #  API keys
    # ─────────────────────────────────────────────

    def upsert_key(self, record: ApiKeyRecord) -> Optional[ApiKeyRecord]:
        with self._lock:
            previous = self._keys_by_user.get(record.owner_user_id)
            if previous is not None:
                self._owner_by_hash.pop(previous.key_hash, None)
            self._keys_by_user[record.owner_user_id] = record
            self._owner_by_hash[record.key_hash] = record.owner_user_id
            return previous

    def get_key_by_hash(self, key_hash: str) -> Optional[ApiKeyRecord]:
        with self._lock:
            owner = self._owner_by_hash.get(key_hash)
            if owner is None:
                return None
            return self._keys_by_user.get(owner)

    def get_key_for_user(self, user_id: int) -> Optional[ApiKeyRecord]:
        with self._lock:
            return self._keys_by_user.get(user_id)
