"""
Storage - Base Interfaces

Abstract collaborator interfaces consumed by the search pipeline and the
access gate. Implementations own persistence; the core only reads policies,
appends records and upserts API keys.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from policy_server.schemas import (
    Activity,
    AnswerResult,
    ApiKeyRecord,
    Policy,
    Query,
    SearchRecord,
    User,
)


class PolicyCorpus(ABC):
    """Read-only source of policy records."""

    @abstractmethod
    def list_policies(self) -> List[Policy]:
        """Return every policy in the corpus."""
        ...

    @abstractmethod
    def get_policy(self, policy_id: int) -> Optional[Policy]:
        """Return one policy or None."""
        ...


class SearchRepository(ABC):
    """Append-only store of search records."""

    @abstractmethod
    def record_search(self, query: Query, result: AnswerResult) -> SearchRecord:
        """Persist a query together with its result.

        Both arguments are required; partial records are never written.
        """
        ...

    @abstractmethod
    def list_searches(self, user_id: int, limit: int = 50) -> List[SearchRecord]:
        """Return a user's records, newest first."""
        ...


class ActivityLog(ABC):
    """Append-only audit log."""

    @abstractmethod
    def record_activity(
        self,
        user_id: int,
        action: str,
        resource_type: str,
        details: Optional[str] = None,
        resource_id: Optional[int] = None,
    ) -> Activity:
        ...

    @abstractmethod
    def list_activities(self, limit: int = 50) -> List[Activity]:
        """Return the most recent entries, newest first."""
        ...


class ApiKeyStore(ABC):
    """Single active API key per user, keyed by owner."""

    @abstractmethod
    def upsert_key(self, record: ApiKeyRecord) -> Optional[ApiKeyRecord]:
        """Store the user's key, invalidating and returning the previous one."""
        ...

    @abstractmethod
    def get_key_by_hash(self, key_hash: str) -> Optional[ApiKeyRecord]:
        ...

    @abstractmethod
    def get_key_for_user(self, user_id: int) -> Optional[ApiKeyRecord]:
        ...


class UserStore(ABC):
    """User account lookup."""

    @abstractmethod
    def get_user(self, user_id: int) -> Optional[User]:
        ...

    @abstractmethod
    def get_user_by_username(self, username: str) -> Optional[User]:
        ...
