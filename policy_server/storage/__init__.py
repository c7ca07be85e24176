"""
Storage Module - Collaborator Interfaces

Abstract stores consumed by the pipeline plus the in-memory implementation.
"""

from policy_server.storage.base import (
    ActivityLog,
    ApiKeyStore,
    PolicyCorpus,
    SearchRepository,
    UserStore,
)
from policy_server.storage.memory import MemoryStorage

__all__ = [
    "ActivityLog",
    "ApiKeyStore",
    "PolicyCorpus",
    "SearchRepository",
    "UserStore",
    "MemoryStorage",
]
