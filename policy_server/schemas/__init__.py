"""
Schemas Module - Pydantic Models

Data models for policies, search, authentication and activity.
"""

from policy_server.schemas.policy import Policy, PolicyAnalysis
from policy_server.schemas.search import (
    SearchRequest,
    Query,
    AnswerResult,
    SearchRecord,
    SearchHistoryItem,
)
from policy_server.schemas.auth import (
    User,
    UserOut,
    LoginRequest,
    ApiKeyRecord,
    ApiKeyResponse,
    ExtensionLoginResponse,
    Activity,
)

__all__ = [
    "Policy",
    "PolicyAnalysis",
    "SearchRequest",
    "Query",
    "AnswerResult",
    "SearchRecord",
    "SearchHistoryItem",
    "User",
    "UserOut",
    "LoginRequest",
    "ApiKeyRecord",
    "ApiKeyResponse",
    "ExtensionLoginResponse",
    "Activity",
]
