"""
Services Module - Business Logic Layer

Provides candidate selection, model invocation, response normalization,
search orchestration, policy analysis and the access gate.
"""

from policy_server.services.candidate_selector import Candidate, CandidateSelector
from policy_server.services.model_client import ModelClient, ModelInvocation, EndpointFailure
from policy_server.services.response_normalizer import ResponseNormalizer
from policy_server.services.search_service import SearchService
from policy_server.services.policy_analyzer import PolicyAnalyzer
from policy_server.services.session_store import SessionStore
from policy_server.services.auth_service import (
    ApiKeyResolver,
    ApiKeyService,
    AuthService,
    IdentityResolver,
    SessionResolver,
)

__all__ = [
    "Candidate",
    "CandidateSelector",
    "ModelClient",
    "ModelInvocation",
    "EndpointFailure",
    "ResponseNormalizer",
    "SearchService",
    "PolicyAnalyzer",
    "SessionStore",
    "ApiKeyResolver",
    "ApiKeyService",
    "AuthService",
    "IdentityResolver",
    "SessionResolver",
]
