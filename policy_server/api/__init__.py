"""
API Module - HTTP Routers

FastAPI routers for auth, search and policy endpoints.
"""

from policy_server.api import auth, policies, search

__all__ = ["auth", "policies", "search"]
