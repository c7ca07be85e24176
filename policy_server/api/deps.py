"""
API - Dependencies

Service container shared by the routers, and the FastAPI dependencies that
resolve the caller through the session or API key strategy.
"""

import logging
from dataclasses import dataclass

from fastapi import Depends, Request

from policy_server.config import Settings
from policy_server.errors import InsecureTransport
from policy_server.services import (
    ApiKeyResolver,
    ApiKeyService,
    AuthService,
    PolicyAnalyzer,
    SearchService,
    SessionResolver,
    SessionStore,
)
from policy_server.storage import MemoryStorage

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """Everything a request handler needs, built once per app."""
    settings: Settings
    storage: MemoryStorage
    sessions: SessionStore
    auth: AuthService
    api_keys: ApiKeyService
    session_resolver: SessionResolver
    api_key_resolver: ApiKeyResolver
    search: SearchService
    analyzer: PolicyAnalyzer


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container


def require_https(
    request: Request,
    container: ServiceContainer = Depends(get_container),
) -> None:
    """Reject plain-HTTP extension calls when HTTPS is required. Never redirects."""
    if not container.settings.auth.require_https_for_extension:
        return

    forwarded = request.headers.get("x-forwarded-proto", "")
    scheme = forwarded.split(",")[0].strip().lower() or request.url.scheme
    if scheme != "https":
        logger.warning(f"Rejected extension request over {scheme} to {request.url.path}")
        raise InsecureTransport(f"extension request over {scheme}")


def session_user(
    request: Request,
    container: ServiceContainer = Depends(get_container),
) -> int:
    """User id from the web session cookie."""
    return container.session_resolver.resolve(request)


def api_key_user(
    request: Request,
    _: None = Depends(require_https),
    container: ServiceContainer = Depends(get_container),
) -> int:
    """User id from the extension API key header."""
    return container.api_key_resolver.resolve(request)
