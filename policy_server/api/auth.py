"""
API - Auth Routes

Web login/logout with a session cookie, and the extension login and
key-generation endpoints.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request, Response

from policy_server.api.deps import (
    ServiceContainer,
    get_container,
    require_https,
    session_user,
)
from policy_server.schemas import (
    ApiKeyResponse,
    ExtensionLoginResponse,
    LoginRequest,
    UserOut,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["auth"])


# Password checks are CPU-bound; sync handlers run in the threadpool
@router.post("/login", response_model=UserOut)
def login(
    body: LoginRequest,
    response: Response,
    container: ServiceContainer = Depends(get_container),
):
    """Verify credentials and start a web session."""
    user = container.auth.login(body.username, body.password, channel="web")
    token = container.auth.start_session(user)

    auth_settings = container.settings.auth
    response.set_cookie(
        key=auth_settings.session_cookie_name,
        value=token,
        max_age=auth_settings.session_ttl_seconds,
        httponly=True,
        samesite="lax",
        secure=auth_settings.session_cookie_secure,
    )
    return UserOut.from_user(user)


@router.post("/logout")
async def logout(
    request: Request,
    response: Response,
    container: ServiceContainer = Depends(get_container),
):
    """End the current session, if any."""
    cookie_name = container.settings.auth.session_cookie_name
    token: Optional[str] = request.cookies.get(cookie_name)
    container.auth.end_session(token)
    response.delete_cookie(cookie_name)
    return {"success": True}


@router.get("/user", response_model=UserOut)
async def current_user(
    user_id: int = Depends(session_user),
    container: ServiceContainer = Depends(get_container),
):
    return UserOut.from_user(container.auth.current_user(user_id))


# ─────────────────────────────────────────────
#  Extension
# ─────────────────────────────────────────────

@router.post(
    "/extension/login",
    response_model=ExtensionLoginResponse,
    dependencies=[Depends(require_https)],
)
def extension_login(
    body: LoginRequest,
    container: ServiceContainer = Depends(get_container),
):
    """
    Log the extension in.

    Only key digests are stored, so every extension login issues a fresh
    key and invalidates the previous one.
    """
    user = container.auth.login(body.username, body.password, channel="extension")
    api_key = container.api_keys.generate_key(user.id)
    return ExtensionLoginResponse(user=UserOut.from_user(user), api_key=api_key)


@router.post(
    "/extension/generate-key",
    response_model=ApiKeyResponse,
    dependencies=[Depends(require_https)],
)
async def generate_key(
    user_id: int = Depends(session_user),
    container: ServiceContainer = Depends(get_container),
):
    """Create or replace the caller's API key (web session required)."""
    return ApiKeyResponse(api_key=container.api_keys.generate_key(user_id))
