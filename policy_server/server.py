"""
Policy Search Server - Main Entry Point

FastAPI application serving the web client and the browser extension.
"""

import argparse
import logging
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from policy_server.api import auth, policies, search
from policy_server.api.deps import ServiceContainer
from policy_server.config import Settings, get_settings
from policy_server.errors import PolicySearchError, Unauthenticated
from policy_server.logging_config import configure_logging
from policy_server.services import (
    ApiKeyResolver,
    ApiKeyService,
    AuthService,
    ModelClient,
    PolicyAnalyzer,
    SearchService,
    SessionResolver,
    SessionStore,
)
from policy_server.storage import MemoryStorage
from policy_server.storage.seed import load_seed

logger = logging.getLogger(__name__)


def build_container(
    settings: Settings,
    storage: Optional[MemoryStorage] = None,
    model_client: Optional[ModelClient] = None,
) -> ServiceContainer:
    """Wire storage, services and resolvers together."""
    storage = storage if storage is not None else MemoryStorage()
    if settings.storage.seed_file:
        load_seed(storage, settings.storage.seed_file, bcrypt_rounds=settings.auth.bcrypt_rounds)

    model_client = model_client or ModelClient(settings)
    sessions = SessionStore(settings)

    return ServiceContainer(
        settings=settings,
        storage=storage,
        sessions=sessions,
        auth=AuthService(storage, sessions, storage, settings),
        api_keys=ApiKeyService(storage, storage, settings),
        session_resolver=SessionResolver(sessions, settings),
        api_key_resolver=ApiKeyResolver(storage, settings),
        search=SearchService(storage, storage, storage, model_client, settings),
        analyzer=PolicyAnalyzer(model_client),
    )


def create_app(
    settings: Optional[Settings] = None,
    storage: Optional[MemoryStorage] = None,
    model_client: Optional[ModelClient] = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or get_settings()

    app = FastAPI(
        title="Policy Search Server",
        description="Natural-language search over policy documents",
        version="1.0.0",
    )
    app.state.container = build_container(settings, storage, model_client)

    if settings.server.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.server.cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.include_router(auth.router)
    app.include_router(search.router)
    app.include_router(policies.router)

    # ─────────────────────────────────────────────
    #  Error Handlers
    # ─────────────────────────────────────────────

    @app.exception_handler(PolicySearchError)
    async def policy_search_error_handler(request: Request, exc: PolicySearchError):
        if isinstance(exc, Unauthenticated):
            logger.info(f"Unauthenticated {request.method} {request.url.path}: {exc.reason}")
        elif exc.status_code >= 500:
            logger.error(f"{exc.error_code} on {request.url.path}: {exc}")

        content = {"message": exc.public_message}
        if exc.status_code >= 500:
            content["error"] = exc.error_code
        return JSONResponse(status_code=exc.status_code, content=content)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        logger.info(f"Invalid request body on {request.url.path}")
        return JSONResponse(status_code=400, content={"message": "Invalid request body"})

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return JSONResponse(
            status_code=500,
            content={"message": PolicySearchError.public_message, "error": PolicySearchError.error_code},
        )

    @app.get("/health")
    async def health_check():
        return {"status": "ok"}

    return app


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Policy Search Server")
    parser.add_argument(
        "--host",
        default=None,
        help="Bind address (default: from env)"
    )
    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port (default: from env)"
    )
    parser.add_argument(
        "--seed",
        type=Path,
        default=None,
        help="JSON seed file with users and policies (default: from env)"
    )
    args = parser.parse_args()

    settings = get_settings()
    if args.seed:
        settings.storage.seed_file = args.seed

    configure_logging(settings.log.level, settings.log.format)

    import uvicorn

    app = create_app(settings)
    uvicorn.run(
        app,
        host=args.host or settings.server.host,
        port=args.port or settings.server.port,
        log_config=None,
    )


if __name__ == "__main__":
    main()
