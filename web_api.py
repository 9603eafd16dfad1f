from __future__ import annotations

import logging
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pymongo import MongoClient

from journal_portal.api.contracts import HealthResponse
from journal_portal.api.http_setup import register_exception_handlers, register_http_middleware
from journal_portal.auth.guard import AuthorizationGuard
from journal_portal.auth.rate_limiter import LoginRateLimiter
from journal_portal.auth.repository import CredentialRepository, CredentialStoreUnavailable
from journal_portal.auth.revocation import (
    InMemoryRevocationRegistry,
    MongoRevocationRegistry,
    RevocationRegistry,
)
from journal_portal.auth.router import create_auth_router
from journal_portal.auth.service import AuthService
from journal_portal.auth.tokens import TokenIssuer
from journal_portal.auth.transport import EXPOSED_TOKEN_HEADERS, SessionTransport
from journal_portal.core.config import AppConfig
from journal_portal.core.logging import setup_logging
from journal_portal.core.mongo_migrations import apply_mongo_migrations
from journal_portal.journals.repository import JournalRepository
from journal_portal.journals.router import create_journals_router
from journal_portal.journals.service import JournalService
from journal_portal.notifications import LoggingNotifier, Notifier
from journal_portal.profiles.router import create_profiles_router
from journal_portal.profiles.service import ProfileService

LOGGER = logging.getLogger(__name__)

APP_ROOT = Path(__file__).resolve().parent


def _resolve(path_value: str) -> Path:
    path = Path(path_value)
    return path if path.is_absolute() else (APP_ROOT / path).resolve()


def _build_revocation_registry(config: AppConfig) -> RevocationRegistry:
    """Shared Mongo registry when Mongo is configured, process-local otherwise."""
    ttl = config.auth.refresh_token_ttl_seconds
    if config.storage.mongo_uri:
        client: MongoClient = MongoClient(
            config.storage.mongo_uri, serverSelectionTimeoutMS=3000
        )
        collection = client[config.storage.mongo_db]["auth_revoked_tokens"]
        return MongoRevocationRegistry(collection, default_ttl_seconds=ttl)
    LOGGER.warning("revocation_registry_in_memory")
    return InMemoryRevocationRegistry(default_ttl_seconds=ttl)


def create_app(
    config: AppConfig | None = None,
    *,
    notifier: Notifier | None = None,
) -> FastAPI:
    config = config or AppConfig.from_env()
    app = FastAPI(title="Journal Portal API", version="1.0.0")
    apply_mongo_migrations(config.storage)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.security.cors_allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", *EXPOSED_TOKEN_HEADERS],
        expose_headers=list(EXPOSED_TOKEN_HEADERS),
    )
    register_http_middleware(app, config=config, logger=LOGGER)
    register_exception_handlers(app, logger=LOGGER)

    notifier = notifier or LoggingNotifier()
    credentials = CredentialRepository(
        _resolve(config.storage.data_dir),
        mongo_uri=config.storage.mongo_uri,
        mongo_db=config.storage.mongo_db,
    )
    issuer = TokenIssuer(config.auth)
    transport = SessionTransport(config.auth)
    guard = AuthorizationGuard(issuer=issuer, transport=transport, repo=credentials)
    auth_service = AuthService(
        repo=credentials,
        issuer=issuer,
        registry=_build_revocation_registry(config),
        config=config.auth,
        notifier=notifier,
    )
    state_db_path = _resolve(config.storage.sqlite_path)
    login_rate_limiter = LoginRateLimiter(
        database_path=state_db_path,
        max_attempts=config.security.login_rate_limit_max_attempts,
        window_seconds=config.security.login_rate_limit_window_seconds,
        lock_seconds=config.security.login_rate_limit_lock_seconds,
    )
    try:
        auth_service.bootstrap_admin_user()
    except CredentialStoreUnavailable:
        LOGGER.warning("bootstrap_admin_skipped", exc_info=True)

    app.include_router(
        create_auth_router(
            service=auth_service,
            guard=guard,
            transport=transport,
            rate_limiter=login_rate_limiter,
            expose_reset_token=config.is_development,
        )
    )
    app.include_router(
        create_profiles_router(
            service=ProfileService(repo=credentials, auth=auth_service),
            guard=guard,
            transport=transport,
        )
    )
    journal_service = JournalService(
        repo=JournalRepository(state_db_path),
        identities=credentials,
        notifier=notifier,
    )
    app.include_router(create_journals_router(journal_service, guard))

    @app.get("/health", response_model=HealthResponse)
    def health() -> HealthResponse:
        return HealthResponse(status="ok")

    return app


load_dotenv()
APP_CONFIG = AppConfig.from_env()
setup_logging(APP_CONFIG.logging.level)
app = create_app(APP_CONFIG)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("web_api:app", host="0.0.0.0", port=8000)
