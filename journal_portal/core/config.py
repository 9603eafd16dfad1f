"""Application configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass


def _env_flag(name: str, default: str = "0") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class AuthConfig:
    """Authentication-related configuration."""

    access_secret: str
    refresh_secret: str
    access_token_ttl_seconds: int
    refresh_token_ttl_seconds: int
    reset_token_ttl_seconds: int
    issuer: str
    admin_email: str
    admin_password: str
    cookie_secure: bool
    cookie_samesite: str


@dataclass(frozen=True)
class StorageConfig:
    """Persistence locations for credentials, journals and runtime state."""

    data_dir: str
    sqlite_path: str
    mongo_uri: str
    mongo_db: str


@dataclass(frozen=True)
class LoggingConfig:
    """Structured logging configuration."""

    level: str


@dataclass(frozen=True)
class SecurityConfig:
    """API perimeter security settings."""

    cors_allowed_origins: list[str]
    request_max_bytes: int
    login_rate_limit_max_attempts: int
    login_rate_limit_window_seconds: int
    login_rate_limit_lock_seconds: int


@dataclass(frozen=True)
class AppConfig:
    """Top-level application configuration."""

    environment: str
    auth: AuthConfig
    storage: StorageConfig
    logging: LoggingConfig
    security: SecurityConfig

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @staticmethod
    def from_env() -> "AppConfig":
        """Build app config from process environment."""
        environment = os.getenv("APP_ENV", "development").strip().lower() or "development"
        production = environment == "production"

        access_secret = (
            os.getenv("AUTH_ACCESS_SECRET", "").strip() or "dev-access-secret-change-me"
        )
        refresh_secret = (
            os.getenv("AUTH_REFRESH_SECRET", "").strip() or "dev-refresh-secret-change-me"
        )
        access_ttl = int(os.getenv("AUTH_ACCESS_TOKEN_TTL_SECONDS", "900"))
        refresh_ttl = int(os.getenv("AUTH_REFRESH_TOKEN_TTL_SECONDS", "604800"))
        reset_ttl = int(os.getenv("AUTH_RESET_TOKEN_TTL_SECONDS", "3600"))
        issuer = os.getenv("AUTH_ISSUER", "journal-portal").strip() or "journal-portal"
        admin_email = os.getenv("AUTH_ADMIN_EMAIL", "admin@portal.local").strip().lower()
        admin_password = os.getenv("AUTH_ADMIN_PASSWORD", "admin123").strip()
        cookie_secure = _env_flag("AUTH_COOKIE_SECURE", "1" if production else "0")
        cookie_samesite = (
            os.getenv("AUTH_COOKIE_SAMESITE", "none" if production else "lax")
            .strip()
            .lower()
        )

        data_dir = os.getenv("PORTAL_DATA_DIR", "runtime").strip() or "runtime"
        sqlite_path = (
            os.getenv("PORTAL_SQLITE_PATH", "runtime/portal.db").strip()
            or "runtime/portal.db"
        )
        mongo_uri = os.getenv("MONGODB_URI", "").strip()
        mongo_db = os.getenv("MONGODB_DB", "journal_portal").strip() or "journal_portal"

        log_level = os.getenv("LOG_LEVEL", "INFO").strip() or "INFO"
        cors_allowed_origins = [
            origin.strip()
            for origin in os.getenv(
                "CORS_ALLOWED_ORIGINS",
                "http://localhost:3000,http://127.0.0.1:3000",
            ).split(",")
            if origin.strip()
        ]
        request_max_bytes = int(os.getenv("REQUEST_MAX_BYTES", str(10 * 1024 * 1024)))
        login_rate_limit_max_attempts = int(
            os.getenv("LOGIN_RATE_LIMIT_MAX_ATTEMPTS", "5")
        )
        login_rate_limit_window_seconds = int(
            os.getenv("LOGIN_RATE_LIMIT_WINDOW_SECONDS", "300")
        )
        login_rate_limit_lock_seconds = int(
            os.getenv("LOGIN_RATE_LIMIT_LOCK_SECONDS", "600")
        )

        return AppConfig(
            environment=environment,
            auth=AuthConfig(
                access_secret=access_secret,
                refresh_secret=refresh_secret,
                access_token_ttl_seconds=access_ttl,
                refresh_token_ttl_seconds=refresh_ttl,
                reset_token_ttl_seconds=reset_ttl,
                issuer=issuer,
                admin_email=admin_email,
                admin_password=admin_password,
                cookie_secure=cookie_secure,
                cookie_samesite=cookie_samesite,
            ),
            storage=StorageConfig(
                data_dir=data_dir,
                sqlite_path=sqlite_path,
                mongo_uri=mongo_uri,
                mongo_db=mongo_db,
            ),
            logging=LoggingConfig(level=log_level),
            security=SecurityConfig(
                cors_allowed_origins=cors_allowed_origins,
                request_max_bytes=request_max_bytes,
                login_rate_limit_max_attempts=login_rate_limit_max_attempts,
                login_rate_limit_window_seconds=login_rate_limit_window_seconds,
                login_rate_limit_lock_seconds=login_rate_limit_lock_seconds,
            ),
        )
