"""Application configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class AuthConfig:
    """Authentication-related configuration."""

    access_secret: str
    refresh_secret: str
    access_token_ttl_seconds: int
    refresh_token_ttl_seconds: int
    verification_token_ttl_seconds: int
    issuer: str


@dataclass(frozen=True)
class StorageConfig:
    """Document store connection and maintenance settings."""

    mongo_uri: str
    mongo_db: str
    reaper_interval_seconds: int


@dataclass(frozen=True)
class EmailConfig:
    """Outgoing SMTP settings; empty host means dev mode (log only)."""

    smtp_host: str
    smtp_port: int
    smtp_user: str
    smtp_password: str
    smtp_use_tls: bool
    from_email: str
    from_name: str
    app_base_url: str


@dataclass(frozen=True)
class LoggingConfig:
    """Structured logging configuration."""

    level: str


@dataclass(frozen=True)
class SecurityConfig:
    """API perimeter security settings."""

    cors_allowed_origins: list[str]
    request_max_bytes: int
    frontend_url: str


@dataclass(frozen=True)
class AppConfig:
    """Top-level application configuration."""

    auth: AuthConfig
    storage: StorageConfig
    email: EmailConfig
    logging: LoggingConfig
    security: SecurityConfig

    @staticmethod
    def from_env() -> "AppConfig":
        """Build app config from process environment."""
        access_secret = (
            os.getenv("JWT_SECRET", "").strip() or "dev-insecure-access-secret"
        )
        refresh_secret = (
            os.getenv("JWT_REFRESH_SECRET", "").strip() or "dev-insecure-refresh-secret"
        )
        if access_secret == refresh_secret:
            raise ValueError("JWT_SECRET and JWT_REFRESH_SECRET must differ")

        access_ttl = int(os.getenv("AUTH_ACCESS_TOKEN_TTL_SECONDS", "900"))
        refresh_ttl = int(os.getenv("AUTH_REFRESH_TOKEN_TTL_SECONDS", "604800"))
        verification_ttl = int(
            os.getenv("AUTH_VERIFICATION_TOKEN_TTL_SECONDS", "86400")
        )
        issuer = os.getenv("AUTH_ISSUER", "task-tracker").strip() or "task-tracker"

        mongo_uri = os.getenv("MONGODB_URI", "").strip()
        mongo_db = os.getenv("MONGODB_DB", "task_tracker").strip() or "task_tracker"
        reaper_interval = int(os.getenv("STORE_REAPER_INTERVAL_SECONDS", "300"))

        smtp_user = os.getenv("SMTP_USER", "").strip()
        log_level = os.getenv("LOG_LEVEL", "INFO").strip() or "INFO"
        cors_allowed_origins = [
            origin.strip()
            for origin in os.getenv(
                "CORS_ALLOWED_ORIGINS",
                "http://localhost:3000,http://127.0.0.1:3000",
            ).split(",")
            if origin.strip()
        ]
        request_max_bytes = int(os.getenv("REQUEST_MAX_BYTES", str(1024 * 1024)))

        return AppConfig(
            auth=AuthConfig(
                access_secret=access_secret,
                refresh_secret=refresh_secret,
                access_token_ttl_seconds=access_ttl,
                refresh_token_ttl_seconds=refresh_ttl,
                verification_token_ttl_seconds=verification_ttl,
                issuer=issuer,
            ),
            storage=StorageConfig(
                mongo_uri=mongo_uri,
                mongo_db=mongo_db,
                reaper_interval_seconds=max(1, reaper_interval),
            ),
            email=EmailConfig(
                smtp_host=os.getenv("SMTP_HOST", "").strip(),
                smtp_port=int(os.getenv("SMTP_PORT", "587")),
                smtp_user=smtp_user,
                smtp_password=os.getenv("SMTP_PASS", ""),
                smtp_use_tls=not _env_flag("SMTP_SECURE", "0"),
                from_email=os.getenv("SMTP_FROM", "").strip()
                or smtp_user
                or "noreply@tasktracker.dev",
                from_name=os.getenv("SMTP_FROM_NAME", "Task Tracker").strip()
                or "Task Tracker",
                app_base_url=os.getenv("APP_BASE_URL", "http://localhost:5000")
                .strip()
                .rstrip("/"),
            ),
            logging=LoggingConfig(level=log_level),
            security=SecurityConfig(
                cors_allowed_origins=cors_allowed_origins,
                request_max_bytes=request_max_bytes,
                frontend_url=os.getenv("FRONTEND_URL", "http://localhost:3000")
                .strip()
                .rstrip("/"),
            ),
        )
