from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.contracts import HealthResponse
from app.api.http_setup import register_exception_handlers, register_http_middleware
from app.auth.credentials import CredentialVerifier
from app.auth.repository import RefreshTokenRepository
from app.auth.router import create_auth_router, create_legacy_redirect_router
from app.auth.service import AuthService
from app.auth.tokens import TokenCodec
from app.core.config import AppConfig
from app.core.logging import setup_logging
from app.core.mongo import connect_mongo
from app.core.mongo_migrations import apply_mongo_migrations
from app.core.reaper import ExpiredRecordReaper
from app.notifications.email import EmailSender, SmtpEmailSender
from app.users.repository import PendingRegistrationRepository, UserRepository
from app.users.router import create_users_router

LOGGER = logging.getLogger(__name__)

APP_ROOT = Path(__file__).resolve().parent


def create_app(
    config: AppConfig | None = None,
    *,
    app_root: Path = APP_ROOT,
    email_sender: EmailSender | None = None,
) -> FastAPI:
    """Wire stores, services and routers once and return the ASGI app."""
    config = config or AppConfig.from_env()

    db = connect_mongo(config.storage)
    apply_mongo_migrations(db)
    users = UserRepository(app_root, db)
    pending = PendingRegistrationRepository(app_root, db)
    refresh_tokens = RefreshTokenRepository(app_root, db)
    if email_sender is None:
        email_sender = SmtpEmailSender(
            config.email,
            link_ttl_seconds=config.auth.verification_token_ttl_seconds,
        )

    auth_service = AuthService(
        config=config.auth,
        users=users,
        pending=pending,
        refresh_tokens=refresh_tokens,
        codec=TokenCodec(config.auth),
        credentials=CredentialVerifier(),
        email_sender=email_sender,
    )
    reaper = ExpiredRecordReaper(
        [refresh_tokens, pending],
        interval_seconds=config.storage.reaper_interval_seconds,
    )

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        await reaper.start()
        try:
            yield
        finally:
            await reaper.stop()

    app = FastAPI(title="Task Tracker API", version="1.0.0", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.security.cors_allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type"],
    )
    register_http_middleware(app, config=config, logger=LOGGER)
    register_exception_handlers(app, logger=LOGGER)

    app.include_router(create_users_router(auth_service))
    app.include_router(
        create_auth_router(auth_service, frontend_url=config.security.frontend_url)
    )
    app.include_router(create_legacy_redirect_router())

    @app.get("/api/health", response_model=HealthResponse)
    def health() -> HealthResponse:
        return HealthResponse(status="ok")

    app.state.auth_service = auth_service
    app.state.reaper = reaper
    return app


load_dotenv()
APP_CONFIG = AppConfig.from_env()
setup_logging(APP_CONFIG.logging.level)
app = create_app(APP_CONFIG)
