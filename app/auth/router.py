"""Authentication API router."""

from __future__ import annotations

import logging
from html import escape
from typing import Callable
from urllib.parse import quote

from fastapi import APIRouter, Depends, Header, Query
from fastapi.responses import HTMLResponse, RedirectResponse

from app.api.contracts import (
    ApiErrorResponse,
    AuthMeResponse,
    AuthSessionResponse,
    LogoutAllResponse,
    MessageResponse,
    TokenPairResponse,
    VerificationStatusResponse,
)
from app.api.errors import ApiError, ApiErrorCode
from app.auth.errors import AuthError
from app.auth.models import (
    AccessClaims,
    LoginRequest,
    LogoutRequest,
    RefreshRequest,
    ResendVerificationRequest,
)
from app.auth.service import AuthService
from app.core.logging import redact_email

LOGGER = logging.getLogger(__name__)

_AUTH_ERRORS = {401: {"model": ApiErrorResponse}}


def _extract_bearer_token(authorization: str | None) -> str:
    """Extract bearer token from Authorization header."""
    if not authorization:
        return ""
    parts = authorization.strip().split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return ""
    return parts[1].strip()


def create_access_guard(service: AuthService) -> Callable[..., AccessClaims]:
    """Build a FastAPI dependency that requires a valid access token."""

    def require_user(authorization: str | None = Header(default=None)) -> AccessClaims:
        token = _extract_bearer_token(authorization)
        if not token:
            raise ApiError(
                status_code=401,
                error_code=ApiErrorCode.AUTH_MISSING_TOKEN,
                message="Access token is missing",
            )
        return service.verify_access_token(token)

    return require_user


def render_verification_page(*, success: bool, message: str, redirect_url: str) -> str:
    """Render the small HTML page shown after following a verification link."""
    title = "Email Verified!" if success else "Verification Failed"
    accent = "#22c55e" if success else "#ef4444"
    redirect = (
        f'<p class="redirect">Redirecting to login in 3 seconds...</p>'
        f'<meta http-equiv="refresh" content="3;url={escape(redirect_url)}">'
        if success
        else ""
    )
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>Email Verification - Task Tracker</title>
  <style>
    body {{ font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
           min-height: 100vh; display: flex; align-items: center; justify-content: center;
           background: #f9fafb; margin: 0; }}
    .card {{ background: white; border-radius: 12px; padding: 40px; max-width: 440px;
             width: 90%; text-align: center; border-top: 4px solid {accent}; }}
    h1 {{ font-size: 22px; color: #111827; }}
    p {{ color: #6b7280; font-size: 15px; line-height: 1.5; }}
    .redirect {{ font-size: 13px; color: #9ca3af; }}
  </style>
</head>
<body>
  <div class="card">
    <h1>{title}</h1>
    <p>{escape(message)}</p>
    {redirect}
  </div>
</body>
</html>
"""


def create_auth_router(service: AuthService, *, frontend_url: str) -> APIRouter:
    """Build authentication router with login/refresh/logout/verification endpoints."""
    router = APIRouter(prefix="/auth", tags=["auth"])
    require_user = create_access_guard(service)

    @router.post("/login", response_model=AuthSessionResponse, responses=_AUTH_ERRORS)
    def login(req: LoginRequest) -> AuthSessionResponse:
        """Authenticate user and return token pair."""
        session = service.login(req.email, req.password)
        return AuthSessionResponse(**session.model_dump())

    @router.post("/refresh", response_model=TokenPairResponse, responses=_AUTH_ERRORS)
    def refresh(req: RefreshRequest) -> TokenPairResponse:
        """Rotate refresh token and issue new session tokens."""
        pair = service.refresh_tokens(req.refresh_token)
        return TokenPairResponse(**pair.model_dump())

    @router.post("/logout", response_model=MessageResponse)
    def logout(req: LogoutRequest) -> MessageResponse:
        """Invalidate the token family of the supplied refresh token."""
        service.logout(req.refresh_token)
        return MessageResponse(message="Logged out successfully")

    @router.post("/logout-all", response_model=LogoutAllResponse, responses=_AUTH_ERRORS)
    def logout_all(claims: AccessClaims = Depends(require_user)) -> LogoutAllResponse:
        """Revoke every refresh token of the authenticated user."""
        return LogoutAllResponse(revoked=service.logout_all(claims.user_id))

    @router.get("/me", response_model=AuthMeResponse, responses=_AUTH_ERRORS)
    def me(claims: AccessClaims = Depends(require_user)) -> AuthMeResponse:
        """Return current authenticated user claims from access token."""
        return AuthMeResponse(**claims.model_dump())

    @router.get("/verify-email", response_class=HTMLResponse)
    def verify_email(token: str = Query(default="")) -> HTMLResponse:
        """Confirm a registration from the emailed link and render the outcome."""
        if not token:
            return HTMLResponse(
                render_verification_page(
                    success=False,
                    message="Invalid verification link. Please check your email and try again.",
                    redirect_url=frontend_url,
                ),
                status_code=400,
            )
        try:
            service.verify_email(token)
        except AuthError as exc:
            return HTMLResponse(
                render_verification_page(
                    success=False, message=exc.message, redirect_url=frontend_url
                ),
                status_code=400,
            )
        return HTMLResponse(
            render_verification_page(
                success=True,
                message="Your email has been verified successfully! You can now log in.",
                redirect_url=f"{frontend_url}/?verified=true",
            )
        )

    @router.post(
        "/resend-verification",
        response_model=MessageResponse,
        responses={409: {"model": ApiErrorResponse}},
    )
    def resend_verification(req: ResendVerificationRequest) -> MessageResponse:
        """Send a fresh verification link without revealing registration state."""
        service.resend_verification_email(req.email)
        LOGGER.info("verification_resend_requested", extra={"email": redact_email(req.email)})
        return MessageResponse(
            message=(
                "If your email is registered and unverified, "
                "a verification email has been sent"
            )
        )

    @router.get("/check-verification-status", response_model=VerificationStatusResponse)
    def check_verification_status(
        email: str = Query(min_length=1),
    ) -> VerificationStatusResponse:
        """Report whether a verified account exists for an email."""
        return VerificationStatusResponse(verified=service.check_verification_status(email))

    return router


def create_legacy_redirect_router() -> APIRouter:
    """Redirect old verification links that lack the ``/auth`` prefix."""
    router = APIRouter(tags=["auth"], include_in_schema=False)

    @router.get("/verify-email")
    def legacy_verify_email(token: str = Query(default="")) -> RedirectResponse:
        if not token:
            raise ApiError(
                status_code=400,
                error_code=ApiErrorCode.VALIDATION_ERROR,
                message="Invalid link",
            )
        return RedirectResponse(url=f"/auth/verify-email?token={quote(token)}", status_code=302)

    return router
