"""User registration API router."""

from __future__ import annotations

from fastapi import APIRouter

from app.api.contracts import ApiErrorResponse, MessageResponse
from app.auth.service import AuthService
from app.users.models import RegisterRequest


def create_users_router(service: AuthService) -> APIRouter:
    """Build router exposing self-signup."""
    router = APIRouter(prefix="/users", tags=["users"])

    @router.post(
        "/register",
        status_code=201,
        response_model=MessageResponse,
        responses={409: {"model": ApiErrorResponse}, 502: {"model": ApiErrorResponse}},
    )
    def register(req: RegisterRequest) -> MessageResponse:
        """Start registration; the account exists only after email verification."""
        service.register(req.name, req.email, req.password)
        return MessageResponse(
            message="Registration successful. Please check your email to verify your account."
        )

    return router
