from __future__ import annotations

from fastapi.routing import APIRoute

from web_api import app


def test_health_endpoint_contract_function() -> None:
    route = next(
        (
            candidate
            for candidate in app.routes
            if isinstance(candidate, APIRoute) and candidate.path == "/api/health"
        ),
        None,
    )

    assert route is not None
    payload = route.endpoint()
    assert payload.model_dump() == {"status": "ok"}


def test_openapi_contains_auth_session_contracts() -> None:
    schema = app.openapi()

    login = schema["paths"]["/auth/login"]["post"]
    assert login["responses"]["200"]["content"]["application/json"]["schema"][
        "$ref"
    ].endswith("AuthSessionResponse")
    assert login["responses"]["401"]["content"]["application/json"]["schema"][
        "$ref"
    ].endswith("ApiErrorResponse")

    refresh = schema["paths"]["/auth/refresh"]["post"]
    assert refresh["responses"]["200"]["content"]["application/json"]["schema"][
        "$ref"
    ].endswith("TokenPairResponse")


def test_openapi_contains_registration_contracts() -> None:
    schema = app.openapi()

    register = schema["paths"]["/users/register"]["post"]
    assert register["responses"]["201"]["content"]["application/json"]["schema"][
        "$ref"
    ].endswith("MessageResponse")
    assert register["responses"]["409"]["content"]["application/json"]["schema"][
        "$ref"
    ].endswith("ApiErrorResponse")

    resend = schema["paths"]["/auth/resend-verification"]["post"]
    assert resend["responses"]["409"]["content"]["application/json"]["schema"][
        "$ref"
    ].endswith("ApiErrorResponse")


def test_legacy_verify_link_is_hidden_from_schema() -> None:
    schema = app.openapi()

    assert "/verify-email" not in schema["paths"]
    assert "/auth/verify-email" in schema["paths"]
