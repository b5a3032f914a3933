from __future__ import annotations

import asyncio
from dataclasses import replace
from typing import Any

import pytest
from starlette.requests import Request
from starlette.responses import Response

from otp_portal.auth.credentials import (
    CookieCredentialStore,
    CredentialName,
    StoredCredential,
)
from otp_portal.auth.guard import (
    GuardAction,
    create_route_guard_middleware,
    decide,
    is_protected,
)
from otp_portal.core.config import GuardConfig

NOW = 1_700_000_000
POLICY = GuardConfig(
    protected_prefixes=("/dashboard",),
    protected_api_prefixes=("/api/predict",),
    login_path="/email",
    landing_path="/dashboard",
    enforce_expiry=True,
    redirect_back=False,
)
LIVE = StoredCredential(value="sess987", issued_at=NOW, expires_at=NOW + 604800)
EXPIRED = StoredCredential(value="sess987", issued_at=NOW - 700000, expires_at=NOW - 1)


def _request(path: str, cookie: str = "", query: str = "") -> Request:
    headers = [(b"cookie", cookie.encode("latin-1"))] if cookie else []
    scope: dict[str, Any] = {
        "type": "http",
        "asgi": {"version": "3.0"},
        "http_version": "1.1",
        "method": "GET",
        "scheme": "http",
        "path": path,
        "raw_path": path.encode("utf-8"),
        "query_string": query.encode("utf-8"),
        "root_path": "",
        "headers": headers,
        "client": ("127.0.0.1", 1234),
        "server": ("testserver", 80),
    }
    return Request(scope)


def _store_factory(request: Request) -> CookieCredentialStore:
    return CookieCredentialStore(
        request,
        ttl_seconds={CredentialName.SESSION: 604800, CredentialName.TEMP_LOGIN: 86400},
    )


async def _call_next(_request: Request) -> Response:
    return Response(content="page", status_code=200)


@pytest.mark.parametrize(
    ("path", "expected"),
    [
        ("/dashboard", True),
        ("/dashboard/", True),
        ("/dashboard/reports/1", True),
        ("/dashboards", False),
        ("/email", False),
        ("/", False),
    ],
)
def test_is_protected_matches_prefix_and_nested_paths(path: str, expected: bool) -> None:
    assert is_protected(path, ("/dashboard",)) is expected


def test_unprotected_path_is_allowed_without_session() -> None:
    for path in ["/", "/email", "/otp", "/api/login/init"]:
        assert decide(path, None, POLICY, now=NOW).allowed


def test_protected_path_without_session_redirects_to_login() -> None:
    decision = decide("/dashboard/history", None, POLICY, now=NOW)

    assert decision.action is GuardAction.REDIRECT
    assert decision.target == "/email"


def test_protected_path_with_session_is_allowed() -> None:
    assert decide("/dashboard", LIVE, POLICY, now=NOW).allowed


def test_expired_session_is_treated_as_absent() -> None:
    decision = decide("/dashboard", EXPIRED, POLICY, now=NOW)

    assert decision.action is GuardAction.REDIRECT


def test_presence_only_mode_allows_expired_session() -> None:
    policy = replace(POLICY, enforce_expiry=False)

    assert decide("/dashboard", EXPIRED, policy, now=NOW).allowed


def test_redirect_back_carries_attempted_path() -> None:
    policy = replace(POLICY, redirect_back=True)

    decision = decide("/dashboard/history", None, policy, now=NOW, query="page=2")

    assert decision.target == "/email?next=%2Fdashboard%2Fhistory%3Fpage%3D2"


def test_protected_api_path_without_session_is_denied() -> None:
    decision = decide("/api/predict", None, POLICY, now=NOW)

    assert decision.action is GuardAction.DENY


def test_middleware_redirects_unauthenticated_dashboard_request() -> None:
    middleware = create_route_guard_middleware(POLICY, _store_factory)

    response = asyncio.run(middleware(_request("/dashboard"), _call_next))

    assert response.status_code == 307
    assert response.headers["location"] == "/email"


def test_middleware_passes_through_with_session_cookie() -> None:
    middleware = create_route_guard_middleware(
        replace(POLICY, enforce_expiry=False), _store_factory
    )
    request = _request("/dashboard", cookie=f"authToken={NOW}.sess987")

    response = asyncio.run(middleware(request, _call_next))

    assert response.status_code == 200
    assert response.body == b"page"


def test_middleware_returns_401_for_protected_api() -> None:
    middleware = create_route_guard_middleware(POLICY, _store_factory)

    response = asyncio.run(middleware(_request("/api/predict"), _call_next))

    assert response.status_code == 401
    assert b"AUTH_MISSING_TOKEN" in response.body


def test_middleware_ignores_unprotected_paths() -> None:
    middleware = create_route_guard_middleware(POLICY, _store_factory)

    response = asyncio.run(middleware(_request("/email"), _call_next))

    assert response.status_code == 200
