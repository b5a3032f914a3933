"""Route guard deciding whether a request may reach a protected page."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import StrEnum
from typing import Callable, Iterable
from urllib.parse import urlencode

from fastapi import Request
from fastapi.responses import JSONResponse, RedirectResponse

from otp_portal.api.contracts import ApiErrorResponse
from otp_portal.api.errors import ApiErrorCode
from otp_portal.auth.credentials import CredentialName, CredentialStore, StoredCredential
from otp_portal.core.config import GuardConfig

LOGGER = logging.getLogger(__name__)


class GuardAction(StrEnum):
    ALLOW = "allow"
    REDIRECT = "redirect"
    DENY = "deny"


@dataclass(frozen=True)
class GuardDecision:
    """Outcome of one guard evaluation."""

    action: GuardAction
    target: str = ""

    @property
    def allowed(self) -> bool:
        return self.action is GuardAction.ALLOW


ALLOW = GuardDecision(GuardAction.ALLOW)


def is_protected(path: str, prefixes: Iterable[str]) -> bool:
    """Match ``prefix`` itself or anything nested below it."""
    for prefix in prefixes:
        prefix = prefix.rstrip("/")
        if not prefix:
            continue
        if path == prefix or path.startswith(prefix + "/"):
            return True
    return False


def decide(
    path: str,
    session: StoredCredential | None,
    policy: GuardConfig,
    *,
    now: float | None = None,
    query: str = "",
) -> GuardDecision:
    """Allow, redirect to login, or deny ``path`` given the session token."""
    page = is_protected(path, policy.protected_prefixes)
    api = is_protected(path, policy.protected_api_prefixes)
    if not page and not api:
        return ALLOW

    if session is not None and policy.enforce_expiry:
        if session.is_expired(time.time() if now is None else now):
            session = None
    if session is not None and session.value:
        return ALLOW

    if api:
        return GuardDecision(GuardAction.DENY)

    target = policy.login_path
    if policy.redirect_back:
        attempted = f"{path}?{query}" if query else path
        target = f"{policy.login_path}?{urlencode({'next': attempted})}"
    return GuardDecision(GuardAction.REDIRECT, target=target)


def create_route_guard_middleware(
    policy: GuardConfig,
    store_factory: Callable[[Request], CredentialStore],
) -> Callable:
    """Create middleware that runs the guard before any route handler."""

    async def route_guard_middleware(request: Request, call_next: Callable):
        """Reject unauthenticated requests to protected paths."""
        path = request.url.path
        # Read fresh every request; another tab may have changed the cookie.
        session = store_factory(request).get(CredentialName.SESSION)
        decision = decide(path, session, policy, query=request.url.query)

        if decision.action is GuardAction.REDIRECT:
            LOGGER.info(
                "route_guard_redirect",
                extra={"path": path, "method": request.method, "decision": "redirect"},
            )
            return RedirectResponse(url=decision.target, status_code=307)

        if decision.action is GuardAction.DENY:
            LOGGER.info(
                "route_guard_deny",
                extra={"path": path, "method": request.method, "decision": "deny"},
            )
            return JSONResponse(
                status_code=401,
                content=ApiErrorResponse(
                    error_code=ApiErrorCode.AUTH_MISSING_TOKEN,
                    message="Authentication required",
                ).model_dump(),
            )

        return await call_next(request)

    return route_guard_middleware
