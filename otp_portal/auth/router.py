"""Login flow, session and protected-area API router."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Annotated, Callable

from fastapi import APIRouter, Query, Request, Response
from pydantic import ValidationError

from otp_portal.api.contracts import (
    ApiErrorResponse,
    LoginInitRequest,
    LoginInitResponse,
    LogoutResponse,
    PredictionRequest,
    PredictionResponse,
    ScreenResponse,
    VerifyOtpRequest,
    VerifyOtpResponse,
)
from otp_portal.api.errors import ApiError, ApiErrorCode
from otp_portal.auth.client import AuthServiceClient, ExchangeFailure, FailureKind
from otp_portal.auth.credentials import CredentialName, CredentialStore
from otp_portal.auth.flow import FlowOutcome, InFlightRegistry, LoginInitiator, OtpVerifier
from otp_portal.auth.validation import safe_redirect_target
from otp_portal.core.config import AppConfig

_STATUS_BY_CODE = {
    ApiErrorCode.AUTH_EMAIL_INVALID: 400,
    ApiErrorCode.AUTH_OTP_INVALID: 400,
    ApiErrorCode.AUTH_SESSION_INVALID: 401,
    ApiErrorCode.AUTH_REQUEST_IN_PROGRESS: 409,
    ApiErrorCode.AUTH_SERVICE_REJECTED: 502,
    ApiErrorCode.AUTH_SERVICE_UNAVAILABLE: 502,
}

_ERROR_RESPONSES = {
    400: {"model": ApiErrorResponse},
    401: {"model": ApiErrorResponse},
    409: {"model": ApiErrorResponse},
    502: {"model": ApiErrorResponse},
}


@dataclass(frozen=True)
class AuthRouteDeps:
    """Dependencies injected into the auth router."""

    config: AppConfig
    client: AuthServiceClient
    store_factory: Callable[[Request, Response | None], CredentialStore]
    in_flight: InFlightRegistry
    clock: Callable[[], float] = time.time


def _raise_for_outcome(outcome: FlowOutcome) -> None:
    if outcome.ok:
        return
    error_code = outcome.error_code or ApiErrorCode.INTERNAL_SERVER_ERROR
    raise ApiError(
        status_code=_STATUS_BY_CODE.get(error_code, 500),
        error_code=error_code,
        message=outcome.message,
    )


def create_auth_router(deps: AuthRouteDeps) -> APIRouter:
    """Build router with the email step, OTP step, logout and dashboard."""
    router = APIRouter(tags=["auth"])
    guard = deps.config.guard

    def _next(raw: str | None) -> str | None:
        if not guard.redirect_back:
            return None
        return safe_redirect_target(raw, "") or None

    @router.get("/email", response_model=ScreenResponse)
    def email_screen(
        next_path: Annotated[str | None, Query(alias="next")] = None,
    ) -> ScreenResponse:
        """Entry point of the login flow."""
        return ScreenResponse(step="email", next=_next(next_path))

    @router.post(
        "/api/login/init",
        response_model=LoginInitResponse,
        responses=_ERROR_RESPONSES,
    )
    def login_init(
        req: LoginInitRequest, request: Request, response: Response
    ) -> LoginInitResponse:
        """Send a one-time code to the email and store the temporary token."""
        initiator = LoginInitiator(
            deps.client,
            deps.store_factory(request, response),
            credentials=deps.config.credentials,
            in_flight=deps.in_flight,
        )
        outcome = initiator.submit(req.email, _next(req.next))
        _raise_for_outcome(outcome)
        return LoginInitResponse(
            status="otp_required",
            email=outcome.email,
            redirect_to=outcome.redirect_to,
        )

    @router.get("/otp", response_model=ScreenResponse)
    def otp_screen(
        request: Request,
        email: str | None = None,
        next_path: Annotated[str | None, Query(alias="next")] = None,
    ) -> ScreenResponse:
        """Verification screen; reports an invalid session when orphaned."""
        verifier = OtpVerifier.open(
            deps.client,
            deps.store_factory(request, None),
            email=email,
            credentials=deps.config.credentials,
            guard=guard,
            next_path=_next(next_path),
            now=deps.clock(),
        )
        return ScreenResponse(
            step="otp",
            email=verifier.email,
            ready=verifier.is_ready,
            message=verifier.error,
            next=_next(next_path),
        )

    @router.post(
        "/api/login/verify",
        response_model=VerifyOtpResponse,
        responses=_ERROR_RESPONSES,
    )
    def login_verify(
        req: VerifyOtpRequest, request: Request, response: Response
    ) -> VerifyOtpResponse:
        """Verify the code and store the session token."""
        verifier = OtpVerifier.open(
            deps.client,
            deps.store_factory(request, response),
            email=req.email,
            credentials=deps.config.credentials,
            guard=guard,
            next_path=_next(req.next),
            in_flight=deps.in_flight,
            now=deps.clock(),
        )
        outcome = verifier.submit(req.otp)
        _raise_for_outcome(outcome)
        return VerifyOtpResponse(status="authenticated", redirect_to=outcome.redirect_to)

    @router.post("/api/logout", response_model=LogoutResponse)
    def logout(request: Request, response: Response) -> LogoutResponse:
        """Drop both credentials."""
        deps.store_factory(request, response).clear_session()
        return LogoutResponse(status="ok", redirect_to=guard.login_path)

    @router.get("/dashboard", response_model=ScreenResponse)
    def dashboard() -> ScreenResponse:
        """Protected landing area; only reachable through the route guard."""
        return ScreenResponse(step="dashboard")

    @router.post(
        "/api/predict",
        response_model=PredictionResponse,
        responses={401: {"model": ApiErrorResponse}, 502: {"model": ApiErrorResponse}},
    )
    def predict(req: PredictionRequest, request: Request) -> PredictionResponse:
        """Relay the prediction form to the backend."""
        session = deps.store_factory(request, None).get(CredentialName.SESSION)
        result = deps.client.predict(
            req.model_dump(), session_token=session.value if session else ""
        )
        if isinstance(result, ExchangeFailure):
            raise ApiError(
                status_code=502,
                error_code=(
                    ApiErrorCode.UPSTREAM_REJECTED
                    if result.kind is FailureKind.SERVICE_REJECTED
                    else ApiErrorCode.UPSTREAM_UNAVAILABLE
                ),
                message=result.message,
            )
        try:
            return PredictionResponse.model_validate(result.payload)
        except ValidationError as exc:
            raise ApiError(
                status_code=502,
                error_code=ApiErrorCode.UPSTREAM_UNAVAILABLE,
                message="Prediction failed",
            ) from exc

    return router
