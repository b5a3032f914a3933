"""HTTP client for the external authentication service."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Callable

import requests

from otp_portal.core.config import AuthServiceConfig

LOGGER = logging.getLogger(__name__)

LOGIN_INIT_PATH = "/auth/login/init"
LOGIN_VERIFY_PATH = "/auth/login/verify"
PREDICT_PATH = "/api/predict"

GENERIC_FAILURE_MESSAGE = "Failed to reach the authentication service. Please try again."
UNEXPECTED_RESPONSE_MESSAGE = "Unexpected response from the authentication service."


class FailureKind(StrEnum):
    """Why an exchange did not produce a result."""

    SERVICE_REJECTED = "service_rejected"
    TRANSPORT = "transport"
    UNEXPECTED_RESPONSE = "unexpected_response"


@dataclass(frozen=True)
class ExchangeSuccess:
    """Successful exchange; ``token`` is set for the two login endpoints."""

    token: str = ""
    payload: dict[str, Any] = field(default_factory=dict)
    ok: bool = True


@dataclass(frozen=True)
class ExchangeFailure:
    """Failed exchange with a message fit to show the user."""

    kind: FailureKind
    message: str
    status_code: int | None = None
    ok: bool = False


ExchangeResult = ExchangeSuccess | ExchangeFailure


class AuthServiceClient:
    """One method per auth service endpoint; none of them raise."""

    def __init__(
        self,
        config: AuthServiceConfig,
        session: requests.Session | None = None,
    ) -> None:
        self._base_url = config.base_url.rstrip("/")
        self._timeout = config.timeout_seconds
        self._session = session or requests.Session()

    def start_login(self, email: str) -> ExchangeResult:
        """Exchange an email for a temporary login token."""
        result = self._post(
            LOGIN_INIT_PATH,
            {"email": email},
            fallback=lambda status: f"HTTP error! {status}",
        )
        return _require_token(result)

    def verify_otp(self, email: str, otp: str, token: str) -> ExchangeResult:
        """Exchange email, code and temporary token for a session token."""
        result = self._post(
            LOGIN_VERIFY_PATH,
            {"email": email, "otp": otp, "token": token},
            fallback=lambda status: "Invalid OTP",
        )
        return _require_token(result)

    def predict(
        self, payload: dict[str, float], session_token: str = ""
    ) -> ExchangeResult:
        """Forward a prediction form to the backend."""
        headers = {"Authorization": f"Bearer {session_token}"} if session_token else {}
        return self._post(
            PREDICT_PATH,
            payload,
            fallback=lambda status: f"HTTP error: {status}",
            headers=headers,
        )

    def close(self) -> None:
        """Release pooled connections."""
        self._session.close()

    def _post(
        self,
        path: str,
        body: dict[str, Any],
        *,
        fallback: Callable[[int], str],
        headers: dict[str, str] | None = None,
    ) -> ExchangeResult:
        url = f"{self._base_url}{path}"
        try:
            response = self._session.post(
                url,
                json=body,
                headers=headers or None,
                timeout=self._timeout,
            )
        except requests.Timeout:
            LOGGER.warning("Auth service timed out path=%s", path)
            return ExchangeFailure(
                kind=FailureKind.TRANSPORT,
                message=(
                    "The authentication service did not respond in time. "
                    "Please try again."
                ),
            )
        except requests.RequestException as exc:
            LOGGER.warning("Auth service request failed path=%s error=%s", path, exc)
            return ExchangeFailure(
                kind=FailureKind.TRANSPORT, message=GENERIC_FAILURE_MESSAGE
            )

        data = _json_or_none(response)
        if not response.ok:
            detail = data.get("detail") if isinstance(data, dict) else None
            message = (
                detail
                if isinstance(detail, str) and detail
                else fallback(response.status_code)
            )
            LOGGER.info(
                "Auth service rejected request path=%s status=%s",
                path,
                response.status_code,
            )
            return ExchangeFailure(
                kind=FailureKind.SERVICE_REJECTED,
                message=message,
                status_code=response.status_code,
            )

        if not isinstance(data, dict):
            return ExchangeFailure(
                kind=FailureKind.UNEXPECTED_RESPONSE,
                message=UNEXPECTED_RESPONSE_MESSAGE,
                status_code=response.status_code,
            )
        return ExchangeSuccess(payload=data)


def _json_or_none(response: requests.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None


def _require_token(result: ExchangeResult) -> ExchangeResult:
    if isinstance(result, ExchangeFailure):
        return result
    token = result.payload.get("token")
    if not isinstance(token, str) or not token:
        return ExchangeFailure(
            kind=FailureKind.UNEXPECTED_RESPONSE,
            message=UNEXPECTED_RESPONSE_MESSAGE,
        )
    return ExchangeSuccess(token=token, payload=result.payload)
