from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import requests

from otp_portal.auth.client import (
    AuthServiceClient,
    ExchangeFailure,
    ExchangeSuccess,
    FailureKind,
)
from otp_portal.core.config import AuthServiceConfig


@dataclass
class _FakeResponse:
    status_code: int
    body: Any = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 400

    def json(self) -> Any:
        if isinstance(self.body, Exception):
            raise self.body
        return self.body


@dataclass
class _FakeSession:
    outcome: Any
    calls: list[dict[str, Any]] = field(default_factory=list)
    closed: bool = False

    def post(self, url: str, **kwargs: Any) -> _FakeResponse:
        self.calls.append({"url": url, **kwargs})
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome

    def close(self) -> None:
        self.closed = True


def _client(outcome: Any) -> tuple[AuthServiceClient, _FakeSession]:
    session = _FakeSession(outcome=outcome)
    config = AuthServiceConfig(base_url="http://auth.test/", timeout_seconds=12)
    return AuthServiceClient(config, session=session), session  # type: ignore[arg-type]


def test_start_login_posts_email_and_returns_token() -> None:
    client, session = _client(_FakeResponse(200, {"token": "tmp123"}))

    result = client.start_login("user@example.com")

    assert isinstance(result, ExchangeSuccess)
    assert result.token == "tmp123"
    assert session.calls == [
        {
            "url": "http://auth.test/auth/login/init",
            "json": {"email": "user@example.com"},
            "headers": None,
            "timeout": 12,
        }
    ]


def test_verify_otp_posts_email_code_and_token() -> None:
    client, session = _client(_FakeResponse(200, {"token": "sess987"}))

    result = client.verify_otp("user@example.com", "123456", "tmp123")

    assert result.ok
    assert result.token == "sess987"
    assert session.calls[0]["url"] == "http://auth.test/auth/login/verify"
    assert session.calls[0]["json"] == {
        "email": "user@example.com",
        "otp": "123456",
        "token": "tmp123",
    }


def test_service_detail_is_passed_through_verbatim() -> None:
    client, _ = _client(_FakeResponse(400, {"detail": "OTP expired"}))

    result = client.verify_otp("user@example.com", "123456", "tmp123")

    assert isinstance(result, ExchangeFailure)
    assert result.kind is FailureKind.SERVICE_REJECTED
    assert result.message == "OTP expired"
    assert result.status_code == 400


def test_rejection_without_detail_uses_endpoint_fallback() -> None:
    client, _ = _client(_FakeResponse(503, ValueError("not json")))

    login = client.start_login("user@example.com")
    verify = client.verify_otp("user@example.com", "123456", "tmp123")

    assert login.message == "HTTP error! 503"
    assert verify.message == "Invalid OTP"


def test_missing_token_field_is_unexpected_response() -> None:
    client, _ = _client(_FakeResponse(200, {"status": "ok"}))

    result = client.start_login("user@example.com")

    assert isinstance(result, ExchangeFailure)
    assert result.kind is FailureKind.UNEXPECTED_RESPONSE


def test_non_json_success_is_unexpected_response() -> None:
    client, _ = _client(_FakeResponse(200, ValueError("html page")))

    result = client.start_login("user@example.com")

    assert isinstance(result, ExchangeFailure)
    assert result.kind is FailureKind.UNEXPECTED_RESPONSE


def test_transport_errors_become_failures() -> None:
    client, _ = _client(requests.ConnectionError("refused"))
    timeout_client, _ = _client(requests.Timeout("slow"))

    refused = client.start_login("user@example.com")
    slow = timeout_client.start_login("user@example.com")

    assert isinstance(refused, ExchangeFailure)
    assert refused.kind is FailureKind.TRANSPORT
    assert isinstance(slow, ExchangeFailure)
    assert "did not respond in time" in slow.message


def test_predict_sends_bearer_session_token() -> None:
    body = {"prediction": 1, "diagnosis": "Diabetic", "ai_resources": []}
    client, session = _client(_FakeResponse(200, body))

    result = client.predict({"age": 40.0}, session_token="sess987")

    assert result.ok
    assert result.payload == body
    assert session.calls[0]["url"] == "http://auth.test/api/predict"
    assert session.calls[0]["headers"] == {"Authorization": "Bearer sess987"}


def test_close_releases_session() -> None:
    client, session = _client(_FakeResponse(200, {}))

    client.close()

    assert session.closed is True
