from __future__ import annotations

from otp_portal.api.errors import ApiError, ApiErrorCode, to_error_payload


def test_to_error_payload_preserves_structured_detail() -> None:
    payload = to_error_payload(
        {"error_code": "AUTH_SESSION_INVALID", "message": "Invalid session"},
        401,
    )

    assert payload == {"error_code": "AUTH_SESSION_INVALID", "message": "Invalid session"}


def test_to_error_payload_normalizes_plain_string() -> None:
    payload = to_error_payload("boom", 500)

    assert payload == {"error_code": "HTTP_500", "message": "boom"}


def test_api_error_carries_envelope_detail() -> None:
    exc = ApiError(
        status_code=400,
        error_code=ApiErrorCode.AUTH_OTP_INVALID,
        message="OTP must be 6 digits.",
    )

    assert exc.status_code == 400
    assert to_error_payload(exc.detail, exc.status_code) == {
        "error_code": "AUTH_OTP_INVALID",
        "message": "OTP must be 6 digits.",
    }
