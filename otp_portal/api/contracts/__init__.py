"""Public API request and response contracts."""

from otp_portal.api.contracts.models import (
    AiResource,
    ApiErrorResponse,
    HealthResponse,
    LoginInitRequest,
    LoginInitResponse,
    LogoutResponse,
    PredictionRequest,
    PredictionResponse,
    ScreenResponse,
    VerifyOtpRequest,
    VerifyOtpResponse,
)

__all__ = [
    "AiResource",
    "ApiErrorResponse",
    "HealthResponse",
    "LoginInitRequest",
    "LoginInitResponse",
    "LogoutResponse",
    "PredictionRequest",
    "PredictionResponse",
    "ScreenResponse",
    "VerifyOtpRequest",
    "VerifyOtpResponse",
]
