"""Pydantic API request/response models used in OpenAPI contracts."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


class ApiErrorResponse(BaseModel):
    """Stable error envelope for API responses."""

    error_code: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error message")


class HealthResponse(BaseModel):
    """Health check response payload."""

    status: Literal["ok"]


class LoginInitRequest(BaseModel):
    """Email step submission."""

    email: str = ""
    next: str | None = None


class LoginInitResponse(BaseModel):
    """Email step accepted; the OTP step comes next."""

    status: Literal["otp_required"]
    email: str
    redirect_to: str


class VerifyOtpRequest(BaseModel):
    """OTP step submission. The temporary token travels in a cookie."""

    email: str = ""
    otp: str = ""
    next: str | None = None


class VerifyOtpResponse(BaseModel):
    """OTP accepted; the session cookie has been set."""

    status: Literal["authenticated"]
    redirect_to: str


class LogoutResponse(BaseModel):
    """Logout response payload."""

    status: Literal["ok"]
    redirect_to: str


class ScreenResponse(BaseModel):
    """State of a login flow screen for the client to render."""

    step: Literal["email", "otp", "dashboard"]
    email: str = ""
    ready: bool = True
    message: str = ""
    next: str | None = None


class PredictionRequest(BaseModel):
    """Numeric prediction form payload forwarded to the backend."""

    gender: float
    age: float
    hypertension: float
    heart_disease: float
    bmi: float
    HbA1c_level: float
    blood_glucose_level: float
    smoking_history_numeric: float


class AiResource(BaseModel):
    """Reading material attached to a prediction."""

    title: str
    url: str


class PredictionResponse(BaseModel):
    """Prediction result relayed from the backend."""

    prediction: int
    diagnosis: str
    ai_resources: list[AiResource] = Field(default_factory=list)
