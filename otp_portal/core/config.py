"""Application configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


def _env_list(name: str, default: str) -> tuple[str, ...]:
    return tuple(
        item.strip() for item in os.getenv(name, default).split(",") if item.strip()
    )


@dataclass(frozen=True)
class AuthServiceConfig:
    """Connection settings for the external authentication service."""

    base_url: str
    timeout_seconds: float


@dataclass(frozen=True)
class CredentialConfig:
    """Lifetimes and transport flags for the login and session cookies."""

    temp_login_ttl_seconds: int
    session_ttl_seconds: int
    cookie_secure: bool


@dataclass(frozen=True)
class GuardConfig:
    """Route guard configuration."""

    protected_prefixes: tuple[str, ...]
    protected_api_prefixes: tuple[str, ...]
    login_path: str
    landing_path: str
    enforce_expiry: bool
    redirect_back: bool


@dataclass(frozen=True)
class LoggingConfig:
    """Structured logging configuration."""

    level: str


@dataclass(frozen=True)
class SecurityConfig:
    """API perimeter security settings."""

    cors_allowed_origins: list[str]
    request_max_bytes: int


@dataclass(frozen=True)
class AppConfig:
    """Top-level application configuration."""

    auth_service: AuthServiceConfig
    credentials: CredentialConfig
    guard: GuardConfig
    logging: LoggingConfig
    security: SecurityConfig

    @staticmethod
    def from_env() -> "AppConfig":
        """Build app config from process environment."""
        base_url = (
            os.getenv("AUTH_SERVICE_BASE_URL", "").strip().rstrip("/")
            or "http://127.0.0.1:8000"
        )
        timeout_seconds = float(os.getenv("AUTH_SERVICE_TIMEOUT_SECONDS", "15"))
        temp_login_ttl = int(os.getenv("TEMP_LOGIN_TOKEN_TTL_SECONDS", "86400"))
        session_ttl = int(os.getenv("SESSION_TOKEN_TTL_SECONDS", "604800"))
        log_level = os.getenv("LOG_LEVEL", "INFO").strip() or "INFO"
        cors_allowed_origins = list(
            _env_list(
                "CORS_ALLOWED_ORIGINS",
                "http://localhost:3000,http://127.0.0.1:3000",
            )
        )
        request_max_bytes = int(os.getenv("REQUEST_MAX_BYTES", str(1024 * 1024)))

        return AppConfig(
            auth_service=AuthServiceConfig(
                base_url=base_url,
                timeout_seconds=timeout_seconds,
            ),
            credentials=CredentialConfig(
                temp_login_ttl_seconds=temp_login_ttl,
                session_ttl_seconds=session_ttl,
                cookie_secure=_env_flag("COOKIE_SECURE", "1"),
            ),
            guard=GuardConfig(
                protected_prefixes=_env_list("GUARD_PROTECTED_PREFIXES", "/dashboard"),
                protected_api_prefixes=_env_list(
                    "GUARD_PROTECTED_API_PREFIXES", "/api/predict"
                ),
                login_path=os.getenv("GUARD_LOGIN_PATH", "/email").strip() or "/email",
                landing_path=os.getenv("GUARD_LANDING_PATH", "/dashboard").strip()
                or "/dashboard",
                enforce_expiry=_env_flag("GUARD_ENFORCE_EXPIRY", "1"),
                redirect_back=_env_flag("GUARD_REDIRECT_BACK", "1"),
            ),
            logging=LoggingConfig(level=log_level),
            security=SecurityConfig(
                cors_allowed_origins=cors_allowed_origins,
                request_max_bytes=request_max_bytes,
            ),
        )
