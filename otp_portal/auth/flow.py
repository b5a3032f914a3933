"""Two-step passwordless login: email -> temporary token -> OTP -> session.

Both steps convert every failure into a single user-facing message on a
``FlowOutcome``; nothing here raises to the caller.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from threading import Lock
from typing import Iterator
from urllib.parse import urlencode

from otp_portal.api.errors import ApiErrorCode
from otp_portal.auth.client import AuthServiceClient, ExchangeFailure, FailureKind
from otp_portal.auth.credentials import CookieFlags, CredentialName, CredentialStore
from otp_portal.auth.validation import (
    LocalValidationError,
    safe_redirect_target,
    validate_email,
    validate_otp,
)
from otp_portal.core.config import CredentialConfig, GuardConfig
from otp_portal.core.logging import email_domain

LOGGER = logging.getLogger(__name__)

OTP_PATH = "/otp"
INVALID_SESSION_MESSAGE = "Invalid session. Please go back and try again."
IN_PROGRESS_MESSAGE = "A request is already in progress."


@dataclass(frozen=True)
class FlowOutcome:
    """Result of one submit on a login screen."""

    ok: bool
    message: str = ""
    error_code: ApiErrorCode | None = None
    email: str = ""
    redirect_to: str = ""

    @classmethod
    def failure(cls, error_code: ApiErrorCode, message: str) -> "FlowOutcome":
        return cls(ok=False, error_code=error_code, message=message)


class InFlightRegistry:
    """Allows at most one outstanding exchange per key."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._keys: set[str] = set()

    @contextmanager
    def hold(self, key: str) -> Iterator[bool]:
        """Yield True when ``key`` was acquired, False when already held."""
        with self._lock:
            acquired = key not in self._keys
            if acquired:
                self._keys.add(key)
        try:
            yield acquired
        finally:
            if acquired:
                with self._lock:
                    self._keys.discard(key)


def _service_failure(result: ExchangeFailure) -> FlowOutcome:
    if result.kind is FailureKind.SERVICE_REJECTED:
        return FlowOutcome.failure(ApiErrorCode.AUTH_SERVICE_REJECTED, result.message)
    return FlowOutcome.failure(ApiErrorCode.AUTH_SERVICE_UNAVAILABLE, result.message)


def _cookie_flags(config: CredentialConfig) -> CookieFlags:
    return CookieFlags(secure=config.cookie_secure)


def otp_screen_url(email: str, next_path: str | None = None) -> str:
    """Build the verification step URL carrying the email forward."""
    params = {"email": email}
    if next_path:
        params["next"] = next_path
    return f"{OTP_PATH}?{urlencode(params)}"


class LoginInitiator:
    """Email step: trade an email address for a temporary login token."""

    def __init__(
        self,
        client: AuthServiceClient,
        store: CredentialStore,
        *,
        credentials: CredentialConfig,
        in_flight: InFlightRegistry | None = None,
    ) -> None:
        self._client = client
        self._store = store
        self._credentials = credentials
        self._in_flight = in_flight or InFlightRegistry()

    def submit(self, email: str, next_path: str | None = None) -> FlowOutcome:
        """Validate locally, then run the login-initiation exchange."""
        try:
            email = validate_email(email)
        except LocalValidationError as exc:
            return FlowOutcome.failure(ApiErrorCode.AUTH_EMAIL_INVALID, str(exc))

        with self._in_flight.hold(f"login:{email.lower()}") as acquired:
            if not acquired:
                return FlowOutcome.failure(
                    ApiErrorCode.AUTH_REQUEST_IN_PROGRESS, IN_PROGRESS_MESSAGE
                )
            result = self._client.start_login(email)

        if isinstance(result, ExchangeFailure):
            LOGGER.warning(
                "login_init_failed",
                extra={"email_domain": email_domain(email), "outcome": result.kind},
            )
            return _service_failure(result)

        self._store.set(
            CredentialName.TEMP_LOGIN,
            result.token,
            self._credentials.temp_login_ttl_seconds,
            _cookie_flags(self._credentials),
        )
        LOGGER.info(
            "login_init_succeeded",
            extra={"email_domain": email_domain(email), "outcome": "otp_required"},
        )
        next_path = safe_redirect_target(next_path, "") or None
        return FlowOutcome(
            ok=True, email=email, redirect_to=otp_screen_url(email, next_path)
        )


class OtpVerifier:
    """OTP step: trade email, code and temporary token for a session token.

    The temporary token is captured once when the screen opens and reused for
    every attempt on that screen.
    """

    def __init__(
        self,
        client: AuthServiceClient,
        store: CredentialStore,
        *,
        email: str,
        temp_token: str,
        credentials: CredentialConfig,
        landing_path: str,
        next_path: str | None = None,
        in_flight: InFlightRegistry | None = None,
    ) -> None:
        self._client = client
        self._store = store
        self._email = (email or "").strip()
        self._temp_token = temp_token
        self._credentials = credentials
        self._landing_path = landing_path
        self._next_path = next_path
        self._in_flight = in_flight or InFlightRegistry()
        self.error = "" if self.is_ready else INVALID_SESSION_MESSAGE

    @classmethod
    def open(
        cls,
        client: AuthServiceClient,
        store: CredentialStore,
        *,
        email: str | None,
        credentials: CredentialConfig,
        guard: GuardConfig,
        next_path: str | None = None,
        in_flight: InFlightRegistry | None = None,
        now: float | None = None,
    ) -> "OtpVerifier":
        """Open the verification screen, reading the temporary token once."""
        stored = store.get(CredentialName.TEMP_LOGIN)
        temp_token = ""
        if stored is not None and (now is None or not stored.is_expired(now)):
            temp_token = stored.value
        return cls(
            client,
            store,
            email=email or "",
            temp_token=temp_token,
            credentials=credentials,
            landing_path=guard.landing_path,
            next_path=next_path if guard.redirect_back else None,
            in_flight=in_flight,
        )

    @property
    def email(self) -> str:
        return self._email

    @property
    def is_ready(self) -> bool:
        """Whether the screen has both an email and a temporary token."""
        return bool(self._email and self._temp_token)

    def submit(self, code: str) -> FlowOutcome:
        """Validate the code locally, then run the verification exchange."""
        self.error = ""
        if not self.is_ready:
            self.error = INVALID_SESSION_MESSAGE
            return FlowOutcome.failure(
                ApiErrorCode.AUTH_SESSION_INVALID, INVALID_SESSION_MESSAGE
            )

        try:
            otp = validate_otp(code)
        except LocalValidationError as exc:
            self.error = str(exc)
            return FlowOutcome.failure(ApiErrorCode.AUTH_OTP_INVALID, self.error)

        with self._in_flight.hold(f"verify:{self._temp_token}") as acquired:
            if not acquired:
                return FlowOutcome.failure(
                    ApiErrorCode.AUTH_REQUEST_IN_PROGRESS, IN_PROGRESS_MESSAGE
                )
            result = self._client.verify_otp(self._email, otp, self._temp_token)

        if isinstance(result, ExchangeFailure):
            self.error = result.message
            LOGGER.warning(
                "otp_verify_failed",
                extra={
                    "email_domain": email_domain(self._email),
                    "outcome": result.kind,
                },
            )
            return _service_failure(result)

        self._store.set(
            CredentialName.SESSION,
            result.token,
            self._credentials.session_ttl_seconds,
            _cookie_flags(self._credentials),
        )
        self._store.clear(CredentialName.TEMP_LOGIN)
        LOGGER.info(
            "otp_verify_succeeded",
            extra={"email_domain": email_domain(self._email), "outcome": "authenticated"},
        )
        return FlowOutcome(
            ok=True,
            email=self._email,
            redirect_to=safe_redirect_target(self._next_path, self._landing_path),
        )
