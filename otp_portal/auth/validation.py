"""Local precondition checks run before any call to the auth service."""

from __future__ import annotations

import re
from urllib.parse import urlsplit

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
OTP_LENGTH = 6

EMAIL_REQUIRED_MESSAGE = "Please enter your email address"
EMAIL_INVALID_MESSAGE = "Please enter a valid email address"
OTP_INVALID_MESSAGE = "OTP must be 6 digits."


class LocalValidationError(ValueError):
    """Input rejected on the client side; nothing was sent anywhere."""


def validate_email(raw: str | None) -> str:
    """Return trimmed email or raise when it is empty or malformed."""
    email = (raw or "").strip()
    if not email:
        raise LocalValidationError(EMAIL_REQUIRED_MESSAGE)
    if not EMAIL_PATTERN.match(email):
        raise LocalValidationError(EMAIL_INVALID_MESSAGE)
    return email


def sanitize_otp(raw: str | None) -> str:
    """Strip every non-digit character from user-entered code."""
    return re.sub(r"[^0-9]", "", raw or "")


def validate_otp(raw: str | None) -> str:
    """Return digit-only code or raise when it is not exactly six digits."""
    code = sanitize_otp(raw)
    if len(code) != OTP_LENGTH:
        raise LocalValidationError(OTP_INVALID_MESSAGE)
    return code


def safe_redirect_target(raw: str | None, default: str) -> str:
    """Accept only same-origin absolute paths as post-login targets."""
    target = (raw or "").strip()
    if any(ch.isspace() or ord(ch) < 0x20 or ord(ch) == 0x7F for ch in target):
        return default
    if not target.startswith("/") or target.startswith("//") or "\\" in target:
        return default
    parts = urlsplit(target)
    if parts.scheme or parts.netloc:
        return default
    return target
