"""Credential store for the temporary login token and the session token.

Tokens are opaque: the store never inspects them. Each entry is persisted
together with its issue time so the route guard can apply a client-side
expiry horizon without parsing the token itself.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from enum import StrEnum
from typing import Callable, Literal, Protocol

from starlette.requests import Request
from starlette.responses import Response

Clock = Callable[[], float]


class CredentialName(StrEnum):
    """The two credential slots; values double as cookie names."""

    TEMP_LOGIN = "tempLoginToken"
    SESSION = "authToken"


@dataclass(frozen=True)
class CookieFlags:
    """Transport restrictions applied to every credential cookie."""

    secure: bool = True
    httponly: bool = True
    samesite: Literal["strict", "lax", "none"] = "strict"
    path: str = "/"


@dataclass(frozen=True)
class StoredCredential:
    """Credential value plus client-side lifetime bookkeeping."""

    value: str
    issued_at: int
    expires_at: int

    def is_expired(self, now: float) -> bool:
        """Return whether the client-side horizon has elapsed."""
        return self.expires_at <= int(now)


class CredentialStore(Protocol):
    """Get/set/clear contract shared by the cookie store and test fakes."""

    def set(
        self,
        name: CredentialName,
        value: str,
        expiry_seconds: int,
        flags: CookieFlags | None = None,
    ) -> None: ...

    def get(self, name: CredentialName) -> StoredCredential | None: ...

    def clear(self, name: CredentialName) -> None: ...

    def clear_session(self) -> None: ...


def encode_cookie_value(issued_at: int, value: str) -> str:
    """Pack issue time and opaque token into a single cookie value."""
    return f"{int(issued_at)}.{value}"


def decode_cookie_value(raw: str, ttl_seconds: int) -> StoredCredential | None:
    """Unpack a cookie value; unparseable or empty values read as absent."""
    issued_raw, sep, value = (raw or "").partition(".")
    if not sep or not value:
        return None
    try:
        issued_at = int(issued_raw)
    except ValueError:
        return None
    return StoredCredential(
        value=value,
        issued_at=issued_at,
        expires_at=issued_at + ttl_seconds,
    )


class CookieCredentialStore:
    """Credential store backed by the browser's cookie jar.

    Reads come from the incoming request; writes become ``Set-Cookie`` headers
    on ``response``. Values written during the current request shadow the
    request cookies so a later ``get`` in the same request sees them.
    """

    def __init__(
        self,
        request: Request,
        response: Response | None = None,
        *,
        ttl_seconds: dict[CredentialName, int],
        default_flags: CookieFlags | None = None,
        clock: Clock = time.time,
    ) -> None:
        self._request = request
        self._response = response
        self._ttl_seconds = ttl_seconds
        self._default_flags = default_flags or CookieFlags()
        self._clock = clock
        self._pending: dict[CredentialName, StoredCredential | None] = {}

    def set(
        self,
        name: CredentialName,
        value: str,
        expiry_seconds: int,
        flags: CookieFlags | None = None,
    ) -> None:
        """Write a credential cookie with the given lifetime."""
        if self._response is None:
            raise RuntimeError("Credential store is read-only for this request")
        flags = flags or self._default_flags
        issued_at = int(self._clock())
        self._response.set_cookie(
            key=str(name),
            value=encode_cookie_value(issued_at, value),
            max_age=expiry_seconds,
            path=flags.path,
            secure=flags.secure,
            httponly=flags.httponly,
            samesite=flags.samesite,
        )
        self._pending[name] = StoredCredential(
            value=value,
            issued_at=issued_at,
            expires_at=issued_at + expiry_seconds,
        )

    def get(self, name: CredentialName) -> StoredCredential | None:
        """Return the latest value for ``name`` or None."""
        if name in self._pending:
            return self._pending[name]
        raw = self._request.cookies.get(str(name))
        if raw is None:
            return None
        return decode_cookie_value(raw, self._ttl_seconds.get(name, 0))

    def clear(self, name: CredentialName) -> None:
        """Expire the credential cookie."""
        if self._response is None:
            raise RuntimeError("Credential store is read-only for this request")
        flags = self._default_flags
        self._response.delete_cookie(
            key=str(name),
            path=flags.path,
            secure=flags.secure,
            httponly=flags.httponly,
            samesite=flags.samesite,
        )
        self._pending[name] = None

    def clear_session(self) -> None:
        """Drop both credentials."""
        for name in CredentialName:
            self.clear(name)


class InMemoryCredentialStore:
    """Process-local credential store used by tests and embedders."""

    def __init__(self, clock: Clock = time.time) -> None:
        self._clock = clock
        self._entries: dict[CredentialName, StoredCredential] = {}
        self.flags: dict[CredentialName, CookieFlags] = {}
        self.writes = 0

    def set(
        self,
        name: CredentialName,
        value: str,
        expiry_seconds: int,
        flags: CookieFlags | None = None,
    ) -> None:
        issued_at = int(self._clock())
        self._entries[name] = StoredCredential(
            value=value,
            issued_at=issued_at,
            expires_at=issued_at + expiry_seconds,
        )
        self.flags[name] = flags or CookieFlags()
        self.writes += 1

    def get(self, name: CredentialName) -> StoredCredential | None:
        return self._entries.get(name)

    def clear(self, name: CredentialName) -> None:
        self._entries.pop(name, None)
        self.flags.pop(name, None)

    def clear_session(self) -> None:
        for name in CredentialName:
            self.clear(name)
