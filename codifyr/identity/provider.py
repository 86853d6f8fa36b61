"""
codifyr.identity.provider — Identity Provider Contract
=======================================================

The core talks to its identity provider only through
:class:`IdentityProvider`.  Every request returns a
:class:`ProviderResult` holding either a payload or a structured
:class:`ProviderError`; nothing in the contract raises for an ordinary
auth failure.

Session-change notifications are delivered to subscribers registered
with :meth:`IdentityProvider.on_session_change`, which hands back a
:class:`Subscription` the caller must release.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Protocol

logger = logging.getLogger(__name__)

__all__ = [
    "AuthChangeEvent",
    "IdentityProvider",
    "ListenerRegistry",
    "ProviderError",
    "ProviderResult",
    "Session",
    "SessionCallback",
    "Subscription",
]


class AuthChangeEvent(enum.StrEnum):
    INITIAL_SESSION = "INITIAL_SESSION"
    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"
    TOKEN_REFRESHED = "TOKEN_REFRESHED"
    USER_UPDATED = "USER_UPDATED"
    PASSWORD_RECOVERY = "PASSWORD_RECOVERY"


@dataclass(frozen=True, slots=True)
class Session:
    """Authenticated identity as reported by the provider."""

    user_id: str
    email: str
    is_active: bool = True
    access_token: str | None = field(default=None, repr=False)
    refresh_token: str | None = field(default=None, repr=False)
    expires_at: int | None = None


@dataclass(frozen=True, slots=True)
class ProviderError:
    """Structured provider failure.

    ``code`` is the provider's machine-readable error code when it sends
    one; ``status`` is the HTTP status (``None`` for network failures).
    """

    message: str
    status: int | None = None
    code: str | None = None


@dataclass(frozen=True, slots=True)
class ProviderResult:
    data: Any = None
    error: ProviderError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, data: Any = None) -> ProviderResult:
        return cls(data=data)

    @classmethod
    def failure(
        cls, message: str, *, status: int | None = None, code: str | None = None
    ) -> ProviderResult:
        return cls(error=ProviderError(message=message, status=status, code=code))


SessionCallback = Callable[[AuthChangeEvent, Session | None], None]


class Subscription:
    """Handle for one session-change listener.

    ``unsubscribe()`` is idempotent: the release callable runs at most once.
    """

    __slots__ = ("_release", "_active")

    def __init__(self, release: Callable[[], None]) -> None:
        self._release = release
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def unsubscribe(self) -> None:
        if not self._active:
            return
        self._active = False
        self._release()


class IdentityProvider(Protocol):
    """What the core needs from an identity provider."""

    async def get_session(self) -> Session | None: ...

    def on_session_change(self, callback: SessionCallback) -> Subscription: ...

    async def sign_up(
        self,
        email: str,
        password: str,
        metadata: dict[str, Any],
        redirect_to: str,
    ) -> ProviderResult: ...

    async def sign_in_with_password(self, email: str, password: str) -> ProviderResult: ...

    async def reset_password_for_email(self, email: str, redirect_to: str) -> ProviderResult: ...

    async def resend_signup_confirmation(self, email: str) -> ProviderResult: ...

    async def sign_out(self) -> ProviderResult: ...


class ListenerRegistry:
    """Listener bookkeeping shared by provider implementations."""

    def __init__(self) -> None:
        self._callbacks: list[SessionCallback] = []

    def __len__(self) -> int:
        return len(self._callbacks)

    def add(self, callback: SessionCallback) -> Subscription:
        self._callbacks.append(callback)

        def _release() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return Subscription(_release)

    def emit(self, event: AuthChangeEvent, session: Session | None) -> None:
        """Deliver *event* to every current listener.

        A failing listener is logged and does not stop delivery to the rest.
        """
        for callback in list(self._callbacks):
            try:
                callback(event, session)
            except Exception:
                logger.exception("Session listener failed on %s", event)
