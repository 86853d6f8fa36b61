"""
codifyr.services.auth_service — Sign-up, Sign-in, Reset & Resend
==================================================================

Every action follows the same shape::

    validate ──FieldError──► notice, stop (no provider call)
       │
    provider request ──error──► classify ──► notice
       │
    success notice

Each action returns an :class:`AuthOutcome` and never raises past its
boundary.  Session transitions are not made here: the provider's
session-change notification drives :class:`SessionStateMachine`.

Provider errors are classified by :func:`classify_provider_error`, a
decision table keyed on the provider's error code, then on HTTP status.
Matching on message text is the last resort and only exists because some
provider versions send no code; it breaks if the wording changes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from codifyr.constants import Route
from codifyr.engine.events import AuthErrorKind, Notice
from codifyr.engine.validation import (
    FieldError,
    validate_email,
    validate_login,
    validate_signup,
)

if TYPE_CHECKING:
    from codifyr.config import CodifyrConfig
    from codifyr.engine.events import Notify
    from codifyr.identity.provider import IdentityProvider, ProviderError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Error classification
# ---------------------------------------------------------------------------
# Provider error code → kind
PROVIDER_CODE_MAP: dict[str, AuthErrorKind] = {
    "email_not_confirmed": AuthErrorKind.EMAIL_NOT_CONFIRMED,
    "invalid_credentials": AuthErrorKind.INVALID_CREDENTIALS,
    "over_request_rate_limit": AuthErrorKind.RATE_LIMITED,
    "over_email_send_rate_limit": AuthErrorKind.RATE_LIMITED,
    "over_sms_send_rate_limit": AuthErrorKind.RATE_LIMITED,
    "over_quota": AuthErrorKind.QUOTA_EXCEEDED,
}

# HTTP status → kind
PROVIDER_STATUS_MAP: dict[int, AuthErrorKind] = {
    429: AuthErrorKind.RATE_LIMITED,
    402: AuthErrorKind.QUOTA_EXCEEDED,
}

# Lower-cased message fragment → kind (last resort)
PROVIDER_MESSAGE_MAP: dict[str, AuthErrorKind] = {
    "email not confirmed": AuthErrorKind.EMAIL_NOT_CONFIRMED,
    "invalid login credentials": AuthErrorKind.INVALID_CREDENTIALS,
    "rate limit": AuthErrorKind.RATE_LIMITED,
    "too many requests": AuthErrorKind.RATE_LIMITED,
    "quota": AuthErrorKind.QUOTA_EXCEEDED,
}

# Kind → (title, description).  GENERIC uses the provider's message verbatim.
KIND_MESSAGES: dict[AuthErrorKind, tuple[str, str]] = {
    AuthErrorKind.EMAIL_NOT_CONFIRMED: (
        "Email not confirmed",
        "Please confirm your email address first. Check your inbox for the "
        "verification link, or request a new one.",
    ),
    AuthErrorKind.INVALID_CREDENTIALS: (
        "Invalid credentials",
        "The email or password you entered is incorrect.",
    ),
    AuthErrorKind.RATE_LIMITED: (
        "Too many attempts",
        "Please wait a moment before trying again.",
    ),
    AuthErrorKind.QUOTA_EXCEEDED: (
        "Service limit reached",
        "The authentication service is temporarily over its quota. Please try again later.",
    ),
    AuthErrorKind.NO_PENDING_EMAIL: (
        "No email to verify",
        "Enter the email address you signed up with to resend the verification link.",
    ),
}


def classify_provider_error(error: ProviderError) -> AuthErrorKind:
    """Map a structured provider error onto an :class:`AuthErrorKind`."""
    if error.code:
        kind = PROVIDER_CODE_MAP.get(error.code.lower())
        if kind is not None:
            return kind
    if error.status is not None:
        kind = PROVIDER_STATUS_MAP.get(error.status)
        if kind is not None:
            return kind
    message = (error.message or "").lower()
    for fragment, kind in PROVIDER_MESSAGE_MAP.items():
        if fragment in message:
            return kind
    return AuthErrorKind.GENERIC


def notice_for_error(kind: AuthErrorKind, error: ProviderError | None = None) -> Notice:
    if kind in KIND_MESSAGES:
        title, description = KIND_MESSAGES[kind]
        return Notice.error(title, description)
    message = error.message if error is not None and error.message else "Something went wrong."
    return Notice.error("Error", message)


# ---------------------------------------------------------------------------
# Outcome
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class AuthOutcome:
    """Result of one auth action: exactly one notice, at most one error kind."""

    ok: bool
    notice: Notice
    kind: AuthErrorKind | None = None
    field: str | None = None  # set for validation failures

    def to_dict(self) -> dict:
        return {
            "ok": self.ok,
            "kind": self.kind.value if self.kind else None,
            "field": self.field,
            "notice": self.notice.to_dict(),
        }


# ---------------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------------
class AuthActions:
    """Request/response auth operations gated by input validation.

    Parameters
    ----------
    provider : Identity provider.
    config : Supplies the redirect targets for email links.
    notify : Receives one :class:`Notice` per attempt (optional).
    """

    def __init__(
        self,
        provider: IdentityProvider,
        config: CodifyrConfig,
        *,
        notify: Notify | None = None,
    ) -> None:
        self._provider = provider
        self._config = config
        self._notify = notify
        self._pending_email: str | None = None

    @property
    def pending_email(self) -> str | None:
        """Email from the last successful sign-up, awaiting confirmation."""
        return self._pending_email

    # -------------------------------------------------------------------
    # Outcome helpers
    # -------------------------------------------------------------------
    def _finish(self, outcome: AuthOutcome) -> AuthOutcome:
        if self._notify is not None:
            try:
                self._notify(outcome.notice)
            except Exception:
                logger.exception("Notification callback failed")
        return outcome

    def _invalid(self, exc: FieldError) -> AuthOutcome:
        return self._finish(AuthOutcome(
            ok=False,
            kind=AuthErrorKind.VALIDATION,
            field=exc.field,
            notice=Notice.error("Invalid input", exc.message),
        ))

    def _failed(self, action: str, error: ProviderError) -> AuthOutcome:
        kind = classify_provider_error(error)
        logger.warning("%s failed: %s (%s)", action, kind, error.message)
        return self._finish(AuthOutcome(
            ok=False, kind=kind, notice=notice_for_error(kind, error)
        ))

    def _unexpected(self, action: str, exc: Exception) -> AuthOutcome:
        logger.exception("%s raised unexpectedly", action)
        return self._finish(AuthOutcome(
            ok=False,
            kind=AuthErrorKind.GENERIC,
            notice=Notice.error("Error", str(exc) or "Something went wrong."),
        ))

    # -------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------
    async def sign_up(self, full_name: str, email: str, password: str) -> AuthOutcome:
        """Register an account and request the email-verification link."""
        try:
            creds = validate_signup(full_name, email, password)
        except FieldError as exc:
            return self._invalid(exc)

        try:
            result = await self._provider.sign_up(
                creds.email,
                creds.password,
                {"full_name": creds.full_name},
                self._config.url_for(Route.VERIFICATION_STEP),
            )
        except Exception as exc:
            return self._unexpected("Sign-up", exc)
        if not result.ok:
            return self._failed("Sign-up", result.error)

        self._pending_email = creds.email
        logger.info("Sign-up accepted for %s; awaiting email confirmation", creds.email)
        return self._finish(AuthOutcome(
            ok=True,
            notice=Notice.success(
                "Check your email",
                f"We sent a verification link to {creds.email}. "
                "Confirm it to finish creating your account.",
            ),
        ))

    async def sign_in(self, email: str, password: str) -> AuthOutcome:
        """Sign in with email and password."""
        try:
            creds = validate_login(email, password)
        except FieldError as exc:
            return self._invalid(exc)

        try:
            result = await self._provider.sign_in_with_password(creds.email, creds.password)
        except Exception as exc:
            return self._unexpected("Sign-in", exc)
        if not result.ok:
            return self._failed("Sign-in", result.error)

        logger.info("Sign-in succeeded for %s", creds.email)
        return self._finish(AuthOutcome(
            ok=True, notice=Notice.success("Welcome back!", "Signed in successfully.")
        ))

    async def request_password_reset(self, email: str) -> AuthOutcome:
        """Send a password-reset link that returns to the sign-in page."""
        try:
            address = validate_email(email)
        except FieldError as exc:
            return self._invalid(exc)

        try:
            result = await self._provider.reset_password_for_email(
                address, self._config.url_for(Route.LOGIN)
            )
        except Exception as exc:
            return self._unexpected("Password reset", exc)
        if not result.ok:
            return self._failed("Password reset", result.error)

        return self._finish(AuthOutcome(
            ok=True,
            notice=Notice.success(
                "Reset link sent",
                f"If an account exists for {address}, a password reset link is on its way.",
            ),
        ))

    async def resend_verification(self, email: str | None = None) -> AuthOutcome:
        """Resend the sign-up confirmation to *email* or the pending address."""
        candidate = email if email and email.strip() else self._pending_email
        if not candidate:
            return self._finish(AuthOutcome(
                ok=False,
                kind=AuthErrorKind.NO_PENDING_EMAIL,
                notice=notice_for_error(AuthErrorKind.NO_PENDING_EMAIL),
            ))
        try:
            address = validate_email(candidate)
        except FieldError as exc:
            return self._invalid(exc)

        try:
            result = await self._provider.resend_signup_confirmation(address)
        except Exception as exc:
            return self._unexpected("Verification resend", exc)
        if not result.ok:
            return self._failed("Verification resend", result.error)

        return self._finish(AuthOutcome(
            ok=True,
            notice=Notice.success("Verification email sent", f"Check {address} for a new link."),
        ))

    async def sign_out(self) -> AuthOutcome:
        """Sign out.  The ANONYMOUS transition arrives as a notification."""
        try:
            result = await self._provider.sign_out()
        except Exception as exc:
            return self._unexpected("Sign-out", exc)
        if not result.ok:
            return self._failed("Sign-out", result.error)
        return self._finish(AuthOutcome(
            ok=True, notice=Notice.success("Signed out", "See you soon.")
        ))
