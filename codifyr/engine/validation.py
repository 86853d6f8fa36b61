"""
codifyr.engine.validation — Credential & Profile Input Validation
==================================================================

Pure checks run before any provider call.  Each validator reports the
**first** rule that fails by raising :class:`FieldError`; later rules are
not evaluated, so the user sees one message at a time.

No I/O and no logging here — a failed validation must have zero side
effects.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

__all__ = [
    "FieldError",
    "LoginInput",
    "SignupInput",
    "normalize_email",
    "validate_email",
    "validate_login",
    "validate_signup",
]

NAME_MIN_LENGTH = 2
NAME_MAX_LENGTH = 100
PASSWORD_MIN_LENGTH = 6

_EMAIL_RE: re.Pattern[str] = re.compile(
    r"^[a-zA-Z0-9.!#$%&'*+/=?^_`{|}~-]+"
    r"@[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?"
    r"(?:\.[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)+$"
)


class FieldError(ValueError):
    """A single violated input rule.

    Attributes
    ----------
    field : Input field that failed ("full_name", "email", "password").
    rule : Short rule identifier ("name_length", "email_format", ...).
    message : Human-readable message suitable for a notice.
    """

    def __init__(self, field: str, rule: str, message: str) -> None:
        super().__init__(message)
        self.field = field
        self.rule = rule
        self.message = message


@dataclass(frozen=True, slots=True)
class SignupInput:
    full_name: str
    email: str
    password: str

    def __repr__(self) -> str:
        return f"SignupInput(full_name={self.full_name!r}, email={self.email!r})"


@dataclass(frozen=True, slots=True)
class LoginInput:
    email: str
    password: str

    def __repr__(self) -> str:
        return f"LoginInput(email={self.email!r})"


# ---------------------------------------------------------------------------
# Individual rules
# ---------------------------------------------------------------------------
def normalize_email(email: str) -> str:
    """Strip whitespace and lowercase."""
    return email.strip().lower()


def _check_name(full_name: str | None) -> str:
    name = (full_name or "").strip()
    if not NAME_MIN_LENGTH <= len(name) <= NAME_MAX_LENGTH:
        raise FieldError(
            "full_name",
            "name_length",
            f"Name must be between {NAME_MIN_LENGTH} and {NAME_MAX_LENGTH} characters.",
        )
    return name


def _check_email(email: str | None) -> str:
    value = normalize_email(email or "")
    if not value or not _EMAIL_RE.match(value):
        raise FieldError("email", "email_format", "Please enter a valid email address.")
    return value


def _check_password(password: str | None) -> str:
    if len(password or "") < PASSWORD_MIN_LENGTH:
        raise FieldError(
            "password",
            "password_length",
            f"Password must be at least {PASSWORD_MIN_LENGTH} characters.",
        )
    return password  # type: ignore[return-value]


# ---------------------------------------------------------------------------
# Public validators
# ---------------------------------------------------------------------------
def validate_signup(full_name: str, email: str, password: str) -> SignupInput:
    """Validate sign-up input: name, then email, then password."""
    name = _check_name(full_name)
    address = _check_email(email)
    secret = _check_password(password)
    return SignupInput(full_name=name, email=address, password=secret)


def validate_login(email: str, password: str) -> LoginInput:
    """Validate sign-in input: email, then password."""
    address = _check_email(email)
    secret = _check_password(password)
    return LoginInput(email=address, password=secret)


def validate_email(email: str) -> str:
    """Validate a standalone email (password reset, verification resend)."""
    return _check_email(email)
