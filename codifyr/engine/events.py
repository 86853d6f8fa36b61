"""
codifyr.engine.events — Notices and Outcome Kinds
==================================================

Every auth or verification attempt ends in exactly one :class:`Notice`
sent toward presentation.  The notice is the uniform
``{title, description, severity}`` envelope; rendering it is someone
else's job.
"""

from __future__ import annotations

import enum
from collections.abc import Callable
from dataclasses import dataclass

from codifyr.constants import Route

__all__ = [
    "AuthErrorKind",
    "Navigate",
    "Notice",
    "Notify",
    "Severity",
]


class Severity(enum.StrEnum):
    INFO = "info"
    SUCCESS = "success"
    ERROR = "error"


class AuthErrorKind(enum.StrEnum):
    """Classified failure of an auth action."""
    VALIDATION = "ValidationError"
    EMAIL_NOT_CONFIRMED = "EmailNotConfirmed"
    INVALID_CREDENTIALS = "InvalidCredentials"
    RATE_LIMITED = "RateLimited"
    QUOTA_EXCEEDED = "QuotaExceeded"
    GENERIC = "Generic"
    NO_PENDING_EMAIL = "NoPendingEmail"


@dataclass(frozen=True, slots=True)
class Notice:
    """One user-facing message describing exactly one outcome."""

    title: str
    description: str
    severity: Severity = Severity.INFO

    @classmethod
    def success(cls, title: str, description: str) -> Notice:
        return cls(title, description, Severity.SUCCESS)

    @classmethod
    def error(cls, title: str, description: str) -> Notice:
        return cls(title, description, Severity.ERROR)

    def to_dict(self) -> dict[str, str]:
        return {
            "title": self.title,
            "description": self.description,
            "severity": self.severity.value,
        }


# Callables supplied by presentation
Notify = Callable[[Notice], None]
Navigate = Callable[[Route], None]
