"""
codifyr.services.verification_service — Proof-of-Identity Submissions
======================================================================

Two layers:

* :func:`submit_verification` — synchronous data-store insert.  Rejects a
  missing file reference; otherwise always creates a new ``pending`` row.
  Earlier requests are left untouched; the newest row is the active one
  (:func:`latest_verification_request`).
* :class:`VerificationSubmission` — the session-aware action presentation
  calls.  Takes the acting user from the session machine and reports one
  notice per attempt.

File-type gating (PDF or image) happens upstream in
:mod:`codifyr.services.upload_service`; it is not repeated here.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from sqlalchemy import func, select

from codifyr.constants import DEFAULT_VERIFICATION_DESCRIPTION, Route
from codifyr.database.engine import get_session
from codifyr.database.models import VerificationRequest, VerificationStatus
from codifyr.engine.events import Notice

if TYPE_CHECKING:
    from sqlalchemy import Engine

    from codifyr.engine.events import Navigate, Notify
    from codifyr.services.profile_service import ProfileStore
    from codifyr.services.session_machine import SessionStateMachine

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(UTC)


class SubmissionError(Exception):
    """A verification submission could not be accepted."""

    title = "Upload failed"


class NoFileSelected(SubmissionError):
    title = "No file selected"

    def __init__(self, message: str = "Please select a certificate to upload") -> None:
        super().__init__(message)


# ---------------------------------------------------------------------------
# Data-store layer
# ---------------------------------------------------------------------------
def submit_verification(
    engine: Engine,
    user_id: str,
    file_reference: str | None,
    description: str | None = None,
) -> VerificationRequest:
    """Insert a new ``pending`` verification request and return it.

    Raises
    ------
    NoFileSelected
        If *file_reference* is missing or blank.
    """
    if not file_reference or not file_reference.strip():
        raise NoFileSelected()

    request = VerificationRequest(
        user_id=user_id,
        created_at=_now(),
        file_url=file_reference.strip(),
        description=(description or "").strip() or DEFAULT_VERIFICATION_DESCRIPTION,
        status=VerificationStatus.PENDING,
    )
    with get_session(engine) as session:
        # created_at strictly increases per user so the newest row is unambiguous
        previous = session.scalar(
            select(func.max(VerificationRequest.created_at))
            .where(VerificationRequest.user_id == user_id)
        )
        if previous is not None:
            if previous.tzinfo is None:
                previous = previous.replace(tzinfo=UTC)
            if previous >= request.created_at:
                request.created_at = previous + timedelta(microseconds=1)
        session.add(request)
        session.flush()
    logger.info("Verification request %s submitted by user %s", request.id, user_id)
    return request


def latest_verification_request(engine: Engine, user_id: str) -> VerificationRequest | None:
    """Return the user's most recent request (the active one), if any."""
    with get_session(engine) as session:
        request = session.scalar(
            select(VerificationRequest)
            .where(VerificationRequest.user_id == user_id)
            .order_by(VerificationRequest.created_at.desc())
            .limit(1)
        )
        if request is not None:
            session.expunge(request)
        return request


# ---------------------------------------------------------------------------
# Session-aware action
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class SubmissionOutcome:
    ok: bool
    notice: Notice
    request: VerificationRequest | None = None
    error: SubmissionError | None = None


class VerificationSubmission:
    """Submit proof for whoever the session machine says is signed in."""

    def __init__(
        self,
        machine: SessionStateMachine,
        store: ProfileStore,
        *,
        notify: Notify | None = None,
        navigate: Navigate | None = None,
    ) -> None:
        self._machine = machine
        self._store = store
        self._notify = notify
        self._navigate = navigate

    def _finish(self, outcome: SubmissionOutcome) -> SubmissionOutcome:
        if self._notify is not None:
            try:
                self._notify(outcome.notice)
            except Exception:
                logger.exception("Notification callback failed")
        return outcome

    def _rejected(self, exc: SubmissionError) -> SubmissionOutcome:
        return self._finish(SubmissionOutcome(
            ok=False, error=exc, notice=Notice.error(exc.title, str(exc))
        ))

    async def submit(
        self, file_reference: str | None, description: str | None = None
    ) -> SubmissionOutcome:
        snapshot = self._machine.snapshot()
        if not snapshot.is_authenticated or snapshot.user_id is None:
            return self._rejected(SubmissionError("Please sign in before submitting verification"))
        if not file_reference or not file_reference.strip():
            return self._rejected(NoFileSelected())

        try:
            request = await self._store.insert_verification_request(
                snapshot.user_id, file_reference, description
            )
        except SubmissionError as exc:
            return self._rejected(exc)
        except Exception as exc:
            logger.exception("Verification insert failed for user %s", snapshot.user_id)
            return self._rejected(
                SubmissionError(str(exc) or "Failed to submit verification")
            )

        outcome = self._finish(SubmissionOutcome(
            ok=True,
            request=request,
            notice=Notice.success(
                "Success!", "Your verification certificate has been submitted for review."
            ),
        ))
        if self._navigate is not None:
            try:
                self._navigate(Route.APPLICATION_HOME)
            except Exception:
                logger.exception("Navigation callback failed after verification submit")
        return outcome
