"""
codifyr.api.routes.verification — Proof-of-identity submissions
================================================================
"""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, Field

from codifyr.api.deps import CurrentUser, EngineDep
from codifyr.database.engine import run_db
from codifyr.database.models import VerificationRequest
from codifyr.services.upload_service import InvalidProofFile, check_proof_file
from codifyr.services.verification_service import (
    SubmissionError,
    latest_verification_request,
    submit_verification,
)

router = APIRouter(prefix="/verification", tags=["verification"])


class VerificationCreate(BaseModel):
    file_reference: str | None = None
    description: str | None = Field(default=None, max_length=2000)
    filename: str | None = None
    content_type: str | None = None
    size: int | None = Field(default=None, ge=0)


def _serialize(request: VerificationRequest) -> dict:
    return {
        "id": request.id,
        "user_id": request.user_id,
        "file_reference": request.file_url,
        "description": request.description,
        "status": request.status.value,
        "created_at": request.created_at.isoformat() if request.created_at else None,
    }


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_verification(body: VerificationCreate, user: CurrentUser, engine: EngineDep):
    """Record a new pending verification request for the caller."""
    if body.content_type or body.filename:
        try:
            check_proof_file(body.filename, body.content_type, body.size)
        except InvalidProofFile as exc:
            raise HTTPException(400, str(exc))

    try:
        request = await run_db(
            submit_verification, engine, user["sub"], body.file_reference, body.description
        )
    except SubmissionError as exc:
        raise HTTPException(400, str(exc))
    return _serialize(request)


@router.get("/me")
async def my_verification(user: CurrentUser, engine: EngineDep):
    """Return the caller's active (most recent) verification request."""
    request = await run_db(latest_verification_request, engine, user["sub"])
    if request is None:
        raise HTTPException(404, "No verification request submitted")
    return _serialize(request)
