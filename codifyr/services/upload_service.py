"""
codifyr.services.upload_service — Proof File Intake Checks
============================================================

Gatekeeper for verification proof files before a submission is made:
only PDFs and images get through.  Storing the bytes is the storage
layer's job; until a bucket exists submissions carry the
``pending_upload`` placeholder reference.
"""

from __future__ import annotations

from pathlib import Path

MAX_FILE_SIZE = 10 * 1024 * 1024  # 10 MB
ALLOWED_EXTENSIONS = {".pdf", ".png", ".jpg", ".jpeg", ".gif", ".webp"}
PDF_MIME_TYPE = "application/pdf"


class InvalidProofFile(ValueError):
    """The selected file cannot be used as verification proof."""


def is_accepted_type(content_type: str | None) -> bool:
    """PDF or any ``image/*`` MIME type."""
    if not content_type:
        return False
    mime = content_type.split(";", 1)[0].strip().lower()
    return mime == PDF_MIME_TYPE or mime.startswith("image/")


def check_proof_file(
    filename: str | None,
    content_type: str | None,
    size: int | None = None,
) -> None:
    """Validate a proof file's type and size.

    The MIME type decides; the extension is only consulted when the
    client sent no type at all.

    Raises
    ------
    InvalidProofFile
        If the file is not a PDF/image or is too large.
    """
    if content_type:
        accepted = is_accepted_type(content_type)
    else:
        accepted = Path(filename or "").suffix.lower() in ALLOWED_EXTENSIONS
    if not accepted:
        raise InvalidProofFile("Please upload a PDF or image file")

    if size is not None and size > MAX_FILE_SIZE:
        raise InvalidProofFile(
            f"File too large: {size} bytes (max {MAX_FILE_SIZE // 1024 // 1024}MB)"
        )
