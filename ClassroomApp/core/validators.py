"""Validation helpers for uploaded files (size and sniffed MIME type)."""

from django.conf import settings
from django.core.exceptions import ValidationError
from typing import Any

import magic

ALLOWED_UPLOAD_MIME: set[str] = {
    "image/jpeg",
    "image/png",
    "image/gif",
    "image/webp",
    "application/pdf",
    "audio/mpeg",
    "audio/wav",
    "audio/x-wav",
    "audio/webm",
    "video/webm",
}

def validate_file_size(file_obj: Any, max_mb: int | None = None) -> None:
    """Ensure file size does not exceed max_mb megabytes (UPLOAD_MAX_MB by default)."""
    if max_mb is None:
        max_mb = getattr(settings, "UPLOAD_MAX_MB", 10)
    if file_obj and file_obj.size > max_mb * 1024 * 1024:
        raise ValidationError(f"File exceeds {max_mb} MB limit.")

def _probe_mime(file_obj: Any) -> str | None:
    """Read initial bytes to detect MIME type using libmagic."""
    if not file_obj:
        return None
    header = file_obj.read(4096)
    file_obj.seek(0)
    return magic.from_buffer(header, mime=True)

def validate_upload_mime(file_obj: Any) -> str | None:
    """Validate that an upload has an allowed MIME type and return the detected type."""
    mime = _probe_mime(file_obj)
    if mime and mime not in ALLOWED_UPLOAD_MIME:
        raise ValidationError(f"Unsupported file type: {mime}")
    return mime
