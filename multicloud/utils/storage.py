"""
Upload Validation Utilities.

Provides:
- Size and extension checks for uploaded files
- Filename sanitization and key generation helpers

Usage:
    from multicloud.utils.storage import read_upload

    @router.post("/upload")
    async def upload(file: UploadFile, settings: Settings = Depends(get_settings)):
        content = await read_upload(file, settings.upload)
"""

from __future__ import annotations

import re
import uuid
from pathlib import Path
from typing import Optional

from fastapi import HTTPException, UploadFile, status

from multicloud.core.config import UploadSettings


# ============================================================
# CONFIGURATION
# ============================================================

# Dangerous file extensions to always reject
DANGEROUS_EXTENSIONS = {
    ".exe", ".bat", ".cmd", ".sh", ".php", ".jsp", ".asp",
    ".dll", ".so", ".dylib", ".bin", ".com", ".msi",
}


# ============================================================
# FILE VALIDATION
# ============================================================

def validate_upload(file: UploadFile, upload: UploadSettings) -> None:
    """
    Validate filename and declared size of an uploaded file.

    Raises:
        HTTPException: 400 for missing/forbidden names, 413 when too large
    """
    if not file.filename:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Filename is required")

    ext = Path(file.filename).suffix.lower()
    if ext in DANGEROUS_EXTENSIONS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"File type not allowed: {ext}",
        )

    allowed = {e.lower().lstrip(".") for e in upload.allowed_extensions}
    if allowed and ext.lstrip(".") not in allowed:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"File extension not allowed. Allowed: {', '.join(sorted(allowed))}",
        )

    if file.size and file.size > upload.max_file_size:
        raise _too_large(upload.max_file_size)


async def read_upload(file: UploadFile, upload: UploadSettings) -> bytes:
    """
    Validate an upload and read its content.

    The size is checked again after reading, since chunked uploads do not
    declare one.
    """
    validate_upload(file, upload)
    content = await file.read(upload.max_file_size + 1)
    if len(content) > upload.max_file_size:
        raise _too_large(upload.max_file_size)
    return content


def _too_large(max_bytes: int) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
        detail=f"File too large. Maximum size: {max_bytes / (1024 * 1024):g}MB",
    )


# ============================================================
# KEY GENERATION
# ============================================================

def sanitize_filename(filename: str) -> str:
    """
    Sanitize a filename for safe storage.

    Removes path components and unsafe characters.
    """
    filename = Path(filename).name
    filename = re.sub(r"[^\w\-.]", "_", filename)
    filename = re.sub(r"_+", "_", filename).strip("_.")
    return filename or "file"


def generate_file_key(
    prefix: str,
    filename: str,
    unique: bool = True,
) -> str:
    """
    Generate a storage key for a file.

    Returns:
        Key like "documents/abc123_report.pdf"
    """
    safe_filename = sanitize_filename(filename)

    if unique:
        unique_id = uuid.uuid4().hex[:8]
        safe_filename = f"{unique_id}_{safe_filename}"

    prefix = prefix.strip("/")
    return f"{prefix}/{safe_filename}" if prefix else safe_filename


def upload_key(path: Optional[str], filename: Optional[str]) -> str:
    """
    Object key for an upload.

    A `path` ending in "/" is treated as a directory and the sanitized
    filename is appended; otherwise `path` is the key.
    """
    if path and not path.endswith("/"):
        return path
    return generate_file_key(path or "", filename or "file", unique=not path)
