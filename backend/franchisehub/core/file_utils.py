"""Upload storage: safe filenames, extension checks and local persistence."""

import logging
import os
import re
import uuid
from pathlib import Path
from typing import Optional, Set

from fastapi import UploadFile

from franchisehub.core.config import settings

logger = logging.getLogger(__name__)

# Allowed file extensions by category
ALLOWED_IMAGE_EXTENSIONS: Set[str] = {".jpg", ".jpeg", ".png", ".gif", ".webp", ".svg"}
ALLOWED_DOCUMENT_EXTENSIONS: Set[str] = {
    ".pdf", ".doc", ".docx", ".xls", ".xlsx", ".csv", ".txt", ".ppt", ".pptx",
    ".jpg", ".jpeg", ".png", ".zip",
}
ALLOWED_IMPORT_EXTENSIONS: Set[str] = {".csv", ".xlsx"}
ALLOWED_ATTACHMENT_EXTENSIONS: Set[str] = ALLOWED_DOCUMENT_EXTENSIONS | ALLOWED_IMAGE_EXTENSIONS

SAFE_FILENAME_PATTERN = re.compile(r"[^a-zA-Z0-9._-]")


def sanitize_filename(filename: str) -> str:
    """Strip path components and unsafe characters, preserving the extension."""
    if not filename:
        return "unnamed"

    filename = os.path.basename(filename)
    filename = filename.replace("\x00", "").replace("\n", "").replace("\r", "")
    name, ext = os.path.splitext(filename)
    name = SAFE_FILENAME_PATTERN.sub("_", name).strip("_.") or "file"
    name = name[:200]

    ext = SAFE_FILENAME_PATTERN.sub("", ext.lower())
    if ext and not ext.startswith("."):
        ext = "." + ext

    return name + ext


def generate_secure_filename(original_filename: str, prefix: str = "") -> str:
    """UUID-based filename keeping the original extension."""
    ext = ""
    if original_filename:
        _, ext = os.path.splitext(original_filename)
        ext = ext.lower()
        if ext and not re.match(r"^\.[a-zA-Z0-9]+$", ext):
            ext = ""

    unique_id = uuid.uuid4().hex
    if prefix:
        prefix = SAFE_FILENAME_PATTERN.sub("_", prefix).strip("_.")
        return f"{prefix}_{unique_id}{ext}"
    return f"{unique_id}{ext}"


def validate_file_extension(
    filename: str,
    allowed_extensions: Set[str],
    error_message: Optional[str] = None
) -> str:
    """Return the lowercased extension or raise ValueError if not allowed."""
    if not filename:
        raise ValueError(error_message or "Filename is required")

    _, ext = os.path.splitext(filename.lower())
    if ext not in allowed_extensions:
        if error_message:
            raise ValueError(error_message)
        raise ValueError(
            f"File type '{ext}' is not allowed. "
            f"Allowed types: {', '.join(sorted(allowed_extensions))}"
        )
    return ext


def is_safe_path(base_path: str, target_path: str) -> bool:
    """Check that ``target_path`` resolves inside ``base_path``."""
    base = Path(base_path).resolve()
    target = Path(target_path).resolve()
    try:
        target.relative_to(base)
        return True
    except ValueError:
        return False


def public_url(relative_path: str) -> str:
    return f"{settings.public_upload_url.rstrip('/')}/{relative_path}"


UPLOAD_CHUNK_SIZE = 1024 * 1024


def read_limited(stream, limit: int, chunk_size: int = UPLOAD_CHUNK_SIZE) -> bytes:
    """Read ``stream`` in chunks, raising ValueError as soon as ``limit`` bytes are passed."""
    chunks = []
    size = 0
    while True:
        chunk = stream.read(chunk_size)
        if not chunk:
            break
        size += len(chunk)
        if size > limit:
            raise ValueError(f"File exceeds the {limit / (1024 * 1024):g}MB upload limit")
        chunks.append(chunk)
    return b"".join(chunks)


def save_upload(
    upload: UploadFile,
    subdir: str,
    allowed_extensions: Set[str] = ALLOWED_ATTACHMENT_EXTENSIONS,
) -> dict:
    """Persist an uploaded file under ``upload_dir/subdir``.

    Returns metadata with the storage-relative ``path`` and public ``url``.
    Raises ValueError for disallowed types or oversized files.
    """
    original_name = sanitize_filename(upload.filename or "")
    ext = validate_file_extension(original_name, allowed_extensions)

    content = read_limited(upload.file, settings.max_upload_size_bytes)

    base = Path(settings.upload_dir) / subdir
    base.mkdir(parents=True, exist_ok=True)
    stored_name = generate_secure_filename(original_name)
    full_path = base / stored_name
    if not is_safe_path(settings.upload_dir, str(full_path)):
        raise ValueError("Invalid file path")

    full_path.write_bytes(content)
    relative = f"{subdir}/{stored_name}"
    logger.info(f"Stored upload {original_name} as {relative} ({len(content)} bytes)")
    return {
        "path": relative,
        "url": public_url(relative),
        "file_name": original_name,
        "extension": ext.lstrip("."),
        "size": len(content),
        "mime_type": upload.content_type or "application/octet-stream",
    }


def stored_file_path(relative_path: str) -> Path:
    """Absolute path of a stored file; raises ValueError on traversal."""
    full = Path(settings.upload_dir) / relative_path
    if not is_safe_path(settings.upload_dir, str(full)):
        raise ValueError("Invalid file path")
    return full


def delete_stored_file(relative_path: Optional[str]) -> bool:
    if not relative_path:
        return False
    try:
        full = stored_file_path(relative_path)
    except ValueError:
        return False
    if full.exists():
        full.unlink()
        return True
    return False


def save_uploads(uploads, subdir: str, allowed_extensions: Set[str] = ALLOWED_ATTACHMENT_EXTENSIONS) -> list:
    """Save several uploads; on the first invalid file the ones already stored are removed."""
    stored = []
    for upload in uploads or []:
        if not upload.filename:
            continue
        try:
            stored.append(save_upload(upload, subdir, allowed_extensions))
        except ValueError:
            for item in stored:
                delete_stored_file(item["path"])
            raise
    return stored
