# uploads.py
"""
Incoming file validation.

Each multipart field accepts one file of a known MIME family. Accepted
files are streamed into UPLOAD_FOLDER; the media store removes them
after uploading.
"""
import logging
import random
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Optional

from fastapi import Request, UploadFile

from config import config
from errors import TooLarge, ValidationError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024

SUPPORTED_VIDEO_FORMATS = {
    "video/mp4",
    "video/webm",
    "video/quicktime",
    "video/x-msvideo",
    "video/x-ms-wmv",
}


def has_file(upload: Optional[UploadFile]) -> bool:
    return upload is not None and bool(upload.filename)


def check_mime_type(field: str, content_type: Optional[str]) -> None:
    content_type = (content_type or "").lower()
    if field == "video":
        if content_type not in SUPPORTED_VIDEO_FORMATS:
            raise ValidationError(
                f"Unsupported video format. Supported formats: MP4, WebM, MOV, AVI, WMV. Received: {content_type}"
            )
    elif field == "pdf":
        if content_type != "application/pdf":
            raise ValidationError("Invalid file type. Only PDF files are allowed.")
    elif field in ("courseThumbnail", "profilePhoto"):
        if not content_type.startswith("image/"):
            raise ValidationError("Invalid file type. Only image files are allowed.")
    else:
        raise ValidationError("Invalid field name for file upload.")


def allowed_file_fields(*fields: str):
    """
    Dependency for multipart routes: every file part must use one of
    ``fields``, and each field carries at most one file.
    """
    async def check_file_fields(request: Request) -> None:
        form = await request.form()
        seen = set()
        for key, value in form.multi_items():
            if isinstance(value, str) or not getattr(value, "filename", None):
                continue
            if key not in fields:
                raise ValidationError("Invalid field name for file upload.")
            if key in seen:
                raise ValidationError("Too many files uploaded")
            seen.add(key)

    return check_file_fields


def save_upload(upload: UploadFile, field: str, folder: Optional[str] = None,
                max_bytes: Optional[int] = None) -> Path:
    """Validate ``upload`` for ``field`` and write it to a unique local path"""
    check_mime_type(field, upload.content_type)

    max_bytes = max_bytes or config.max_upload_bytes
    target_dir = Path(folder or config.UPLOAD_FOLDER)
    target_dir.mkdir(parents=True, exist_ok=True)

    suffix = f"{int(time.time() * 1000)}-{random.randint(0, 10 ** 9)}"
    target = target_dir / f"{field}-{suffix}{Path(upload.filename or '').suffix.lower()}"

    written = 0
    try:
        with open(target, "wb") as out:
            while True:
                chunk = upload.file.read(CHUNK_SIZE)
                if not chunk:
                    break
                written += len(chunk)
                if written > max_bytes:
                    raise TooLarge(f"File is too large. Maximum size is {max_bytes // (1024 * 1024)}MB")
                out.write(chunk)
    except Exception:
        target.unlink(missing_ok=True)
        raise

    logger.debug(f"Stored upload {upload.filename} for {field} at {target} ({written} bytes)")
    return target


def save_optional(upload: Optional[UploadFile], field: str) -> Optional[Path]:
    if not has_file(upload):
        return None
    return save_upload(upload, field)


@contextmanager
def staged_uploads(*pairs):
    """
    Save each (upload, field) pair and yield the local paths (None where no
    file was sent). Whatever the media store did not consume is removed on exit.
    """
    paths = []
    try:
        for upload, field in pairs:
            paths.append(save_optional(upload, field))
        yield paths
    finally:
        for path in paths:
            if path is not None:
                path.unlink(missing_ok=True)
