import os
import shutil
import uuid
from typing import Optional

from fastapi import UploadFile

from taskhub.core.config import settings
from taskhub.core.exceptions import ValidationError
from taskhub.core.logger import logger

ALLOWED_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif", ".webp", ".pdf"}


def has_upload(file: Optional[UploadFile]) -> bool:
    # browsers post an empty part for an untouched file input
    return file is not None and bool(file.filename)


def save_upload_file(file: UploadFile, folder: Optional[str] = None) -> str:
    """Store an upload under a collision-free name and return the stored file name."""
    folder = folder or settings.UPLOAD_DIR
    os.makedirs(folder, exist_ok=True)

    ext = os.path.splitext(file.filename or "")[1].lower()
    if ext not in ALLOWED_EXTENSIONS:
        raise ValidationError(f"Unsupported file type: {ext or 'none'}")

    filename = f"{uuid.uuid4().hex}{ext}"
    file_path = os.path.join(folder, filename)
    try:
        with open(file_path, "wb") as buffer:
            shutil.copyfileobj(file.file, buffer)
    except OSError:
        logger.exception(f"Upload failed: {file.filename}")
        raise
    return filename


def resolve_upload_path(filename: str, folder: Optional[str] = None) -> str:
    folder = folder or settings.UPLOAD_DIR
    return os.path.join(folder, os.path.basename(filename))


def discard_upload(filename: Optional[str], folder: Optional[str] = None):
    """Remove a stored upload whose database row was never committed."""
    if not filename:
        return
    path = resolve_upload_path(filename, folder)
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError:
        logger.exception(f"Could not remove orphaned upload: {path}")
