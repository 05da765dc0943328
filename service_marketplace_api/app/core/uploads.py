"""
Storage of uploaded images.

Files are written into ``settings.upload_dir``, which the application
serves as static files under ``/uploads``.  Callers receive an opaque
path string (``uploads/<name>``) to persist alongside their records.
Only jpeg, jpg, png and gif images are accepted; both the MIME type
and the file extension must match.
"""

import logging
import random
import re
import time
from pathlib import Path
from typing import Iterable

from fastapi import UploadFile

from .config import settings
from .errors import ValidationError


logger = logging.getLogger(__name__)

ALLOWED_FILETYPES = re.compile(r"jpeg|jpg|png|gif")
PUBLIC_PREFIX = "uploads"


def get_upload_dir() -> Path:
    path = Path(settings.upload_dir)
    path.mkdir(parents=True, exist_ok=True)
    return path


def check_image(file: UploadFile) -> None:
    """Raise ``ValidationError`` unless the file looks like a supported image."""
    mimetype = file.content_type or ""
    extension = (file.filename or "").rsplit(".", 1)[-1].lower()
    if not (ALLOWED_FILETYPES.search(mimetype) and ALLOWED_FILETYPES.search(extension)):
        raise ValidationError(
            "File upload only supports the following filetypes - jpeg, jpg, png, gif",
            filename=file.filename,
            content_type=mimetype,
        )


def _unique_name(field_name: str, mimetype: str) -> str:
    unique_suffix = f"{int(time.time() * 1000)}-{random.randint(0, 10**9)}"
    return f"{field_name}-{unique_suffix}.{mimetype.split('/')[-1]}"


async def save_upload(file: UploadFile, field_name: str) -> str:
    """Validate and store an uploaded image, returning its public path."""
    check_image(file)
    name = _unique_name(field_name, file.content_type)
    target = get_upload_dir() / name
    target.write_bytes(await file.read())
    logger.info("Stored upload %s as %s", file.filename, name)
    return f"{PUBLIC_PREFIX}/{name}"


def discard_uploads(paths: Iterable[str]) -> None:
    """Remove stored files whose owning record could not be created."""
    upload_dir = get_upload_dir()
    for path in paths:
        target = upload_dir / Path(path).name
        try:
            target.unlink()
        except FileNotFoundError:
            logger.warning("Upload %s already removed", path)
