from __future__ import annotations

import logging
import secrets
import time
from dataclasses import dataclass
from pathlib import Path
from uuid import UUID

from fastapi import UploadFile
from starlette.concurrency import run_in_threadpool

from src.core.settings import get_app_settings
from src.services.errors import ValidationFailed

logger = logging.getLogger(__name__)

ALLOWED_IMAGE_TYPES = {
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
}


@dataclass
class StoredFile:
    """Metadata of a file written below UPLOAD_DIR."""
    file_path: str
    url: str
    original_name: str
    size: int
    content_type: str


def _write(path: Path, content: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)


# PUBLIC_INTERFACE
async def store_image(upload: UploadFile, owner_id: UUID, folder: str) -> StoredFile:
    """
    Validate and persist an uploaded image as {owner}/{folder}/{timestamp}_{random}.{ext}.

    Raises:
        ValidationFailed: when the file is missing, of a disallowed type or larger than MAX_UPLOAD_BYTES.
    """
    settings = get_app_settings()
    if upload is None or not upload.filename:
        raise ValidationFailed("No file provided")

    content_type = (upload.content_type or "").lower()
    if content_type not in ALLOWED_IMAGE_TYPES:
        raise ValidationFailed("Invalid file type. Only JPEG, PNG, and WebP images are allowed.")

    content = await upload.read()
    if len(content) > settings.MAX_UPLOAD_BYTES:
        raise ValidationFailed("File size too large. Maximum size is 5MB.")

    # extension follows the checked content type, never the client filename
    suffix = ALLOWED_IMAGE_TYPES[content_type]
    relative = f"{owner_id}/{folder}/{int(time.time() * 1000)}_{secrets.token_hex(4)}.{suffix}"
    await run_in_threadpool(_write, Path(settings.UPLOAD_DIR) / relative, content)
    logger.info("Stored upload %s (%d bytes)", relative, len(content))

    return StoredFile(
        file_path=relative,
        url=f"{settings.PUBLIC_UPLOAD_BASE_URL.rstrip('/')}/{relative}",
        original_name=upload.filename,
        size=len(content),
        content_type=content_type,
    )
