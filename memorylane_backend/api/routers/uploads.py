"""
Image uploads.

Files are written to ``settings.upload_dir`` under a collision-free
name and served back by the static mount at ``/uploads``.
"""

import logging
import secrets
import time
from pathlib import Path
from typing import List

from fastapi import APIRouter, Depends, File, Request, UploadFile

from ...config import settings
from ...entities import User
from ...errors import ValidationError
from ..deps import get_current_user
from ..schemas import UploadOut

logger = logging.getLogger(__name__)

router = APIRouter()

ALLOWED_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif"}


def unique_filename(original: str) -> str:
    suffix = Path(original).suffix.lower()
    return f"{int(time.time() * 1000)}-{secrets.token_hex(8)}{suffix}"


# PUBLIC_INTERFACE
@router.post("/upload", response_model=UploadOut, summary="Upload images")
async def upload_images(
    request: Request,
    files: List[UploadFile] = File(..., description="Image files (jpg, jpeg, png, gif)"),
    current_user: User = Depends(get_current_user),
):
    """
    Store up to ``MAX_UPLOAD_FILES`` images and return their public URLs.
    Nothing is written unless every file passes validation.
    """
    if len(files) > settings.max_upload_files:
        raise ValidationError(f"Too many files (max {settings.max_upload_files})")

    accepted = []
    for upload in files:
        if Path(upload.filename or "").suffix.lower() not in ALLOWED_EXTENSIONS:
            raise ValidationError("Only image files are allowed!")
        # Read one byte past the limit; never buffer more than that.
        data = await upload.read(settings.max_upload_bytes + 1)
        if len(data) > settings.max_upload_bytes:
            raise ValidationError(f"File too large (max {settings.max_upload_bytes // (1024 * 1024)}MB)")
        accepted.append((unique_filename(upload.filename), data))

    upload_dir = Path(settings.upload_dir)
    upload_dir.mkdir(parents=True, exist_ok=True)
    base_url = (settings.public_base_url or str(request.base_url)).rstrip("/")
    urls = []
    for name, data in accepted:
        (upload_dir / name).write_bytes(data)
        urls.append(f"{base_url}/uploads/{name}")
    logger.info("User %s uploaded %d file(s)", current_user.id, len(urls))
    return {"urls": urls}
