import logging
import os
import uuid

from fastapi import UploadFile

from config import Settings
from errors import ValidationFailed

logger = logging.getLogger(__name__)

UPLOAD_URL_PREFIX = "/uploads"
CHUNK_SIZE = 64 * 1024

# raster types only; anything else (svg included) is stored without an extension
IMAGE_EXTENSIONS = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/gif": ".gif",
    "image/webp": ".webp",
    "image/bmp": ".bmp",
}


def ensure_upload_dir(settings: Settings) -> str:
    os.makedirs(settings.upload_dir, exist_ok=True)
    return settings.upload_dir


def save_image(upload: UploadFile, settings: Settings) -> str:
    """Store an uploaded image and return its public path under /uploads."""
    content_type = upload.content_type or ""
    if not content_type.startswith("image/"):
        raise ValidationFailed("Only image files are allowed!")

    ext = IMAGE_EXTENSIONS.get(content_type.split(";")[0].strip().lower(), "")
    filename = uuid.uuid4().hex + ext
    path = os.path.join(ensure_upload_dir(settings), filename)

    written = 0
    with open(path, "wb") as out:
        while True:
            chunk = upload.file.read(CHUNK_SIZE)
            if not chunk:
                break
            written += len(chunk)
            if written > settings.max_upload_bytes:
                break
            out.write(chunk)
    if written > settings.max_upload_bytes:
        os.remove(path)
        raise ValidationFailed("File too large")

    logger.info("Stored upload %s (%d bytes)", filename, written)
    return f"{UPLOAD_URL_PREFIX}/{filename}"


def remove_image(image_path: str, settings: Settings) -> None:
    """Delete a file previously returned by save_image."""
    if not image_path.startswith(UPLOAD_URL_PREFIX + "/"):
        return
    path = os.path.join(settings.upload_dir, os.path.basename(image_path))
    if os.path.exists(path):
        os.remove(path)
    logger.info("Removed orphaned upload %s", os.path.basename(image_path))
