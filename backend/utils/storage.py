"""Image storage: validate uploaded image bytes and publish them under a public URL."""

import io
import os
import uuid
import logging
from fastapi import HTTPException
from PIL import Image, UnidentifiedImageError

from utils.files import IMAGE_UPLOAD_LIMITS

logger = logging.getLogger(__name__)

DATA_DIR = os.getenv("DATA_DIR", "data")
UPLOAD_DIR = os.path.join(DATA_DIR, "uploads")
UPLOAD_URL_PATH = "/static/uploads"
PUBLIC_BASE_URL = os.getenv("PUBLIC_BASE_URL", "").rstrip("/")

FORMAT_TO_EXT = {
    "JPEG": "jpg",
    "PNG": "png",
    "WEBP": "webp",
}


def detect_image_extension(content: bytes) -> str:
    """Return the file extension for the image format detected from content, never from the filename."""
    try:
        image = Image.open(io.BytesIO(content))
        img_format = image.format
        image.verify()  # Check for corruption/invalid format
    except (UnidentifiedImageError, OSError, SyntaxError):
        raise HTTPException(status_code=400, detail="Invalid image file")

    if img_format not in FORMAT_TO_EXT:
        raise HTTPException(
            status_code=400,
            detail=f"Unsupported image format: {img_format}. Only JPEG, PNG, and WebP are supported."
        )
    return FORMAT_TO_EXT[img_format]


def save_image(content: bytes, folder: str) -> str:
    """
    Store an image and return its public URL.

    Args:
        content: Raw image bytes
        folder: One of the IMAGE_UPLOAD_LIMITS folders

    Returns:
        str: URL the stored image is served from
    """
    if folder not in IMAGE_UPLOAD_LIMITS:
        raise ValueError(f"Unknown image folder: {folder}")
    file_ext = detect_image_extension(content)

    target_dir = os.path.join(UPLOAD_DIR, folder)
    os.makedirs(target_dir, exist_ok=True)

    filename = f"{uuid.uuid4()}.{file_ext}"
    with open(os.path.join(target_dir, filename), "wb") as buffer:
        buffer.write(content)

    logger.info(f"Stored image {folder}/{filename} ({len(content)} bytes)")
    return f"{PUBLIC_BASE_URL}{UPLOAD_URL_PATH}/{folder}/{filename}"


def delete_image(url: str) -> None:
    """Remove a previously stored image. Unknown or foreign URLs are ignored."""
    marker = f"{UPLOAD_URL_PATH}/"
    if not url or marker not in url:
        return
    relative = url.split(marker, 1)[1]
    path = os.path.normpath(os.path.join(UPLOAD_DIR, relative))
    if not path.startswith(os.path.normpath(UPLOAD_DIR) + os.sep):
        return
    if os.path.exists(path):
        os.remove(path)
