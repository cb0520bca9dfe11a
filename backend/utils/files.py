"""Size-capped reading of uploaded images."""

import os
from fastapi import UploadFile, HTTPException

CHUNK_SIZE = 1024 * 1024

PROFILE_IMAGES = "profiles"
POST_IMAGES = "posts"

# Storage folder -> (label used in errors, largest accepted upload in bytes)
IMAGE_UPLOAD_LIMITS = {
    PROFILE_IMAGES: ("Profile picture", int(os.getenv("MAX_PROFILE_PICTURE_BYTES", str(2 * 1024 * 1024)))),
    POST_IMAGES: ("Post image", int(os.getenv("MAX_POST_IMAGE_BYTES", str(5 * 1024 * 1024)))),
}


def format_size(num_bytes: int) -> str:
    if num_bytes >= 1024 * 1024:
        return f"{num_bytes / (1024 * 1024):.1f}MB"
    if num_bytes >= 1024:
        return f"{num_bytes // 1024}KB"
    return f"{num_bytes} bytes"


async def read_image_upload(file: UploadFile, folder: str) -> bytes:
    """
    Read an uploaded image destined for `folder`, in chunks.

    Reading stops at the first chunk that takes the upload past the folder's
    cap, so an oversized body is never held in memory in full.

    Args:
        file: The FastAPI UploadFile object
        folder: Storage folder the image is saved under ("profiles" or "posts")

    Returns:
        bytes: The content of the file

    Raises:
        HTTPException: 413 when over the folder's cap, 400 when empty
    """
    label, max_size_bytes = IMAGE_UPLOAD_LIMITS[folder]
    content = bytearray()

    while True:
        chunk = await file.read(CHUNK_SIZE)
        if not chunk:
            break

        content.extend(chunk)

        if len(content) > max_size_bytes:
            raise HTTPException(
                status_code=413,
                detail=f"{label} is too large. Maximum size is {format_size(max_size_bytes)}"
            )

    if not content:
        raise HTTPException(status_code=400, detail=f"{label} is empty")

    return bytes(content)
