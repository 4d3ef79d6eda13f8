"""
Upload processing for user photos and tour images.

Uploads are decoded with Pillow, cropped to a fixed aspect ratio and written
as JPEG under PUBLIC_DIR/img. Decoding and encoding are CPU-bound, so each
image is processed in a worker thread; a tour's cover and gallery images are
processed concurrently.
"""

import asyncio
import io
import time
from pathlib import Path
from typing import Optional

from fastapi import UploadFile
from PIL import Image, ImageOps, UnidentifiedImageError
from starlette.concurrency import run_in_threadpool

from tourbook.core.config import get_settings
from tourbook.core.errors import AppError
from tourbook.core.logging import get_logger

logger = get_logger(__name__)

USER_PHOTO_SIZE = (500, 500)
TOUR_IMAGE_SIZE = (2000, 1333)
JPEG_QUALITY = 90
MAX_TOUR_IMAGES = 3

NOT_AN_IMAGE = "Not an image! Please upload only images."


def _check_image(upload: UploadFile) -> None:
    if not (upload.content_type or "").startswith("image/"):
        raise AppError(NOT_AN_IMAGE, 400)


def _resize_to_jpeg(data: bytes, size: tuple[int, int], destination: Path) -> None:
    try:
        with Image.open(io.BytesIO(data)) as img:
            img = ImageOps.exif_transpose(img)
            if img.mode != "RGB":
                img = img.convert("RGB")
            fitted = ImageOps.fit(img, size, method=Image.Resampling.LANCZOS)
    except (UnidentifiedImageError, OSError):
        raise AppError(NOT_AN_IMAGE, 400)

    destination.parent.mkdir(parents=True, exist_ok=True)
    fitted.save(destination, format="JPEG", quality=JPEG_QUALITY, optimize=True)


async def _process(upload: UploadFile, size: tuple[int, int], filename: str, folder: str) -> str:
    data = await upload.read()
    destination = get_settings().PUBLIC_DIR / "img" / folder / filename
    await run_in_threadpool(_resize_to_jpeg, data, size, destination)
    return filename


async def process_user_photo(upload: UploadFile, user_id: int) -> str:
    """Store a 500x500 JPEG of the upload and return its filename."""
    _check_image(upload)
    filename = f"user-{user_id}-{int(time.time() * 1000)}.jpeg"
    await _process(upload, USER_PHOTO_SIZE, filename, "users")
    logger.info("user_photo_processed", user_id=user_id, filename=filename)
    return filename


async def process_tour_images(
    tour_id: int,
    image_cover: Optional[UploadFile] = None,
    images: Optional[list[UploadFile]] = None,
) -> dict:
    """
    Resize a tour's cover and gallery images (2000x1333) concurrently.
    Returns the update to apply: {"image_cover": ..., "images": [...]}, only
    with the keys that were uploaded.
    """
    images = images or []
    if len(images) > MAX_TOUR_IMAGES:
        raise AppError(f"Too many images. Upload at most {MAX_TOUR_IMAGES}.", 400)
    for upload in ([image_cover] if image_cover else []) + images:
        _check_image(upload)

    stamp = int(time.time() * 1000)
    update: dict = {}
    jobs = []
    if image_cover is not None:
        update["image_cover"] = f"tour-{tour_id}-{stamp}-cover.jpeg"
        jobs.append(_process(image_cover, TOUR_IMAGE_SIZE, update["image_cover"], "tours"))
    if images:
        update["images"] = [f"tour-{tour_id}-{stamp}-{index + 1}.jpeg" for index in range(len(images))]
        jobs.extend(
            _process(upload, TOUR_IMAGE_SIZE, filename, "tours")
            for upload, filename in zip(images, update["images"])
        )

    await asyncio.gather(*jobs)
    logger.info("tour_images_processed", tour_id=tour_id, count=len(jobs))
    return update
