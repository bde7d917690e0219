"""Utilities for normalizing photos into the canonical form features expect."""

from __future__ import annotations

import logging
from io import BytesIO

from PIL import Image, ImageFilter, ImageOps, UnidentifiedImageError
from PIL.Image import DecompressionBombError

from ..errors import DecodeError

logger = logging.getLogger(__name__)

MIN_IMAGE_BYTES = 256
CANONICAL_SIZE = 512
JPEG_QUALITY = 85
# Fraction of the luminance histogram clipped at each end before stretching.
CONTRAST_CUTOFF_PERCENT = 1


def resample_filter() -> int:
    """Return Pillow's Lanczos filter across old and new Pillow releases."""
    resample_attr = getattr(Image, "Resampling", None)
    resample = getattr(resample_attr, "LANCZOS", None) if resample_attr else None
    if resample is None:
        resample = getattr(Image, "LANCZOS", Image.BICUBIC)
    return resample


def open_rgb(image_bytes: bytes, min_bytes: int = MIN_IMAGE_BYTES) -> Image.Image:
    """Decode *image_bytes*, apply EXIF orientation, and return an RGB image."""
    if not image_bytes or len(image_bytes) < min_bytes:
        size = len(image_bytes) if image_bytes else 0
        raise DecodeError(f"Invalid image buffer ({size} bytes, too small or empty)")
    try:
        with Image.open(BytesIO(image_bytes)) as img:
            img.load()
            logger.debug("Decoded %s image %dx%d (%s)", img.format, img.width, img.height, img.mode)
            oriented = ImageOps.exif_transpose(img)
            return oriented.convert("RGB")
    except (UnidentifiedImageError, DecompressionBombError, OSError, ValueError) as exc:
        raise DecodeError(f"Unable to decode image: {exc}") from exc


def cover_resize(img: Image.Image, size: int = CANONICAL_SIZE) -> Image.Image:
    """Return *img* scaled to fill a size-by-size frame, cropping from the centre."""
    if size <= 0:
        raise ValueError("Size must be a positive integer")
    return ImageOps.fit(img, (size, size), method=resample_filter(), centering=(0.5, 0.5))


def stretch_contrast(img: Image.Image, cutoff: float = CONTRAST_CUTOFF_PERCENT) -> Image.Image:
    """Stretch the luminance range between the *cutoff* percentiles to 0..255."""
    return ImageOps.autocontrast(img, cutoff=(cutoff, cutoff), preserve_tone=True)


def sharpen(img: Image.Image) -> Image.Image:
    return img.filter(ImageFilter.UnsharpMask(radius=1, percent=100, threshold=2))


def encode_jpeg(img: Image.Image, quality: int = JPEG_QUALITY) -> bytes:
    buffer = BytesIO()
    img.save(buffer, format="JPEG", quality=quality, progressive=True)
    return buffer.getvalue()


def normalize_photo(
    image_bytes: bytes, size: int = CANONICAL_SIZE, quality: int = JPEG_QUALITY
) -> bytes:
    """Full normalization pipeline returning canonical size-by-size JPEG bytes."""
    img = open_rgb(image_bytes)
    try:
        img = cover_resize(img, size)
        img = stretch_contrast(img)
        img = sharpen(img)
        result = encode_jpeg(img, quality)
    finally:
        img.close()
    logger.debug(
        "Normalized photo: %.2f KB -> %.2f KB", len(image_bytes) / 1024, len(result) / 1024
    )
    return result
