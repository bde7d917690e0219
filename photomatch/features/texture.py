"""Luminance layout and local texture statistics."""

from __future__ import annotations

import numpy as np
from PIL import Image

from ..extract.normalize import resample_filter
from ..io.models import FloatVector, TextureMetrics

BRIGHTNESS_SIDE = 50
TEXTURE_SIDE = 64


def _luminance(img: Image.Image, side: int) -> np.ndarray:
    gray = img.convert("L").resize((side, side), resample_filter())
    return np.asarray(gray, dtype=np.float64)


def brightness_profile(img: Image.Image) -> FloatVector:
    """Return mean luminance of the top-left, top-right, bottom-left, bottom-right quadrants."""
    pixels = _luminance(img, BRIGHTNESS_SIDE)
    height, width = pixels.shape
    mid_y = (height + 1) // 2
    mid_x = (width + 1) // 2
    quadrants = (
        pixels[:mid_y, :mid_x],
        pixels[:mid_y, mid_x:],
        pixels[mid_y:, :mid_x],
        pixels[mid_y:, mid_x:],
    )
    return tuple(float(q.mean()) if q.size else 0.0 for q in quadrants)


def texture_metrics(img: Image.Image) -> TextureMetrics:
    """Return population variance, 4-neighbour contrast, and mean luminance."""
    pixels = _luminance(img, TEXTURE_SIDE)
    mean = float(pixels.mean())
    variance = float(pixels.var())

    center = pixels[1:-1, 1:-1]
    if center.size == 0:
        return TextureMetrics(variance=variance, contrast=0.0, mean=mean)

    neighbours = (
        pixels[:-2, 1:-1] + pixels[2:, 1:-1] + pixels[1:-1, :-2] + pixels[1:-1, 2:]
    ) / 4.0
    contrast = float(np.abs(center - neighbours).mean())
    return TextureMetrics(variance=variance, contrast=contrast, mean=mean)
