"""Color histogram utilities."""

from __future__ import annotations


import cv2
import numpy as np
from PIL import Image

from ..extract.normalize import resample_filter
from ..io.models import ColorHistogram, as_vector

HISTOGRAM_SIDE = 64
HISTOGRAM_BINS = 32


def rgb_histogram(img: Image.Image, bins: int = HISTOGRAM_BINS) -> ColorHistogram:
    """Return per-channel histograms over [0, 256) normalised by pixel count.

    ``combined`` sums the three channel counts per bin before dividing by the
    pixel count, so it totals 3 rather than 1.
    """
    if bins <= 0 or 256 % bins:
        raise ValueError("bins must be a positive divisor of 256")

    rgb_image = img.convert("RGB") if img.mode != "RGB" else img
    small = rgb_image.resize((HISTOGRAM_SIDE, HISTOGRAM_SIDE), resample_filter())
    np_pixels = np.ascontiguousarray(np.asarray(small, dtype=np.uint8))
    total = float(np_pixels.shape[0] * np_pixels.shape[1])

    counts = [
        cv2.calcHist([np_pixels], [channel], None, [bins], [0, 256])
        .flatten()
        .astype(np.float64)
        for channel in range(3)
    ]
    red, green, blue = counts
    combined = red + green + blue

    return ColorHistogram(
        red=as_vector(red / total),
        green=as_vector(green / total),
        blue=as_vector(blue / total),
        combined=as_vector(combined / total),
    )
