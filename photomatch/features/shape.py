"""Shape-driven feature extraction helpers."""

from __future__ import annotations

import cv2
import numpy as np
from PIL import Image

from ..extract.normalize import resample_filter
from ..io.models import EdgeDensity

EDGE_SIDE = 100
EDGE_THRESHOLD = 30.0


def edge_density(img: Image.Image, threshold: float = EDGE_THRESHOLD) -> EdgeDensity:
    """Return the fraction of interior pixels whose Sobel magnitude exceeds *threshold*."""
    if not isinstance(img, Image.Image):
        raise TypeError("edge_density expects a PIL.Image.Image instance")

    gray = img.convert("L").resize((EDGE_SIDE, EDGE_SIDE), resample_filter())
    pixels = np.asarray(gray, dtype=np.float64)

    grad_x = cv2.Sobel(pixels, cv2.CV_64F, 1, 0, ksize=3)
    grad_y = cv2.Sobel(pixels, cv2.CV_64F, 0, 1, ksize=3)
    # Border responses depend on cv2's padding; only full 3x3 neighbourhoods count.
    magnitude = np.hypot(grad_x, grad_y)[1:-1, 1:-1]

    if magnitude.size == 0:
        return EdgeDensity(density=0.0, total_edges=0)

    total_edges = int(np.count_nonzero(magnitude > threshold))
    return EdgeDensity(density=total_edges / magnitude.size, total_edges=total_edges)
