"""Perceptual hash computations."""

from __future__ import annotations

import imagehash
import numpy as np
from PIL import Image

from ..extract.normalize import resample_filter
from ..io.models import PerceptualHashes

SIMPLE_HASH_SIZE = 8
ENHANCED_HASH_SIZE = 16
BLOCK_HASH_SOURCE = 32
BLOCK_SIZE = 4


def average_hash_bits(img: Image.Image, hash_size: int) -> str:
    """Return the average hash of *img* as a row-major bitstring of hash_size**2 bits."""
    if not isinstance(img, Image.Image):
        raise TypeError("average_hash_bits expects a PIL.Image.Image instance")
    digest = imagehash.average_hash(img, hash_size=hash_size)
    return _bits(digest.hash)


def block_hash_bits(img: Image.Image) -> str:
    """Return the 64-bit block-average hash (a coarse DCT approximation)."""
    if not isinstance(img, Image.Image):
        raise TypeError("block_hash_bits expects a PIL.Image.Image instance")
    side = BLOCK_HASH_SOURCE
    gray = img.convert("L").resize((side, side), resample_filter())
    pixels = np.asarray(gray, dtype=np.float64)
    per_side = side // BLOCK_SIZE
    blocks = pixels.reshape(per_side, BLOCK_SIZE, per_side, BLOCK_SIZE).mean(axis=(1, 3))
    return _bits(blocks > blocks.mean())


def compute_hashes(img: Image.Image) -> PerceptualHashes:
    """Return the three hash variants for *img*."""
    return PerceptualHashes(
        simple=average_hash_bits(img, SIMPLE_HASH_SIZE),
        enhanced=average_hash_bits(img, ENHANCED_HASH_SIZE),
        dct=block_hash_bits(img),
    )


def hamming_distance(h1: str, h2: str) -> int:
    """Return the number of differing positions between two equal-length bitstrings."""
    if len(h1) != len(h2):
        raise ValueError("Bitstrings must have equal length")
    return sum(1 for a, b in zip(h1, h2) if a != b)


def hash_similarity(h1: str | None, h2: str | None) -> float:
    """Return the fraction of matching bits, or 0.0 for missing or mismatched hashes."""
    if not h1 or not h2 or len(h1) != len(h2):
        return 0.0
    return 1.0 - (hamming_distance(h1, h2) / len(h1))


def _bits(mask: np.ndarray) -> str:
    return "".join("1" if bit else "0" for bit in np.asarray(mask).flatten())
