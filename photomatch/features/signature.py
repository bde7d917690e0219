"""Assemble feature extractors into cached image signatures."""

from __future__ import annotations

import hashlib
import logging
from typing import Callable, Sequence

import numpy as np
from PIL import Image

from ..errors import DecodeError, SignatureComputationError
from ..extract.normalize import open_rgb
from ..io.models import (
    ColorHistogram,
    EdgeDensity,
    PerceptualHashes,
    Signature,
    TextureMetrics,
    as_vector,
)
from .cache import LRUSignatureCache, SignatureCache
from .color import rgb_histogram
from .perceptual import compute_hashes
from .shape import edge_density
from .texture import brightness_profile, texture_metrics

logger = logging.getLogger(__name__)


def content_digest(data: bytes) -> str:
    """Return the hex SHA-256 digest used as the signature cache key."""
    return hashlib.sha256(data).hexdigest()


def _run(name: str, extractor: Callable[[Image.Image], object], img: Image.Image):
    try:
        return extractor(img)
    except Exception as exc:  # noqa: BLE001 - surfaced as a typed per-image failure
        raise SignatureComputationError(name, exc) from exc


def compute_signature(normalized_bytes: bytes) -> Signature:
    """Decode *normalized_bytes* and run every extractor, without caching.

    Raises:
        DecodeError: If the bytes cannot be decoded.
        SignatureComputationError: If an extractor fails.
    """
    img = open_rgb(normalized_bytes)
    try:
        return Signature(
            hashes=_run("hashes", compute_hashes, img),
            color_histogram=_run("color_histogram", rgb_histogram, img),
            edge_density=_run("edge_density", edge_density, img),
            brightness_profile=_run("brightness_profile", brightness_profile, img),
            texture=_run("texture_metrics", texture_metrics, img),
        )
    finally:
        img.close()


class SignatureBuilder:
    """Build signatures for normalized image bytes, memoised by content digest."""

    def __init__(self, cache: SignatureCache | None = None) -> None:
        self.cache: SignatureCache = cache if cache is not None else LRUSignatureCache()

    def build(self, normalized_bytes: bytes) -> Signature | None:
        """Return the signature for *normalized_bytes*, or ``None`` when it cannot be computed."""
        key = content_digest(normalized_bytes)
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug("Using cached signature %s", key[:12])
            return cached

        try:
            signature = compute_signature(normalized_bytes)
        except (DecodeError, SignatureComputationError) as exc:
            logger.warning("Signature generation failed for %s: %s", key[:12], exc)
            return None

        self.cache.put(key, signature)
        logger.debug("Signature generated and cached %s", key[:12])
        return signature


def average_signature(signatures: Sequence[Signature]) -> Signature | None:
    """Return one representative signature for a multi-image profile.

    Continuous features are averaged. Hash bits are decided by majority vote per
    position with ties resolved by the first signature, which reduces to the
    first signature's hashes for one or two images.
    """
    if not signatures:
        return None
    if len(signatures) == 1:
        return signatures[0]

    hashes = PerceptualHashes(
        simple=_majority_bits([s.hashes.simple for s in signatures]),
        enhanced=_majority_bits([s.hashes.enhanced for s in signatures]),
        dct=_majority_bits([s.hashes.dct for s in signatures]),
    )
    histogram = ColorHistogram(
        red=_mean_vector([s.color_histogram.red for s in signatures]),
        green=_mean_vector([s.color_histogram.green for s in signatures]),
        blue=_mean_vector([s.color_histogram.blue for s in signatures]),
        combined=_mean_vector([s.color_histogram.combined for s in signatures]),
    )
    edges = EdgeDensity(
        density=float(np.mean([s.edge_density.density for s in signatures])),
        total_edges=int(round(np.mean([s.edge_density.total_edges for s in signatures]))),
    )
    texture = TextureMetrics(
        variance=float(np.mean([s.texture.variance for s in signatures])),
        contrast=float(np.mean([s.texture.contrast for s in signatures])),
        mean=float(np.mean([s.texture.mean for s in signatures])),
    )
    logger.debug("Averaged %d signatures", len(signatures))
    return Signature(
        hashes=hashes,
        color_histogram=histogram,
        edge_density=edges,
        brightness_profile=_mean_vector([s.brightness_profile for s in signatures]),
        texture=texture,
    )


def _mean_vector(vectors: Sequence[Sequence[float]]) -> tuple[float, ...]:
    length = len(vectors[0])
    usable = [v for v in vectors if len(v) == length]
    return as_vector(np.mean(np.asarray(usable, dtype=np.float64), axis=0))


def _majority_bits(bitstrings: Sequence[str]) -> str:
    reference = bitstrings[0]
    usable = [b for b in bitstrings if len(b) == len(reference)]
    out = []
    for index, first_bit in enumerate(reference):
        ones = sum(1 for bits in usable if bits[index] == "1")
        zeros = len(usable) - ones
        if ones == zeros:
            out.append(first_bit)
        else:
            out.append("1" if ones > zeros else "0")
    return "".join(out)
