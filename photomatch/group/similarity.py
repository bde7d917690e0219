"""Similarity scoring between image signatures."""

from __future__ import annotations

from typing import Dict, Mapping, Sequence

import numpy as np

from ..config import DEFAULT_WEIGHTS
from ..features.perceptual import hash_similarity
from ..io.models import Signature

WEIGHTS: Dict[str, float] = dict(DEFAULT_WEIGHTS)

VARIANCE_SCALE: float = 15000.0
CONTRAST_SCALE: float = 255.0


def cosine_similarity(a: Sequence[float] | None, b: Sequence[float] | None) -> float:
    """Return the cosine similarity of two equal-length vectors, 0.0 for zero norms."""
    if a is None or b is None or len(a) != len(b) or len(a) == 0:
        return 0.0
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    norm_a = float(np.sqrt(np.dot(va, va)))
    norm_b = float(np.sqrt(np.dot(vb, vb)))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    score = float(np.dot(va, vb)) / (norm_a * norm_b)
    return float(max(0.0, min(1.0, score)))


def _bounded_difference(a: float, b: float, scale: float = 1.0) -> float:
    return max(0.0, 1.0 - min(1.0, abs(a - b) / scale))


def component_similarities(sig_a: Signature, sig_b: Signature) -> Dict[str, float]:
    """Return the seven per-feature similarities between *sig_a* and *sig_b*."""
    hist_a = sig_a.color_histogram
    hist_b = sig_b.color_histogram
    color = float(
        np.mean(
            [cosine_similarity(ca, cb) for ca, cb in zip(hist_a.channels(), hist_b.channels())]
        )
    )
    texture = (
        _bounded_difference(sig_a.texture.variance, sig_b.texture.variance, VARIANCE_SCALE)
        + _bounded_difference(sig_a.texture.contrast, sig_b.texture.contrast, CONTRAST_SCALE)
    ) / 2.0

    return {
        "simple_hash": hash_similarity(sig_a.hashes.simple, sig_b.hashes.simple),
        "enhanced_hash": hash_similarity(sig_a.hashes.enhanced, sig_b.hashes.enhanced),
        "dct_hash": hash_similarity(sig_a.hashes.dct, sig_b.hashes.dct),
        "color": color,
        "edges": _bounded_difference(sig_a.edge_density.density, sig_b.edge_density.density),
        "brightness": cosine_similarity(sig_a.brightness_profile, sig_b.brightness_profile),
        "texture": texture,
    }


def combine_components(
    components: Mapping[str, float], weights: Mapping[str, float] | None = None
) -> float:
    """Return the weighted sum of *components* clamped to [0, 1]."""
    score = 0.0
    for key, weight in (weights or WEIGHTS).items():
        score += weight * float(components.get(key, 0.0))
    return float(max(0.0, min(1.0, score)))


def score(
    sig_a: Signature | None,
    sig_b: Signature | None,
    weights: Mapping[str, float] | None = None,
) -> float:
    """Return the weighted similarity between two signatures, 0.0 if either is missing."""
    if sig_a is None or sig_b is None:
        return 0.0
    return combine_components(component_similarities(sig_a, sig_b), weights)
