"""Output helpers for persisting the corpus and match results."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import pandas as pd

from .models import (
    ColorHistogram,
    EdgeDensity,
    MatchResult,
    PerceptualHashes,
    Signature,
    TextureMetrics,
    as_vector,
)
from .repository import InMemoryRepository

logger = logging.getLogger(__name__)

_HISTOGRAM_COLUMNS = ("hist_red", "hist_green", "hist_blue", "hist_combined")


def write_corpus(path: Path, repository: InMemoryRepository) -> Path:
    """Write every profile and image in *repository* to a parquet table at *path*."""
    rows: list[dict[str, Any]] = []
    for profile in repository.profiles():
        images = repository.images_for(profile.external_id)
        base = {
            "external_id": profile.external_id,
            "name": profile.name,
            "age": profile.age,
            "distance": profile.distance,
            "created_at": profile.created_at,
        }
        if not images:
            rows.append({**base, **_signature_columns(None), "image_url": None})
            continue
        for image in images:
            rows.append({**base, "image_url": image.url, **_signature_columns(image.signature)})

    df = pd.DataFrame(rows)
    path.parent.mkdir(parents=True, exist_ok=True)
    df.to_parquet(path, index=False, engine="pyarrow")
    logger.info("Wrote %d rows to %s", len(df), path)
    return path


def read_corpus(path: Path) -> InMemoryRepository:
    """Load a parquet table written by :func:`write_corpus` into a repository."""
    repository = InMemoryRepository()
    df = pd.read_parquet(path, engine="pyarrow")
    for row in df.to_dict(orient="records"):
        created_at = row.get("created_at")
        repository.upsert_profile(
            str(row["external_id"]),
            name=_optional_str(row.get("name")),
            age=_optional_int(row.get("age")),
            distance=_optional_int(row.get("distance")),
            created_at=created_at.to_pydatetime() if _present(created_at) else None,
        )
        url = row.get("image_url")
        if not _present(url):
            continue
        repository.add_image(str(row["external_id"]), str(url), _signature_from_row(row))
    logger.info("Loaded %d images from %s", len(repository), path)
    return repository


def write_match_report(path: Path, result: MatchResult) -> Path:
    """Write *result* to *path* as JSON and return the path."""
    payload = {
        "confidence_level": result.confidence_level.value,
        "best_match": _match_payload(result.best_match) if result.best_match else None,
        "matches": [_match_payload(match) for match in result.matches],
    }
    path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
    return path


def _match_payload(match) -> dict[str, Any]:
    return {
        "external_id": match.profile.external_id,
        "name": match.profile.name,
        "age": match.profile.age,
        "distance": match.profile.distance,
        "image_id": match.image.image_id,
        "image_url": match.image.url,
        "similarity": match.similarity,
        "confidence_level": match.confidence_level.value,
    }


def _signature_columns(signature: Signature | None) -> dict[str, Any]:
    if signature is None:
        return {
            "simple_hash": None,
            "enhanced_hash": None,
            "dct_hash": None,
            **{column: None for column in _HISTOGRAM_COLUMNS},
            "edge_density": None,
            "total_edges": None,
            "brightness_profile": None,
            "texture_variance": None,
            "texture_contrast": None,
            "texture_mean": None,
        }
    histogram = signature.color_histogram
    return {
        "simple_hash": signature.hashes.simple,
        "enhanced_hash": signature.hashes.enhanced,
        "dct_hash": signature.hashes.dct,
        "hist_red": list(histogram.red),
        "hist_green": list(histogram.green),
        "hist_blue": list(histogram.blue),
        "hist_combined": list(histogram.combined),
        "edge_density": signature.edge_density.density,
        "total_edges": signature.edge_density.total_edges,
        "brightness_profile": list(signature.brightness_profile),
        "texture_variance": signature.texture.variance,
        "texture_contrast": signature.texture.contrast,
        "texture_mean": signature.texture.mean,
    }


def _signature_from_row(row: dict[str, Any]) -> Signature | None:
    if not _present(row.get("simple_hash")):
        return None
    red, green, blue, combined = (as_vector(row[column]) for column in _HISTOGRAM_COLUMNS)
    return Signature(
        hashes=PerceptualHashes(
            simple=str(row["simple_hash"]),
            enhanced=str(row["enhanced_hash"]),
            dct=str(row["dct_hash"]),
        ),
        color_histogram=ColorHistogram(red=red, green=green, blue=blue, combined=combined),
        edge_density=EdgeDensity(
            density=float(row["edge_density"]), total_edges=int(row["total_edges"])
        ),
        brightness_profile=as_vector(row["brightness_profile"]),
        texture=TextureMetrics(
            variance=float(row["texture_variance"]),
            contrast=float(row["texture_contrast"]),
            mean=float(row["texture_mean"]),
        ),
    )


def _present(value: Any) -> bool:
    if value is None:
        return False
    try:
        return not bool(pd.isna(value))
    except (TypeError, ValueError):
        # Array-valued cells are never missing.
        return True


def _optional_str(value: Any) -> str | None:
    return str(value) if _present(value) else None


def _optional_int(value: Any) -> int | None:
    return int(value) if _present(value) else None
