"""Data models shared across the photomatch pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, List, Mapping, Sequence, Tuple

FloatVector = Tuple[float, ...]


class ConfidenceLevel(str, Enum):
    """Discrete confidence bucket derived from a similarity score."""

    VERY_HIGH = "very-high"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    NO_MATCH = "no-match"


@dataclass(frozen=True, slots=True)
class PerceptualHashes:
    """Bitstring hashes: 8x8 and 16x16 average hashes plus the block hash."""

    simple: str
    enhanced: str
    dct: str


@dataclass(frozen=True, slots=True)
class ColorHistogram:
    """Per-channel 32-bin histograms normalised by pixel count."""

    red: FloatVector
    green: FloatVector
    blue: FloatVector
    combined: FloatVector

    def channels(self) -> tuple[FloatVector, FloatVector, FloatVector, FloatVector]:
        return (self.red, self.green, self.blue, self.combined)


@dataclass(frozen=True, slots=True)
class EdgeDensity:
    density: float
    total_edges: int


@dataclass(frozen=True, slots=True)
class TextureMetrics:
    variance: float
    contrast: float
    mean: float


@dataclass(frozen=True, slots=True)
class Signature:
    """Multi-feature perceptual fingerprint of a single normalized image."""

    hashes: PerceptualHashes
    color_histogram: ColorHistogram
    edge_density: EdgeDensity
    brightness_profile: FloatVector
    texture: TextureMetrics

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON-compatible interchange form of the signature."""
        return {
            "hashes": {
                "simpleHash": self.hashes.simple,
                "enhancedHash": self.hashes.enhanced,
                "dctHash": self.hashes.dct,
            },
            "colorHistogram": {
                "red": list(self.color_histogram.red),
                "green": list(self.color_histogram.green),
                "blue": list(self.color_histogram.blue),
                "combined": list(self.color_histogram.combined),
            },
            "edgeDensity": {
                "density": self.edge_density.density,
                "totalEdges": self.edge_density.total_edges,
            },
            "brightnessProfile": list(self.brightness_profile),
            "textureMetrics": {
                "variance": self.texture.variance,
                "contrast": self.texture.contrast,
                "mean": self.texture.mean,
            },
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Signature":
        """Rebuild a signature from :meth:`to_dict` output."""
        hashes = payload["hashes"]
        histogram = payload["colorHistogram"]
        edges = payload["edgeDensity"]
        texture = payload["textureMetrics"]
        return cls(
            hashes=PerceptualHashes(
                simple=str(hashes["simpleHash"]),
                enhanced=str(hashes["enhancedHash"]),
                dct=str(hashes["dctHash"]),
            ),
            color_histogram=ColorHistogram(
                red=as_vector(histogram["red"]),
                green=as_vector(histogram["green"]),
                blue=as_vector(histogram["blue"]),
                combined=as_vector(histogram["combined"]),
            ),
            edge_density=EdgeDensity(
                density=float(edges["density"]),
                total_edges=int(edges["totalEdges"]),
            ),
            brightness_profile=as_vector(payload["brightnessProfile"]),
            texture=TextureMetrics(
                variance=float(texture["variance"]),
                contrast=float(texture["contrast"]),
                mean=float(texture["mean"]),
            ),
        )


def as_vector(values: Sequence[float]) -> FloatVector:
    """Return *values* as an immutable tuple of Python floats."""
    return tuple(float(value) for value in values)


@dataclass(frozen=True, slots=True)
class ProfileImage:
    """A photo owned by a profile, holding at most one signature."""

    image_id: str
    profile_id: str
    url: str
    signature: Signature | None = None


@dataclass(slots=True)
class Profile:
    """A scraped profile keyed by its stable feed identifier."""

    external_id: str
    name: str | None = None
    age: int | None = None
    distance: int | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    image_ids: List[str] = field(default_factory=list)


@dataclass(slots=True)
class ProfileRecord:
    """Feed-shaped profile data handed to ingestion."""

    external_id: str
    name: str | None = None
    age: int | None = None
    distance: int | None = None
    image_urls: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "ProfileRecord":
        external_id = (
            payload.get("external_id") or payload.get("id") or payload.get("tinderId")
        )
        if not external_id:
            raise ValueError("Profile records require an 'external_id'")
        urls = payload.get("image_urls") or payload.get("imageUrls") or []
        return cls(
            external_id=str(external_id),
            name=payload.get("name"),
            age=_optional_int(payload.get("age")),
            distance=_optional_int(payload.get("distance", payload.get("distance_mi"))),
            image_urls=[str(url) for url in urls if url],
        )


@dataclass(frozen=True, slots=True)
class Match:
    """Query-scoped match between a query signature and a stored image."""

    profile: Profile
    image: ProfileImage
    similarity: float
    confidence_level: ConfidenceLevel


@dataclass(slots=True)
class MatchResult:
    matches: List[Match] = field(default_factory=list)
    best_match: Match | None = None
    confidence_level: ConfidenceLevel = ConfidenceLevel.NO_MATCH


@dataclass(slots=True)
class AcquisitionStats:
    """Download counters accumulated by the caller of the acquisition pipeline."""

    successful: int = 0
    failed: int = 0
    total_attempts: int = 0

    def record_success(self, attempts: int = 1) -> None:
        self.successful += 1
        self.total_attempts += attempts

    def record_failure(self, attempts: int) -> None:
        self.failed += 1
        self.total_attempts += attempts

    def merge(self, other: "AcquisitionStats") -> None:
        self.successful += other.successful
        self.failed += other.failed
        self.total_attempts += other.total_attempts

    @property
    def success_rate(self) -> float:
        total = self.successful + self.failed
        return (self.successful / total) if total else 0.0


@dataclass(slots=True)
class IngestReport:
    """Outcome of ingesting one profile record."""

    profile: Profile
    stats: AcquisitionStats = field(default_factory=AcquisitionStats)
    signed: int = 0
    skipped: int = 0
    errors: List[str] = field(default_factory=list)


def _optional_int(value: Any) -> int | None:
    if value is None or value == "":
        return None
    # Feed distances arrive as fractional miles; whole units are stored.
    return int(float(value))
