"""Configuration for the photomatch engine."""

from __future__ import annotations

import math
import os
from dataclasses import dataclass, field, fields
from types import MappingProxyType
from typing import Dict, Mapping

from .crawl.fetch import RetryPolicy

# Empirical constants, tunable pending calibration against a labelled set.
DEFAULT_WEIGHTS: Dict[str, float] = {
    "simple_hash": 0.20,
    "enhanced_hash": 0.20,
    "dct_hash": 0.15,
    "color": 0.20,
    "edges": 0.10,
    "brightness": 0.10,
    "texture": 0.05,
}
MATCH_FLOOR: float = 0.70

_ENV_PREFIX = "PHOTOMATCH_"


@dataclass(frozen=True)
class Settings:
    """Engine-wide settings; every field may be overridden from the environment."""

    # Acquisition
    request_timeout: float = 25.0
    max_retries: int = 2
    backoff_base: float = 1.0
    backoff_multiplier: float = 2.0

    # Normalization
    canonical_size: int = 512
    jpeg_quality: int = 85

    # Matching
    match_floor: float = MATCH_FLOOR
    default_top_n: int = 3
    search_top_n: int = 10
    weights: Mapping[str, float] = field(default_factory=lambda: dict(DEFAULT_WEIGHTS))

    # Signature cache; None keeps every entry for the life of the process
    cache_size: int | None = 4096

    def __post_init__(self) -> None:
        # Read-only copy so a frozen instance cannot be changed through its weights.
        object.__setattr__(self, "weights", MappingProxyType(dict(self.weights)))

    def __hash__(self) -> int:
        values = []
        for item in fields(self):
            value = getattr(self, item.name)
            if isinstance(value, Mapping):
                value = tuple(sorted(value.items()))
            values.append(value)
        return hash(tuple(values))

    @property
    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_retries=self.max_retries,
            base_delay=self.backoff_base,
            multiplier=self.backoff_multiplier,
        )

    def validate(self) -> None:
        """Validate configuration parameters.

        Raises:
            ValueError: If any parameter is invalid.
        """
        if self.request_timeout <= 0:
            msg = f"request_timeout must be positive, got {self.request_timeout}"
            raise ValueError(msg)
        if self.max_retries < 0:
            msg = f"max_retries must be >= 0, got {self.max_retries}"
            raise ValueError(msg)
        if self.backoff_base < 0 or self.backoff_multiplier < 1.0:
            msg = (
                "backoff must have base >= 0 and multiplier >= 1, got "
                f"{self.backoff_base} / {self.backoff_multiplier}"
            )
            raise ValueError(msg)
        if self.canonical_size <= 0:
            msg = f"canonical_size must be positive, got {self.canonical_size}"
            raise ValueError(msg)
        if not 1 <= self.jpeg_quality <= 95:
            msg = f"jpeg_quality must be in [1,95], got {self.jpeg_quality}"
            raise ValueError(msg)
        if not 0.0 <= self.match_floor <= 1.0:
            msg = f"match_floor must be in [0,1], got {self.match_floor}"
            raise ValueError(msg)
        if self.default_top_n <= 0 or self.search_top_n <= 0:
            msg = "top-N limits must be positive"
            raise ValueError(msg)
        if self.cache_size is not None and self.cache_size <= 0:
            msg = f"cache_size must be positive or None, got {self.cache_size}"
            raise ValueError(msg)
        missing = set(DEFAULT_WEIGHTS) - set(self.weights)
        if missing:
            msg = f"weights missing components: {sorted(missing)}"
            raise ValueError(msg)
        if any(value < 0 for value in self.weights.values()):
            msg = "weights must be non-negative"
            raise ValueError(msg)
        total = math.fsum(self.weights.values())
        if not math.isclose(total, 1.0, abs_tol=1e-9):
            msg = f"weights must sum to 1.0, got {total}"
            raise ValueError(msg)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        """Build settings from ``PHOTOMATCH_*`` environment variables."""
        env = os.environ if environ is None else environ
        defaults = cls()

        def _get(name: str, cast, default):
            raw = env.get(_ENV_PREFIX + name)
            if raw is None or raw.strip() == "":
                return default
            return cast(raw)

        weights = dict(defaults.weights)
        for key in weights:
            weights[key] = _get(f"WEIGHT_{key.upper()}", float, weights[key])

        cache_raw = env.get(_ENV_PREFIX + "CACHE_SIZE")
        cache_size = defaults.cache_size
        if cache_raw is not None and cache_raw.strip():
            cache_size = None if cache_raw.strip().lower() in {"none", "unbounded"} else int(cache_raw)

        settings = cls(
            request_timeout=_get("REQUEST_TIMEOUT", float, defaults.request_timeout),
            max_retries=_get("MAX_RETRIES", int, defaults.max_retries),
            backoff_base=_get("BACKOFF_BASE", float, defaults.backoff_base),
            backoff_multiplier=_get("BACKOFF_MULTIPLIER", float, defaults.backoff_multiplier),
            canonical_size=_get("CANONICAL_SIZE", int, defaults.canonical_size),
            jpeg_quality=_get("JPEG_QUALITY", int, defaults.jpeg_quality),
            match_floor=_get("MATCH_FLOOR", float, defaults.match_floor),
            default_top_n=_get("DEFAULT_TOP_N", int, defaults.default_top_n),
            search_top_n=_get("SEARCH_TOP_N", int, defaults.search_top_n),
            weights=weights,
            cache_size=cache_size,
        )
        settings.validate()
        return settings
