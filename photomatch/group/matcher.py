"""Linear-scan retrieval of the stored images most similar to a query."""

from __future__ import annotations

import logging
from typing import Callable, Sequence, Tuple

from ..config import MATCH_FLOOR
from ..io.models import ConfidenceLevel, Match, MatchResult, Signature
from ..io.repository import SignatureRepository
from .similarity import score as default_score

logger = logging.getLogger(__name__)

Scorer = Callable[[Signature, Signature], float]

CONFIDENCE_THRESHOLDS: Tuple[Tuple[float, ConfidenceLevel], ...] = (
    (0.95, ConfidenceLevel.VERY_HIGH),
    (0.90, ConfidenceLevel.HIGH),
    (0.85, ConfidenceLevel.MEDIUM),
)


def confidence_level(
    similarity: float,
    thresholds: Sequence[Tuple[float, ConfidenceLevel]] = CONFIDENCE_THRESHOLDS,
) -> ConfidenceLevel:
    """Return the confidence bucket for a similarity that already cleared the floor."""
    for threshold, level in thresholds:
        if similarity >= threshold:
            return level
    return ConfidenceLevel.LOW


class Matcher:
    """Score a query against every stored signature and rank the survivors."""

    def __init__(
        self,
        repository: SignatureRepository,
        scorer: Scorer | None = None,
        floor: float = MATCH_FLOOR,
    ) -> None:
        self.repository = repository
        self.scorer = scorer or default_score
        self.floor = floor

    def find_best_matches(self, query: Signature | None, top_n: int = 3) -> MatchResult:
        """Return at most *top_n* matches scoring at or above the floor, best first."""
        if query is None:
            return MatchResult()

        entries = self.repository.list_all_signatures()
        logger.debug("Scanning %d stored images", len(entries))

        matches: list[Match] = []
        for entry in entries:
            if entry.signature is None:
                continue
            similarity = self.scorer(query, entry.signature)
            if similarity < self.floor:
                continue
            matches.append(
                Match(
                    profile=entry.profile,
                    image=entry.image,
                    similarity=similarity,
                    confidence_level=confidence_level(similarity),
                )
            )

        # sorted() is stable, so equal scores keep scan order.
        matches = sorted(matches, key=lambda match: match.similarity, reverse=True)
        best = matches[0] if matches else None

        logger.info("Found %d potential matches", len(matches))
        if best is not None:
            logger.info(
                "Best match: %s (%.1f%% - %s)",
                best.profile.name or best.profile.external_id,
                best.similarity * 100.0,
                best.confidence_level.value,
            )

        return MatchResult(
            matches=matches[: max(0, top_n)],
            best_match=best,
            confidence_level=best.confidence_level if best else ConfidenceLevel.NO_MATCH,
        )
