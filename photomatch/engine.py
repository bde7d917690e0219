"""High-level operations tying acquisition, signatures, and matching together."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from functools import partial
from typing import NamedTuple, Sequence

from .config import Settings
from .crawl.fetch import ImageFetcher
from .errors import AcquisitionError, DecodeError
from .extract.normalize import normalize_photo
from .features.cache import LRUSignatureCache
from .features.signature import SignatureBuilder, average_signature
from .group.matcher import Matcher
from .group.similarity import score as weighted_score
from .io.models import (
    AcquisitionStats,
    IngestReport,
    MatchResult,
    ProfileRecord,
    Signature,
)
from .io.repository import SignatureRepository

logger = logging.getLogger(__name__)


class PhotoMatchEngine:
    """Public surface of the retrieval engine.

    Ingestion never aborts on a single image: failures are logged, counted in
    the returned report, and skipped.
    """

    def __init__(
        self,
        repository: SignatureRepository,
        settings: Settings | None = None,
        fetcher: ImageFetcher | None = None,
        builder: SignatureBuilder | None = None,
    ) -> None:
        self.settings = settings or Settings()
        self.settings.validate()
        self.repository = repository
        self.fetcher = fetcher or ImageFetcher(
            policy=self.settings.retry_policy, timeout=self.settings.request_timeout
        )
        self.builder = builder or SignatureBuilder(LRUSignatureCache(self.settings.cache_size))
        self.matcher = Matcher(repository, scorer=self.score, floor=self.settings.match_floor)

    def acquire(self, url: str, deadline: float | None = None) -> bytes:
        """Fetch *url* and return its canonical normalized bytes.

        Raises:
            AcquisitionError: If every fetch attempt failed.
            DecodeError: If the payload is not a usable image.
        """
        raw = self.fetcher.fetch(url, deadline=deadline)
        return self._normalize(raw)

    def acquire_and_sign(self, url: str, deadline: float | None = None) -> Signature | None:
        return self.builder.build(self.acquire(url, deadline=deadline))

    def sign_upload(self, raw_bytes: bytes) -> Signature | None:
        """Normalize an uploaded photo and return its signature."""
        return self.builder.build(self._normalize(raw_bytes))

    def score(self, sig_a: Signature | None, sig_b: Signature | None) -> float:
        return weighted_score(sig_a, sig_b, self.settings.weights)

    def find_best_matches(self, signature: Signature | None, top_n: int | None = None) -> MatchResult:
        limit = self.settings.default_top_n if top_n is None else top_n
        return self.matcher.find_best_matches(signature, limit)

    def search_by_image(self, raw_bytes: bytes, top_n: int | None = None) -> MatchResult:
        """Return the corpus images most similar to an uploaded photo."""
        signature = self.sign_upload(raw_bytes)
        if signature is None:
            logger.warning("Failed to generate a signature for the uploaded image")
            return MatchResult()
        limit = self.settings.search_top_n if top_n is None else top_n
        return self.matcher.find_best_matches(signature, limit)

    def ingest_profile(
        self, record: ProfileRecord, max_workers: int = 1, deadline: float | None = None
    ) -> IngestReport:
        """Create or extend a profile and sign each of its image URLs.

        *deadline* bounds each image download, retries included, in seconds.
        """
        profile = self.repository.upsert_profile(
            record.external_id, name=record.name, age=record.age, distance=record.distance
        )
        report = IngestReport(profile=profile)
        urls = list(dict.fromkeys(record.image_urls))
        logger.info("Processing %s with %d images", record.name or record.external_id, len(urls))

        if max_workers > 1 and len(urls) > 1:
            with ThreadPoolExecutor(max_workers=max_workers) as pool:
                outcomes = list(pool.map(partial(self._sign_url, deadline=deadline), urls))
        else:
            outcomes = [self._sign_url(url, deadline=deadline) for url in urls]

        for url, outcome in zip(urls, outcomes):
            if outcome.acquired:
                report.stats.record_success(outcome.attempts)
            else:
                report.stats.record_failure(outcome.attempts)
            if outcome.signature is None:
                report.skipped += 1
                report.errors.append(f"{url}: {outcome.error or 'signature generation failed'}")
                continue
            self.repository.add_image(profile.external_id, url, outcome.signature)
            report.signed += 1

        report.profile = self.repository.get_profile(profile.external_id) or profile
        logger.info(
            "%s: %d signed, %d skipped",
            record.name or record.external_id,
            report.signed,
            report.skipped,
        )
        return report

    def ingest_profiles(
        self,
        records: Sequence[ProfileRecord],
        max_workers: int = 1,
        deadline: float | None = None,
    ) -> tuple[list[IngestReport], AcquisitionStats]:
        totals = AcquisitionStats()
        reports = []
        for record in records:
            report = self.ingest_profile(record, max_workers=max_workers, deadline=deadline)
            totals.merge(report.stats)
            reports.append(report)
        return reports, totals

    def profile_signature(self, external_id: str) -> Signature | None:
        """Return the averaged signature across a profile's signed images."""
        signatures = [
            image.signature
            for image in self.repository.images_for(external_id)
            if image.signature is not None
        ]
        return average_signature(signatures)

    def _normalize(self, raw_bytes: bytes) -> bytes:
        return normalize_photo(
            raw_bytes, size=self.settings.canonical_size, quality=self.settings.jpeg_quality
        )

    def _sign_url(self, url: str, deadline: float | None = None) -> _Outcome:
        try:
            raw, attempts = self.fetcher.fetch_counted(url, deadline=deadline)
        except AcquisitionError as exc:
            logger.warning("Image download failed: %s", exc)
            return _Outcome(None, False, exc.attempts, exc)
        try:
            normalized = self._normalize(raw)
        except DecodeError as exc:
            logger.warning("Image preprocessing failed for %s: %s", url[:80], exc)
            return _Outcome(None, False, attempts, exc)
        return _Outcome(self.builder.build(normalized), True, attempts, None)


class _Outcome(NamedTuple):
    signature: Signature | None
    acquired: bool
    attempts: int
    error: Exception | None
