"""End-to-end tests for the engine facade."""

import pytest

from conftest import encode
from photomatch.config import Settings
from photomatch.engine import PhotoMatchEngine
from photomatch.errors import AcquisitionError, DecodeError
from photomatch.io.models import ConfidenceLevel, ProfileRecord
from photomatch.io.repository import InMemoryRepository


class StubFetcher:
    """Serves canned bytes per URL; unknown URLs fail like an unreachable host."""

    def __init__(self, payloads):
        self.payloads = payloads
        self.requested = []
        self.deadlines = []

    def fetch_counted(self, url, deadline=None):
        self.requested.append(url)
        self.deadlines.append(deadline)
        payload = self.payloads.get(url)
        if payload is None:
            raise AcquisitionError(url, 3, ConnectionError("unreachable"))
        return payload, 1

    def fetch(self, url, deadline=None):
        return self.fetch_counted(url, deadline)[0]


@pytest.fixture
def payloads(warm_scene, cool_scene):
    return {
        "https://cdn.example/warm.jpg": encode(warm_scene, quality=95),
        "https://cdn.example/cool.jpg": encode(cool_scene, quality=95),
        "https://cdn.example/broken.jpg": b"\x89PNG" + b"\x00" * 400,
    }


@pytest.fixture
def engine(payloads):
    return PhotoMatchEngine(InMemoryRepository(), fetcher=StubFetcher(payloads))


class TestEndToEnd:

    def test_same_photo_reencoded_scores_high(self, engine, warm_scene):
        a = engine.sign_upload(encode(warm_scene, quality=95))
        b = engine.sign_upload(encode(warm_scene, quality=60))
        assert engine.score(a, b) >= 0.90

    def test_unrelated_photos_score_low(self, engine, warm_scene, cool_scene):
        a = engine.sign_upload(encode(warm_scene, quality=90))
        b = engine.sign_upload(encode(cool_scene, quality=90))
        assert engine.score(a, b) < 0.70

    def test_identical_bytes_identical_signatures(self, engine, warm_jpeg):
        other = PhotoMatchEngine(InMemoryRepository())
        assert engine.sign_upload(warm_jpeg) == other.sign_upload(warm_jpeg)


class TestAcquire:

    def test_acquire_and_sign(self, engine):
        sig = engine.acquire_and_sign("https://cdn.example/warm.jpg")
        assert sig is not None
        assert len(sig.hashes.enhanced) == 256

    def test_acquire_propagates_typed_errors(self, engine):
        with pytest.raises(AcquisitionError):
            engine.acquire("https://cdn.example/gone.jpg")
        with pytest.raises(DecodeError):
            engine.acquire("https://cdn.example/broken.jpg")


class TestIngest:

    def test_ingest_counts_and_skips_failures(self, engine):
        record = ProfileRecord(
            external_id="p1",
            name="Ana",
            age=30,
            image_urls=[
                "https://cdn.example/warm.jpg",
                "https://cdn.example/gone.jpg",
                "https://cdn.example/broken.jpg",
                "https://cdn.example/cool.jpg",
            ],
        )
        report = engine.ingest_profile(record)
        assert report.signed == 2
        assert report.skipped == 2
        assert report.stats.successful == 2
        assert report.stats.failed == 2
        assert report.stats.total_attempts == 1 + 3 + 1 + 1
        assert len(report.profile.image_ids) == 2
        assert len(report.errors) == 2

    def test_profile_created_once_and_images_not_duplicated(self, engine):
        record = ProfileRecord(external_id="p1", name="Ana", image_urls=["https://cdn.example/warm.jpg"])
        engine.ingest_profile(record)
        engine.ingest_profile(record)
        assert len(engine.repository.profiles()) == 1
        assert len(engine.repository) == 1

    def test_parallel_ingest(self, engine):
        record = ProfileRecord(
            external_id="p2",
            image_urls=["https://cdn.example/warm.jpg", "https://cdn.example/cool.jpg"],
        )
        report = engine.ingest_profile(record, max_workers=2)
        assert report.signed == 2

    def test_ingest_profiles_accumulates_stats(self, engine):
        records = [
            ProfileRecord(external_id="a", image_urls=["https://cdn.example/warm.jpg"]),
            ProfileRecord(external_id="b", image_urls=["https://cdn.example/gone.jpg"]),
        ]
        reports, totals = engine.ingest_profiles(records)
        assert len(reports) == 2
        assert (totals.successful, totals.failed, totals.total_attempts) == (1, 1, 4)
        assert totals.success_rate == pytest.approx(0.5)

    @pytest.mark.parametrize("max_workers", [1, 2])
    def test_deadline_reaches_every_download(self, engine, max_workers):
        records = [
            ProfileRecord(
                external_id="a",
                image_urls=["https://cdn.example/warm.jpg", "https://cdn.example/cool.jpg"],
            ),
            ProfileRecord(external_id="b", image_urls=["https://cdn.example/gone.jpg"]),
        ]
        engine.ingest_profiles(records, max_workers=max_workers, deadline=7.5)
        assert engine.fetcher.deadlines == [7.5, 7.5, 7.5]

    def test_no_deadline_by_default(self, engine):
        engine.ingest_profile(
            ProfileRecord(external_id="a", image_urls=["https://cdn.example/warm.jpg"])
        )
        assert engine.fetcher.deadlines == [None]


class TestSearch:

    def test_search_finds_reencoded_photo(self, engine, warm_scene):
        engine.ingest_profile(
            ProfileRecord(external_id="warm", name="Warm", image_urls=["https://cdn.example/warm.jpg"])
        )
        engine.ingest_profile(
            ProfileRecord(external_id="cool", name="Cool", image_urls=["https://cdn.example/cool.jpg"])
        )
        result = engine.search_by_image(encode(warm_scene, quality=70))
        assert result.best_match is not None
        assert result.best_match.profile.external_id == "warm"
        assert result.confidence_level in (ConfidenceLevel.VERY_HIGH, ConfidenceLevel.HIGH)
        assert [m.profile.external_id for m in result.matches] == ["warm"]

    def test_find_best_matches_null(self, engine):
        result = engine.find_best_matches(None)
        assert result.confidence_level is ConfidenceLevel.NO_MATCH

    def test_search_with_undecodable_upload(self, engine):
        with pytest.raises(DecodeError):
            engine.search_by_image(b"")

    def test_profile_signature(self, engine):
        assert engine.profile_signature("nobody") is None
        engine.ingest_profile(
            ProfileRecord(
                external_id="p",
                image_urls=["https://cdn.example/warm.jpg", "https://cdn.example/cool.jpg"],
            )
        )
        images = engine.repository.images_for("p")
        avg = engine.profile_signature("p")
        assert avg.hashes.simple == images[0].signature.hashes.simple
        expected = (images[0].signature.texture.mean + images[1].signature.texture.mean) / 2
        assert avg.texture.mean == pytest.approx(expected)


class TestSettings:

    def test_engine_rejects_invalid_settings(self):
        with pytest.raises(ValueError):
            PhotoMatchEngine(InMemoryRepository(), settings=Settings(match_floor=1.5))

    def test_custom_floor(self, payloads, warm_scene):
        engine = PhotoMatchEngine(
            InMemoryRepository(),
            settings=Settings(match_floor=0.0),
            fetcher=StubFetcher(payloads),
        )
        engine.ingest_profile(
            ProfileRecord(external_id="cool", image_urls=["https://cdn.example/cool.jpg"])
        )
        result = engine.search_by_image(encode(warm_scene, quality=90))
        assert len(result.matches) == 1
        assert result.confidence_level is ConfidenceLevel.LOW
