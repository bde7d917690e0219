"""Tests for the individual feature extractors."""

import numpy as np
import pytest
from PIL import Image

from photomatch.features.color import rgb_histogram
from photomatch.features.perceptual import (
    average_hash_bits,
    block_hash_bits,
    compute_hashes,
    hamming_distance,
    hash_similarity,
)
from photomatch.features.shape import edge_density
from photomatch.features.texture import brightness_profile, texture_metrics


def _solid(value, size=(120, 90)):
    return Image.new("RGB", size, (value, value, value))


class TestHashes:
    """Tests for the bitstring hashes."""

    @pytest.mark.parametrize("size", [(37, 23), (512, 512), (800, 600)])
    def test_lengths_fixed_regardless_of_size(self, size, warm_scene):
        img = Image.fromarray(warm_scene).resize(size)
        hashes = compute_hashes(img)
        assert len(hashes.simple) == 64
        assert len(hashes.enhanced) == 256
        assert len(hashes.dct) == 64
        assert set(hashes.simple + hashes.enhanced + hashes.dct) <= {"0", "1"}

    def test_average_hash_marks_bright_cells(self, split_image):
        assert average_hash_bits(split_image, 8) == "1" * 32 + "0" * 32

    def test_block_hash_marks_bright_blocks(self, split_image):
        assert block_hash_bits(split_image) == "1" * 32 + "0" * 32

    def test_uniform_image_has_no_bits_set(self):
        hashes = compute_hashes(_solid(128))
        assert hashes.simple == "0" * 64
        assert hashes.dct == "0" * 64

    def test_rejects_non_images(self):
        with pytest.raises(TypeError):
            block_hash_bits(np.zeros((8, 8)))


class TestHashSimilarity:

    def test_fraction_of_matching_bits(self):
        assert hash_similarity("1100", "1010") == 0.5
        assert hash_similarity("1111", "1111") == 1.0

    def test_length_mismatch_scores_zero(self):
        assert hash_similarity("1100", "11") == 0.0

    def test_missing_hash_scores_zero(self):
        assert hash_similarity(None, "1010") == 0.0
        assert hash_similarity("", "") == 0.0

    def test_hamming_distance_requires_equal_lengths(self):
        assert hamming_distance("1010", "0101") == 4
        with pytest.raises(ValueError):
            hamming_distance("1", "10")


class TestColorHistogram:

    def test_channels_have_32_bins_summing_to_one(self, warm_scene):
        hist = rgb_histogram(Image.fromarray(warm_scene))
        for channel in (hist.red, hist.green, hist.blue):
            assert len(channel) == 32
            assert sum(channel) == pytest.approx(1.0)
            assert min(channel) >= 0.0

    def test_combined_sums_channel_counts(self, warm_scene):
        hist = rgb_histogram(Image.fromarray(warm_scene))
        assert len(hist.combined) == 32
        assert sum(hist.combined) == pytest.approx(3.0)
        for index in range(32):
            expected = hist.red[index] + hist.green[index] + hist.blue[index]
            assert hist.combined[index] == pytest.approx(expected)

    def test_solid_color_fills_single_bin(self):
        hist = rgb_histogram(Image.new("RGB", (50, 50), (255, 0, 100)))
        assert hist.red[31] == pytest.approx(1.0)
        assert hist.green[0] == pytest.approx(1.0)
        assert hist.blue[100 // 8] == pytest.approx(1.0)

    def test_rejects_bad_bin_count(self, warm_scene):
        with pytest.raises(ValueError):
            rgb_histogram(Image.fromarray(warm_scene), bins=30)


class TestEdgeDensity:

    def test_flat_image_has_no_edges(self):
        result = edge_density(_solid(90))
        assert result.density == 0.0
        assert result.total_edges == 0

    def test_checkerboard_has_edges(self):
        img = np.zeros((200, 200), dtype=np.uint8)
        for y in range(0, 200, 20):
            for x in range(0, 200, 20):
                if (x // 20 + y // 20) % 2 == 0:
                    img[y:y + 20, x:x + 20] = 255
        result = edge_density(Image.fromarray(img).convert("RGB"))
        assert 0.0 < result.density <= 1.0
        assert result.total_edges == round(result.density * 98 * 98)


class TestBrightnessProfile:

    def test_quadrant_order(self):
        img = np.zeros((200, 200), dtype=np.uint8)
        img[:, :100] = 240
        profile = brightness_profile(Image.fromarray(img).convert("RGB"))
        assert len(profile) == 4
        top_left, top_right, bottom_left, bottom_right = profile
        assert top_left > 200 and bottom_left > 200
        assert top_right < 40 and bottom_right < 40

    def test_uniform_image(self):
        profile = brightness_profile(_solid(77))
        assert profile == pytest.approx((77.0, 77.0, 77.0, 77.0))


class TestTextureMetrics:

    def test_flat_image(self):
        metrics = texture_metrics(_solid(200))
        assert metrics.variance == pytest.approx(0.0)
        assert metrics.contrast == pytest.approx(0.0)
        assert metrics.mean == pytest.approx(200.0)

    def test_noise_has_texture(self):
        rng = np.random.RandomState(42)
        noise = rng.randint(0, 255, (128, 128, 3), dtype=np.uint8)
        metrics = texture_metrics(Image.fromarray(noise))
        assert metrics.variance > 0
        assert metrics.contrast > 0
        assert 0.0 <= metrics.mean <= 255.0
