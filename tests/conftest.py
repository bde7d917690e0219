"""Shared test fixtures for photomatch tests."""

from io import BytesIO

import cv2
import numpy as np
import pytest
import requests
from PIL import Image

from photomatch.io.models import (
    ColorHistogram,
    EdgeDensity,
    PerceptualHashes,
    Signature,
    TextureMetrics,
)


def encode(array: np.ndarray, fmt: str = "JPEG", **params) -> bytes:
    """Encode an RGB uint8 array with Pillow."""
    buffer = BytesIO()
    Image.fromarray(array).save(buffer, format=fmt, **params)
    return buffer.getvalue()


def _warm_scene() -> np.ndarray:
    """320x240 warm scene, bright towards the top-left, with a disc and a panel."""
    h, w = 240, 320
    y, x = np.mgrid[0:h, 0:w].astype(np.float64)
    t = 1.0 - (x / w + y / h) / 2.0
    img = np.zeros((h, w, 3), dtype=np.float64)
    img[..., 0] = 90 + 150 * t
    img[..., 1] = 40 + 90 * t
    img[..., 2] = 20 + 40 * t
    img = img.clip(0, 255).astype(np.uint8)
    cv2.circle(img, (220, 80), 40, (60, 20, 10), -1)
    img[150:210, 40:120] = (230, 200, 150)
    return img


def _cool_scene() -> np.ndarray:
    """320x240 cool scene, bright towards the bottom-right, with a checker texture."""
    h, w = 240, 320
    y, x = np.mgrid[0:h, 0:w]
    t = (x / w + y / h) / 2.0
    checker = (((x // 8) + (y // 8)) % 2) * 40.0 - 20.0
    img = np.zeros((h, w, 3), dtype=np.float64)
    img[..., 0] = 20 + 40 * t + checker
    img[..., 1] = 60 + 100 * t + checker
    img[..., 2] = 90 + 150 * t + checker
    return img.clip(0, 255).astype(np.uint8)


@pytest.fixture
def warm_scene():
    return _warm_scene()


@pytest.fixture
def cool_scene():
    return _cool_scene()


@pytest.fixture
def warm_jpeg():
    return encode(_warm_scene(), quality=95)


@pytest.fixture
def cool_jpeg():
    return encode(_cool_scene(), quality=95)


@pytest.fixture
def split_image():
    """200x200 image: white top half, black bottom half."""
    img = np.zeros((200, 200, 3), dtype=np.uint8)
    img[:100] = 255
    return Image.fromarray(img)


def make_signature(
    simple: str = "10" * 32,
    enhanced: str = "1100" * 64,
    dct: str = "01" * 32,
    hist=None,
    density: float = 0.2,
    brightness=(120.0, 130.0, 110.0, 100.0),
    variance: float = 2000.0,
    contrast: float = 12.0,
    mean: float = 120.0,
) -> Signature:
    """Build a synthetic signature with sensible defaults."""
    channel = tuple([1.0 / 32] * 32) if hist is None else tuple(hist)
    return Signature(
        hashes=PerceptualHashes(simple=simple, enhanced=enhanced, dct=dct),
        color_histogram=ColorHistogram(
            red=channel,
            green=channel,
            blue=channel,
            combined=tuple(3 * v for v in channel),
        ),
        edge_density=EdgeDensity(density=density, total_edges=int(density * 9604)),
        brightness_profile=tuple(brightness),
        texture=TextureMetrics(variance=variance, contrast=contrast, mean=mean),
    )


class FakeResponse:
    """Response stand-in; ``clock`` and ``chunk_delay`` simulate a slow body transfer."""

    def __init__(
        self,
        status_code=200,
        content=b"",
        content_type="image/jpeg",
        chunks=None,
        clock=None,
        chunk_delay=0.0,
    ):
        self.status_code = status_code
        self.content = content
        self.headers = {"Content-Type": content_type} if content_type else {}
        self.chunks = list(chunks) if chunks is not None else [content]
        self.clock = clock
        self.chunk_delay = chunk_delay
        self.closed = False

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error", response=self)

    def iter_content(self, chunk_size=1):
        for chunk in self.chunks:
            if self.clock is not None:
                self.clock.now += self.chunk_delay
            yield chunk

    def close(self):
        self.closed = True


class FakeSession:
    """Session stand-in replaying scripted responses or exceptions."""

    def __init__(self, *script):
        self.script = list(script)
        self.calls = []

    def get(self, url, timeout=None, allow_redirects=True, stream=False):
        self.calls.append({"url": url, "timeout": timeout, "stream": stream})
        item = self.script.pop(0) if len(self.script) > 1 else self.script[0]
        if isinstance(item, BaseException):
            raise item
        return item


class FakeClock:
    """Monotonic clock advanced only by the recorded sleeps."""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def fake_clock():
    return FakeClock()
