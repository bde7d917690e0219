"""Exception types raised by the photomatch pipeline."""

from __future__ import annotations

import requests


class PhotoMatchError(Exception):
    """Base class for recoverable, per-image pipeline failures."""


class InvalidContentTypeError(PhotoMatchError):
    """Raised when a fetched response does not declare an image content type."""

    def __init__(self, content_type: str | None) -> None:
        super().__init__(f"Invalid content type: {content_type or 'unknown'}")
        self.content_type = content_type


class AcquisitionError(PhotoMatchError):
    """Raised once every fetch attempt for a URL has failed."""

    def __init__(self, url: str, attempts: int, cause: BaseException | None) -> None:
        super().__init__(f"Failed to acquire {url} after {attempts} attempt(s): {cause}")
        self.url = url
        self.attempts = attempts
        self.cause = cause

    @property
    def timed_out(self) -> bool:
        """Return ``True`` when the last failure was a timeout."""
        return isinstance(self.cause, (TimeoutError, requests.Timeout))


class DecodeError(PhotoMatchError):
    """Raised for empty, truncated, or otherwise undecodable image payloads."""


class SignatureComputationError(PhotoMatchError):
    """Raised when a feature extractor fails on a decoded image."""

    def __init__(self, extractor: str, cause: BaseException) -> None:
        super().__init__(f"{extractor} failed: {cause}")
        self.extractor = extractor
        self.cause = cause
