"""HTTP image fetching with bounded retry for the photomatch pipeline."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from threading import Lock
from typing import Callable

import requests
from requests import Session
from tenacity import (  # type: ignore[import-untyped]
    RetryCallState,
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    stop_any,
    wait_exponential,
)

from ..errors import AcquisitionError, InvalidContentTypeError

logger = logging.getLogger(__name__)

_DEFAULT_TIMEOUT = 25.0
_CHUNK_SIZE = 64 * 1024
_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/125.0.0.0 Safari/537.36"
)

_session_lock = Lock()
_session: Session | None = None


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Retry budget: ``max_retries`` beyond the first attempt, exponential waits."""

    max_retries: int = 2
    base_delay: float = 1.0
    multiplier: float = 2.0
    max_delay: float = 60.0

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def delay_after(self, attempt_number: int) -> float:
        """Return the wait that follows the failed *attempt_number* (1-based)."""
        delay = self.base_delay * (self.multiplier ** (attempt_number - 1))
        return min(delay, self.max_delay)

    def wait_strategy(self) -> wait_exponential:
        return wait_exponential(
            multiplier=self.base_delay, exp_base=self.multiplier, max=self.max_delay
        )


def _get_session() -> Session:
    """Return a shared requests session configured with image-fetch headers."""
    global _session
    if _session is None:
        with _session_lock:
            if _session is None:
                session = requests.Session()
                session.headers.update(
                    {
                        "User-Agent": _USER_AGENT,
                        "Accept": "image/webp,image/apng,image/*,*/*;q=0.8",
                        "Accept-Encoding": "gzip, deflate",
                        "Cache-Control": "no-cache",
                    }
                )
                _session = session
    return _session


class ImageFetcher:
    """Download raw image bytes, retrying transient failures per a :class:`RetryPolicy`."""

    def __init__(
        self,
        policy: RetryPolicy | None = None,
        timeout: float = _DEFAULT_TIMEOUT,
        session: Session | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.policy = policy or RetryPolicy()
        self.timeout = timeout
        self._session = session
        self._sleep = sleep
        self._clock = clock

    def fetch(self, url: str, deadline: float | None = None) -> bytes:
        """Return the body of *url*, raising :class:`AcquisitionError` on final failure.

        *deadline* bounds the whole call (requests and backoff sleeps) in seconds.
        """
        data, _ = self.fetch_counted(url, deadline=deadline)
        return data

    def fetch_counted(self, url: str, deadline: float | None = None) -> tuple[bytes, int]:
        """Like :meth:`fetch` but also return the number of attempts used."""
        started = self._clock()
        attempts = 0

        def _attempt() -> bytes:
            nonlocal attempts
            attempts += 1
            logger.debug("Fetching %s (attempt %d)", url[:80], attempts)
            timeout = self._request_timeout(started, deadline)
            return self._fetch_once(url, timeout, started, deadline)

        retryer = Retrying(
            stop=self._stop_condition(started, deadline),
            wait=self.policy.wait_strategy(),
            retry=retry_if_exception_type(
                (requests.RequestException, InvalidContentTypeError, TimeoutError)
            ),
            before_sleep=before_sleep_log(logger, logging.INFO),
            sleep=self._sleep,
            reraise=True,
        )
        try:
            data = retryer(_attempt)
        except (requests.RequestException, InvalidContentTypeError, TimeoutError) as exc:
            logger.warning("Giving up on %s after %d attempt(s): %s", url[:80], attempts, exc)
            cause: BaseException = exc
            if deadline is not None and attempts < self.policy.max_attempts:
                cause = TimeoutError(f"deadline of {deadline:.1f}s exceeded: {exc}")
            raise AcquisitionError(url, attempts, cause) from exc
        logger.debug("Fetched %s (%.2f KB)", url[:80], len(data) / 1024)
        return data, attempts

    @property
    def session(self) -> Session:
        return self._session or _get_session()

    def _fetch_once(
        self, url: str, timeout: float, started: float, deadline: float | None
    ) -> bytes:
        """Issue a single GET and return the body when it is an image.

        The body is streamed so the deadline also bounds a slow transfer; the
        requests timeout only limits the gap between reads.
        """
        response = self.session.get(url, timeout=timeout, allow_redirects=True, stream=True)
        try:
            response.raise_for_status()
            content_type = response.headers.get("Content-Type")
            if not content_type or not content_type.lower().startswith("image/"):
                raise InvalidContentTypeError(content_type)
            chunks = []
            for chunk in response.iter_content(chunk_size=_CHUNK_SIZE):
                if chunk:
                    chunks.append(chunk)
                self._check_deadline(started, deadline)
            self._check_deadline(started, deadline)
            return b"".join(chunks)
        finally:
            response.close()

    def _check_deadline(self, started: float, deadline: float | None) -> float | None:
        """Return the seconds left before *deadline*, raising once it has passed."""
        if deadline is None:
            return None
        remaining = deadline - (self._clock() - started)
        if remaining <= 0:
            raise TimeoutError(f"deadline of {deadline:.1f}s exceeded")
        return remaining

    def _request_timeout(self, started: float, deadline: float | None) -> float:
        remaining = self._check_deadline(started, deadline)
        if remaining is None:
            return self.timeout
        return min(self.timeout, remaining)

    def _stop_condition(self, started: float, deadline: float | None):
        attempts_exhausted = stop_after_attempt(self.policy.max_attempts)
        if deadline is None:
            return attempts_exhausted

        def _would_cross_deadline(retry_state: RetryCallState) -> bool:
            upcoming = self.policy.delay_after(retry_state.attempt_number)
            return (self._clock() - started) + upcoming >= deadline

        return stop_any(attempts_exhausted, _would_cross_deadline)
