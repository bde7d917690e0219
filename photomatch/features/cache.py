"""Signature caches keyed by content digest."""

from __future__ import annotations

from collections import OrderedDict
from threading import Lock
from typing import Protocol

from ..io.models import Signature


class SignatureCache(Protocol):
    """Minimal cache interface consumed by the signature builder."""

    def get(self, key: str) -> Signature | None:
        ...

    def put(self, key: str, value: Signature) -> None:
        ...


class LRUSignatureCache:
    """Thread-safe in-process cache evicting the least recently used entry.

    ``max_entries=None`` keeps every entry for the life of the process.
    """

    def __init__(self, max_entries: int | None = 4096) -> None:
        if max_entries is not None and max_entries <= 0:
            raise ValueError("max_entries must be positive or None")
        self.max_entries = max_entries
        self._entries: OrderedDict[str, Signature] = OrderedDict()
        self._lock = Lock()
        self.hits = 0
        self.misses = 0

    def get(self, key: str) -> Signature | None:
        with self._lock:
            value = self._entries.get(key)
            if value is None:
                self.misses += 1
                return None
            self._entries.move_to_end(key)
            self.hits += 1
            return value

    def put(self, key: str, value: Signature) -> None:
        # Same key always maps to an equal signature, so last write wins.
        with self._lock:
            self._entries[key] = value
            self._entries.move_to_end(key)
            if self.max_entries is not None:
                while len(self._entries) > self.max_entries:
                    self._entries.popitem(last=False)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries
