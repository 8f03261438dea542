"""
In-memory TTL cache in front of an extractor.
"""

import hashlib
import logging
import time
from collections.abc import Callable
from typing import Optional

from .base import BaseExtractor, ExtractionOutcome

logger = logging.getLogger(__name__)


class CachingExtractor(BaseExtractor):
    """
    Reuses successful extraction results for a limited time.

    Entries are keyed on the payload's SHA-256 plus month, year and
    password. Failures and "password required" answers are never cached.
    """

    def __init__(
        self,
        inner: BaseExtractor,
        ttl_seconds: int = 300,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.inner = inner
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[tuple, tuple[float, ExtractionOutcome]] = {}
        self.hits = 0
        self.misses = 0

    @property
    def name(self) -> str:
        return f"cached:{self.inner.name}"

    @staticmethod
    def cache_key(blob: bytes, month: int, year: int, password: Optional[str]) -> tuple:
        return (hashlib.sha256(blob).hexdigest(), month, year, password or "")

    def extract(
        self,
        blob: bytes,
        filename: str,
        month: int,
        year: int,
        password: Optional[str] = None,
    ) -> ExtractionOutcome:
        key = self.cache_key(blob, month, year, password)
        now = self._clock()

        entry = self._entries.get(key)
        if entry is not None:
            stored_at, outcome = entry
            if now - stored_at < self.ttl_seconds:
                self.hits += 1
                logger.debug("Extraction cache hit for %s", filename)
                return outcome
            del self._entries[key]

        self.misses += 1
        outcome = self.inner.extract(blob, filename, month, year, password)
        if outcome.usable and self.ttl_seconds > 0:
            self._entries[key] = (now, outcome)
        return outcome

    def clear(self) -> None:
        self._entries.clear()
