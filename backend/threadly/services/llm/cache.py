"""
Analysis Cache

Time-bounded memoization of normalized results keyed by a request
fingerprint. Expired entries read as absent and are dropped at that point;
there is no background sweep.
"""

import base64
import time
from collections.abc import Callable
from dataclasses import dataclass

from threadly.services.llm.models import ThreadlyResponse


@dataclass(frozen=True)
class CacheEntry:
    result: ThreadlyResponse
    created_at: float


class AnalysisCache:
    """In-memory TTL cache. Not shared across processes."""

    def __init__(
        self,
        ttl_seconds: float = 300.0,
        prefix_length: int = 100,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self.prefix_length = prefix_length
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}

    def fingerprint(
        self,
        history: str,
        scenario: str,
        tone: int,
        context: str = "",
        provider: str = "",
    ) -> str:
        """
        Derive the cache key for a request.

        Only a prefix of the history is used. Base64 keeps the key to safe
        characters; it is not meant to hide anything.
        """
        scenario = getattr(scenario, "value", scenario)
        key = f"{history[: self.prefix_length]}-{scenario}-{tone}-{context}-{provider}"
        return base64.urlsafe_b64encode(key.encode("utf-8")).decode("ascii")

    def get(self, fingerprint: str) -> ThreadlyResponse | None:
        entry = self._entries.get(fingerprint)
        if entry is None:
            return None
        if self._clock() - entry.created_at >= self.ttl_seconds:
            del self._entries[fingerprint]
            return None
        return entry.result

    def put(self, fingerprint: str, result: ThreadlyResponse) -> None:
        self._entries[fingerprint] = CacheEntry(result=result, created_at=self._clock())

    def clear(self) -> None:
        self._entries.clear()

    def size(self) -> int:
        return len(self._entries)

    def __len__(self) -> int:
        return self.size()
