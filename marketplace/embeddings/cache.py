from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from dataclasses import dataclass
from typing import List, Optional, Tuple

from marketplace.embeddings.provider import EmbeddingProvider

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EmbeddingCacheStats:
    hits: int
    misses: int
    size: int

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total else 0.0


class EmbeddingCache:
    """Thread-safe LRU keyed by the cleaned query text."""

    def __init__(self, max_entries: int = 1000) -> None:
        if max_entries <= 0:
            raise ValueError("max_entries must be positive")
        self._max_entries = max_entries
        self._entries: "OrderedDict[str, Tuple[float, ...]]" = OrderedDict()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    def get(self, key: str) -> Optional[List[float]]:
        with self._lock:
            vector = self._entries.get(key)
            if vector is None:
                self._misses += 1
                return None
            self._entries.move_to_end(key)
            self._hits += 1
            return list(vector)

    def set(self, key: str, vector: List[float]) -> None:
        with self._lock:
            self._entries[key] = tuple(vector)
            self._entries.move_to_end(key)
            while len(self._entries) > self._max_entries:
                self._entries.popitem(last=False)

    def stats(self) -> EmbeddingCacheStats:
        with self._lock:
            return EmbeddingCacheStats(hits=self._hits, misses=self._misses, size=len(self._entries))


class CachedEmbeddingProvider:
    def __init__(self, provider: EmbeddingProvider, cache: Optional[EmbeddingCache] = None) -> None:
        self._provider = provider
        self._cache = cache or EmbeddingCache()
        self.dimension = provider.dimension

    @property
    def cache(self) -> EmbeddingCache:
        return self._cache

    def embed_text(self, text: str) -> List[float]:
        key = " ".join((text or "").split())
        cached = self._cache.get(key)
        if cached is not None:
            return cached
        vector = self._provider.embed_text(key)
        # failures propagate uncached so the next call retries the provider
        self._cache.set(key, vector)
        return vector
