from __future__ import annotations

import logging
from typing import Any, List, Optional

from marketplace.common.enums import ResultSource
from marketplace.common.errors import ExternalServiceUnavailable
from marketplace.embeddings.provider import EmbeddingProvider
from marketplace.search.keyword import KeywordRetriever
from marketplace.search.models import SearchFilters, SearchResult
from marketplace.search.observability import SearchObservability
from marketplace.search.repository import ListingStore
from marketplace.search.results import build_result

logger = logging.getLogger(__name__)


class SemanticRetriever:
    """Nearest-neighbour search over listing embeddings.

    Without a working embedding provider the request is handed to the
    keyword retriever and its results are returned untouched.
    """

    def __init__(
        self,
        store: ListingStore,
        *,
        keyword: KeywordRetriever,
        provider: Optional[EmbeddingProvider] = None,
        score_floor: float = 0.6,
        observability: Optional[SearchObservability] = None,
    ) -> None:
        self._store = store
        self._keyword = keyword
        self._provider = provider
        self._score_floor = score_floor
        self._observability = observability

    @property
    def has_provider(self) -> bool:
        return self._provider is not None

    def retrieve(self, query: str, filters: SearchFilters) -> List[SearchResult]:
        if self._provider is None:
            self._record("fallback", reason="embedding provider not configured")
            return self._keyword.retrieve(query, filters)
        try:
            vector = self._provider.embed_text(query)
        except ExternalServiceUnavailable as exc:
            logger.warning("Embeddings unavailable, falling back to keyword search: %s", exc)
            self._record("fallback", reason=str(exc))
            return self._keyword.retrieve(query, filters)

        neighbours = self._store.vector_search(vector, filters)
        self._record("retrieval", result_count=len(neighbours))
        return [
            build_result(
                match,
                source=ResultSource.semantic,
                score=self.score(distance, index),
                filters=filters,
            )
            for index, (match, distance) in enumerate(neighbours)
        ]

    def score(self, distance: float, rank_index: int) -> float:
        return max(self._score_floor, 1.0 - distance - rank_index * 0.01)

    def _record(self, event_type: str, **details: Any) -> None:
        if self._observability:
            self._observability.record(event_type, source=ResultSource.semantic.value, **details)
