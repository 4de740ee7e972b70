from __future__ import annotations

from typing import List, Optional

from marketplace.common.enums import ResultSource
from marketplace.search.models import SearchFilters, SearchResult
from marketplace.search.observability import SearchObservability
from marketplace.search.repository import ListingStore
from marketplace.search.results import baseline_score, build_result


class StructuredRetriever:
    def __init__(
        self,
        store: ListingStore,
        *,
        score_start: float = 0.9,
        observability: Optional[SearchObservability] = None,
    ) -> None:
        self._store = store
        self._score_start = score_start
        self._observability = observability

    def retrieve(self, filters: SearchFilters) -> List[SearchResult]:
        matches = self._store.query(filters)
        if self._observability:
            self._observability.record(
                "retrieval",
                source=ResultSource.structured.value,
                result_count=len(matches),
                sort_by=filters.sort_by.value,
            )
        return [
            build_result(
                match,
                source=ResultSource.structured,
                score=baseline_score(self._score_start, index),
                filters=filters,
            )
            for index, match in enumerate(matches)
        ]

    def count(self, filters: SearchFilters) -> int:
        return self._store.count(filters)
