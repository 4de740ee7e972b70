from __future__ import annotations

import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Callable, Dict, List, Optional, Sequence, TypeVar

from marketplace.common.enums import ResultSource
from marketplace.common.errors import RetrievalFailure
from marketplace.embeddings.provider import EmbeddingProvider
from marketplace.search.fusion import FusionEngine
from marketplace.search.keyword import KeywordIndex, KeywordRetriever
from marketplace.search.models import SearchConfig, SearchFilters, SearchResult
from marketplace.search.observability import SearchObservability
from marketplace.search.repository import ListingStore
from marketplace.search.semantic import SemanticRetriever
from marketplace.search.structured import StructuredRetriever

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SearchService:
    """Entry point for structured, keyword, semantic and hybrid listing search.

    A failing retriever never fails the request: it contributes no results,
    a warning is logged and a ``retriever_failed`` event is recorded.
    """

    def __init__(
        self,
        store: ListingStore,
        *,
        keyword_index: Optional[KeywordIndex] = None,
        embedding_provider: Optional[EmbeddingProvider] = None,
        config: Optional[SearchConfig] = None,
        fusion: Optional[FusionEngine] = None,
        observability: Optional[SearchObservability] = None,
        executor: Optional[ThreadPoolExecutor] = None,
    ) -> None:
        self._config = config or SearchConfig()
        self._observability = observability or SearchObservability()
        self._structured = StructuredRetriever(
            store,
            score_start=self._config.structured_score_start,
            observability=self._observability,
        )
        self._keyword = KeywordRetriever(
            store,
            index=keyword_index,
            index_score_start=self._config.keyword_index_score_start,
            fallback_score_start=self._config.keyword_fallback_score_start,
            observability=self._observability,
        )
        self._semantic = SemanticRetriever(
            store,
            keyword=self._keyword,
            provider=embedding_provider,
            score_floor=self._config.semantic_score_floor,
            observability=self._observability,
        )
        self._fusion = fusion or FusionEngine(top_n=self._config.fusion_top_n)
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=self._config.max_workers,
            thread_name_prefix="retrieval",
        )

    @property
    def observability(self) -> SearchObservability:
        return self._observability

    @property
    def config(self) -> SearchConfig:
        return self._config

    def structured_search(self, filters: SearchFilters) -> List[SearchResult]:
        return self._guarded(ResultSource.structured, lambda: self._structured.retrieve(filters), [])

    def keyword_search(self, query: str, filters: SearchFilters) -> List[SearchResult]:
        return self._guarded(ResultSource.keyword, lambda: self._keyword.retrieve(query, filters), [])

    def semantic_search(self, query: str, filters: SearchFilters) -> List[SearchResult]:
        return self._guarded(ResultSource.semantic, lambda: self._semantic.retrieve(query, filters), [])

    def get_structured_count(self, filters: SearchFilters) -> int:
        return self._guarded(ResultSource.structured, lambda: self._structured.count(filters), 0)

    def hybrid_search(self, query: Optional[str], filters: SearchFilters) -> List[SearchResult]:
        query = (query or "").strip()
        if not query:
            return self.structured_search(filters)

        deadline = time.monotonic() + self._config.retriever_timeout_s
        futures: Dict[ResultSource, Future] = {
            ResultSource.structured: self._executor.submit(self._structured.retrieve, filters),
            ResultSource.keyword: self._executor.submit(self._keyword.retrieve, query, filters),
            ResultSource.semantic: self._executor.submit(self._semantic.retrieve, query, filters),
        }
        result_lists: List[List[SearchResult]] = []
        for source, future in futures.items():
            remaining = max(0.0, deadline - time.monotonic())
            try:
                result_lists.append(future.result(timeout=remaining))
            except FutureTimeoutError:
                future.cancel()
                self._record_failure(
                    source,
                    RetrievalFailure("Retriever timed out", source=source.value, details={"timeout_s": self._config.retriever_timeout_s}),
                )
                result_lists.append([])
            except Exception as exc:
                self._record_failure(source, exc)
                result_lists.append([])

        merged = self._fusion.merge(result_lists)
        self._observability.record(
            "hybrid",
            source_counts={source.value: len(results) for source, results in zip(futures, result_lists)},
            merged_count=len(merged),
        )
        return merged

    def merge_results(
        self,
        result_lists: Sequence[Sequence[SearchResult]],
        weights: Optional[Sequence[float]] = None,
    ) -> List[SearchResult]:
        return self._fusion.merge_weighted(result_lists, weights)

    def close(self) -> None:
        if self._owns_executor:
            self._executor.shutdown(wait=False, cancel_futures=True)

    def _guarded(self, source: ResultSource, call: Callable[[], T], default: T) -> T:
        try:
            return call()
        except Exception as exc:
            self._record_failure(source, exc)
            return default

    def _record_failure(self, source: ResultSource, exc: BaseException) -> None:
        logger.warning("%s retriever failed, contributing no results: %s", source.value, exc)
        self._observability.record(
            "retriever_failed",
            source=source.value,
            error=type(exc).__name__,
            message=str(exc),
        )
