from __future__ import annotations

import logging
from typing import Any, List, Optional, Protocol, Union

from marketplace.common.enums import ResultSource
from marketplace.common.errors import ExternalServiceUnavailable
from marketplace.common.http import JsonHttpTransport
from marketplace.search.models import KeywordHit, SearchFilters, SearchResult
from marketplace.search.observability import SearchObservability
from marketplace.search.repository import ListingStore
from marketplace.search.results import baseline_score, build_hit_result, build_result

logger = logging.getLogger(__name__)


class KeywordIndex(Protocol):
    def search(self, query: str, filters: SearchFilters, *, limit: int, offset: int) -> List[KeywordHit]: ...


def build_meili_filters(filters: SearchFilters) -> List[Union[str, List[str]]]:
    conditions: List[Union[str, List[str]]] = []
    if filters.budget is not None:
        if filters.budget.min is not None:
            conditions.append(f"price >= {_number(filters.budget.min)}")
        if filters.budget.max is not None:
            conditions.append(f"price <= {_number(filters.budget.max)}")
    if filters.rooms:
        conditions.append(f"rooms >= {filters.rooms}")
    if filters.furnished is not None:
        conditions.append(f"furnished = {'true' if filters.furnished else 'false'}")
    if filters.district:
        conditions.append(f'district = "{_quote(filters.district)}"')
    if filters.amenities:
        # a nested list is an OR group in Meilisearch filter arrays
        conditions.append([f'amenities = "{_quote(amenity)}"' for amenity in filters.amenities])
    return conditions


def _quote(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


def _number(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


class MeilisearchIndex:
    def __init__(
        self,
        *,
        host: str,
        api_key: Optional[str] = None,
        index: str = "apartments",
        transport: Optional[JsonHttpTransport] = None,
    ) -> None:
        self._base_url = host.rstrip("/")
        self._index = index
        headers = {"Authorization": f"Bearer {api_key}"} if api_key else {}
        self._transport = transport or JsonHttpTransport(service="meilisearch", default_headers=headers)

    def search(self, query: str, filters: SearchFilters, *, limit: int, offset: int) -> List[KeywordHit]:
        response = self._transport.request(
            method="POST",
            url=f"{self._base_url}/indexes/{self._index}/search",
            json_body={
                "q": query,
                "filter": build_meili_filters(filters),
                "limit": limit,
                "offset": offset,
                "showRankingScore": True,
            },
        )
        hits = (response or {}).get("hits") if isinstance(response, dict) else None
        if not isinstance(hits, list):
            raise ExternalServiceUnavailable("Meilisearch response had no hits array", service="meilisearch")
        return [_to_hit(hit) for hit in hits if isinstance(hit, dict) and hit.get("id") is not None]


def _to_hit(hit: dict) -> KeywordHit:
    score: Any = hit.get("_rankingScore")
    return KeywordHit(
        listing_id=str(hit["id"]),
        payload=hit,
        ranking_score=float(score) if isinstance(score, (int, float)) else None,
    )


class KeywordRetriever:
    def __init__(
        self,
        store: ListingStore,
        *,
        index: Optional[KeywordIndex] = None,
        index_score_start: float = 0.8,
        fallback_score_start: float = 0.75,
        observability: Optional[SearchObservability] = None,
    ) -> None:
        self._store = store
        self._index = index
        self._index_score_start = index_score_start
        self._fallback_score_start = fallback_score_start
        self._observability = observability

    def retrieve(self, query: str, filters: SearchFilters) -> List[SearchResult]:
        if self._index is not None:
            try:
                hits = self._index.search(query, filters, limit=filters.limit, offset=filters.offset)
            except Exception as exc:
                logger.warning("Keyword index unavailable, falling back to listing store full-text search: %s", exc)
                self._record("fallback", reason=str(exc))
            else:
                self._record("retrieval", path="index", result_count=len(hits))
                return [
                    build_hit_result(
                        hit,
                        source=ResultSource.keyword,
                        score=hit.ranking_score
                        if hit.ranking_score is not None
                        else baseline_score(self._index_score_start, index),
                    )
                    for index, hit in enumerate(hits)
                ]

        matches = self._store.fulltext_search(query, filters)
        self._record("retrieval", path="store", result_count=len(matches))
        return [
            build_result(
                match,
                source=ResultSource.keyword,
                score=baseline_score(self._fallback_score_start, index),
                filters=filters,
            )
            for index, match in enumerate(matches)
        ]

    def _record(self, event_type: str, **details: Any) -> None:
        if self._observability:
            self._observability.record(event_type, source=ResultSource.keyword.value, **details)
