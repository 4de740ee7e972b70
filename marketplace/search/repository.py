from __future__ import annotations

import threading
from dataclasses import replace
from datetime import datetime
from typing import Callable, Dict, List, Optional, Protocol, Sequence, Tuple

from marketplace.common.enums import ListingStatus, SortMode
from marketplace.search.commute import best_commute_minutes, commute_allows
from marketplace.search.models import ListingMatch, ListingRecord, SearchFilters
from marketplace.search.utils import cosine_similarity, haversine_m, tokenize


class ListingStore(Protocol):
    def get(self, listing_id: str) -> Optional[ListingRecord]: ...

    def query(self, filters: SearchFilters) -> List[ListingMatch]: ...

    def count(self, filters: SearchFilters) -> int: ...

    def fulltext_search(self, query: str, filters: SearchFilters) -> List[ListingMatch]: ...

    def vector_search(self, vector: Sequence[float], filters: SearchFilters) -> List[Tuple[ListingMatch, float]]: ...

    def set_embedding(self, listing_id: str, vector: Sequence[float]) -> None: ...


class ListingRepository:
    """In-memory listing store; every query runs the same filter predicate."""

    def __init__(self, *, title_weight: float = 2.0, description_weight: float = 1.0) -> None:
        self._listings: Dict[str, ListingRecord] = {}
        self._lock = threading.Lock()
        self._title_weight = title_weight
        self._description_weight = description_weight

    def add(self, listing: ListingRecord) -> None:
        with self._lock:
            self._listings[listing.listing_id] = listing

    def get(self, listing_id: str) -> Optional[ListingRecord]:
        return self._listings.get(listing_id)

    def list(self) -> List[ListingRecord]:
        with self._lock:
            return list(self._listings.values())

    def set_embedding(self, listing_id: str, vector: Sequence[float]) -> None:
        with self._lock:
            listing = self._listings.get(listing_id)
            if listing is None:
                raise KeyError(listing_id)
            self._listings[listing_id] = replace(listing, embedding=tuple(float(value) for value in vector))

    def query(self, filters: SearchFilters) -> List[ListingMatch]:
        matches = self._filtered(filters)
        ordered = _order(matches, filters)
        return _paginate(ordered, filters)

    def count(self, filters: SearchFilters) -> int:
        return len(self._filtered(filters))

    def fulltext_search(self, query: str, filters: SearchFilters) -> List[ListingMatch]:
        terms = tokenize(query)
        if not terms:
            return []
        ranked: List[ListingMatch] = []
        for match in self._filtered(filters):
            title_tokens = tokenize(match.listing.title)
            body_tokens = tokenize(match.listing.description or "")
            if not all(term in title_tokens or term in body_tokens for term in terms):
                continue
            title_count = sum(title_tokens.count(term) for term in terms)
            body_count = sum(body_tokens.count(term) for term in terms)
            length = max(1, len(title_tokens) + len(body_tokens))
            score = (title_count * self._title_weight + body_count * self._description_weight) / length
            ranked.append(replace(match, rank_score=score))
        ranked.sort(key=lambda item: -(item.rank_score or 0.0))
        return _paginate(ranked, filters)

    def vector_search(self, vector: Sequence[float], filters: SearchFilters) -> List[Tuple[ListingMatch, float]]:
        if not vector:
            return []
        scored: List[Tuple[ListingMatch, float]] = []
        for match in self._filtered(filters):
            embedding = match.listing.embedding
            if embedding is None:
                continue
            distance = 1.0 - cosine_similarity(vector, embedding)
            scored.append((match, distance))
        scored.sort(key=lambda item: item[1])
        start = filters.offset
        return scored[start : start + filters.limit]

    def _filtered(self, filters: SearchFilters) -> List[ListingMatch]:
        matches: List[ListingMatch] = []
        for listing in self.list():
            distance = None
            if filters.location is not None:
                distance = haversine_m(filters.location.lat, filters.location.lng, listing.latitude, listing.longitude)
            if not matches_filters(listing, filters, distance_m=distance):
                continue
            matches.append(
                ListingMatch(
                    listing=listing,
                    distance_m=distance,
                    commute_minutes=best_commute_minutes(listing.commute_cache, filters.university),
                )
            )
        return matches


def matches_filters(listing: ListingRecord, filters: SearchFilters, *, distance_m: Optional[float] = None) -> bool:
    if listing.status != ListingStatus.published:
        return False
    budget = filters.budget
    if budget is not None:
        if budget.min is not None and listing.price < budget.min:
            return False
        if budget.max is not None and listing.price > budget.max:
            return False
    if filters.rooms and listing.rooms < filters.rooms:
        return False
    if filters.furnished is not None and listing.furnished != filters.furnished:
        return False
    if filters.district and filters.district.lower() not in (listing.district or "").lower():
        return False
    if filters.location is not None and filters.location.radius:
        if distance_m is None:
            distance_m = haversine_m(filters.location.lat, filters.location.lng, listing.latitude, listing.longitude)
        if distance_m > filters.location.radius:
            return False
    if filters.amenities and not set(filters.amenities).intersection(listing.amenities):
        return False
    if not commute_allows(listing.commute_cache, filters.university, filters.max_commute):
        return False
    return True


def _order(matches: List[ListingMatch], filters: SearchFilters) -> List[ListingMatch]:
    sort_by = filters.sort_by
    if sort_by == SortMode.price_asc:
        return sorted(matches, key=lambda item: item.listing.price)
    if sort_by == SortMode.price_desc:
        return sorted(matches, key=lambda item: -item.listing.price)
    if sort_by == SortMode.distance:
        if filters.location is None:
            return sorted(matches, key=lambda item: item.listing.price)
        return sorted(
            matches,
            key=lambda item: (item.distance_m is None, item.distance_m or 0.0),
        )
    if sort_by == SortMode.newest:
        return sorted(matches, key=_desc_nulls_last(lambda item: _timestamp(item.listing.created_at)))
    # relevance: completeness, then media quality, then recency; applied least significant first
    ordered = sorted(matches, key=_desc_nulls_last(lambda item: _timestamp(item.listing.created_at)))
    ordered = sorted(ordered, key=_desc_nulls_last(lambda item: item.listing.media_quality_score))
    return sorted(ordered, key=_desc_nulls_last(lambda item: item.listing.completeness_score))


def _desc_nulls_last(getter: Callable[[ListingMatch], Optional[float]]):
    def key(item: ListingMatch) -> Tuple[bool, float]:
        value = getter(item)
        return (value is None, -(value or 0.0))

    return key


def _timestamp(value: Optional[datetime]) -> Optional[float]:
    if value is None:
        return None
    return value.timestamp()


def _paginate(matches: List[ListingMatch], filters: SearchFilters) -> List[ListingMatch]:
    start = filters.offset
    return matches[start : start + filters.limit]
