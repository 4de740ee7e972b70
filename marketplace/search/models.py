from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from marketplace.common.enums import ListingStatus, ResultSource, SortMode


DEFAULT_LIMIT = 20
MAX_LIMIT = 100
DEFAULT_RADIUS_M = 5000.0
MAX_PHOTO_RESULTS = 8

# university -> transport mode -> minutes
CommuteCache = Dict[str, Dict[str, float]]


@dataclass(frozen=True)
class GeoPoint:
    lat: float
    lng: float
    radius: Optional[float] = None


@dataclass(frozen=True)
class PriceBand:
    min: Optional[float] = None
    max: Optional[float] = None


@dataclass(frozen=True)
class SearchFilters:
    query: Optional[str] = None
    location: Optional[GeoPoint] = None
    budget: Optional[PriceBand] = None
    rooms: Optional[int] = None
    amenities: Tuple[str, ...] = ()
    furnished: Optional[bool] = None
    university: Optional[str] = None
    max_commute: Optional[float] = None
    district: Optional[str] = None
    sort_by: SortMode = SortMode.relevance
    limit: int = DEFAULT_LIMIT
    offset: int = 0

    def page(self, *, limit: int, offset: int) -> "SearchFilters":
        return replace(self, limit=limit, offset=offset)


@dataclass(frozen=True)
class Engagement:
    views: int = 0
    saves: int = 0
    messages: int = 0


@dataclass(frozen=True)
class ListingRecord:
    listing_id: str
    title: str
    price: float
    rooms: int
    district: str
    latitude: float
    longitude: float
    description: Optional[str] = None
    address: Optional[str] = None
    bedrooms: Optional[int] = None
    bathrooms: Optional[int] = None
    amenities: Tuple[str, ...] = ()
    photos: Tuple[str, ...] = ()
    owner_name: Optional[str] = None
    owner_verified: bool = False
    furnished: Optional[bool] = None
    has_elevator: Optional[bool] = None
    media_quality_score: Optional[float] = None
    completeness_score: Optional[float] = None
    commute_cache: CommuteCache = field(default_factory=dict)
    suggested_price: Optional[float] = None
    market_average: Optional[float] = None
    engagement: Engagement = field(default_factory=Engagement)
    created_at: Optional[datetime] = None
    status: ListingStatus = ListingStatus.published
    embedding: Optional[Tuple[float, ...]] = None


@dataclass(frozen=True)
class ListingMatch:
    listing: ListingRecord
    distance_m: Optional[float] = None
    commute_minutes: Optional[float] = None
    rank_score: Optional[float] = None


@dataclass(frozen=True)
class OwnerSummary:
    name: str
    verified: bool


@dataclass(frozen=True)
class ListingMetrics:
    media_quality: Optional[float]
    completeness: Optional[float]
    commute_minutes: Optional[float]
    suggested_price: Optional[float]


@dataclass(frozen=True)
class ApartmentSummary:
    id: str
    title: str
    description: Optional[str]
    price: float
    rooms: int
    location: Tuple[float, float]
    address: Optional[str]
    district: str
    amenities: List[str]
    photos: List[str]
    owner: OwnerSummary
    metrics: ListingMetrics


@dataclass(frozen=True)
class SearchResult:
    apartment: ApartmentSummary
    score: float
    reasons: List[str]
    reason_codes: List[str]
    source: ResultSource
    distance: Optional[float] = None

    @property
    def apartment_id(self) -> str:
        return self.apartment.id


@dataclass(frozen=True)
class KeywordHit:
    """A keyword-index document; ``payload`` holds the indexed listing fields."""

    listing_id: str
    payload: Dict[str, object]
    ranking_score: Optional[float] = None


@dataclass(frozen=True)
class SearchConfig:
    meilisearch_host: Optional[str] = None
    meilisearch_api_key: Optional[str] = None
    meilisearch_index: str = "apartments"
    google_ai_api_key: Optional[str] = None
    embedding_model: str = "text-embedding-004"
    embedding_dimension: int = 768
    embedding_cache_size: int = 1000
    http_timeout_s: float = 5.0
    retriever_timeout_s: float = 8.0
    max_workers: int = 6
    fusion_top_n: int = DEFAULT_LIMIT
    structured_score_start: float = 0.9
    keyword_index_score_start: float = 0.8
    keyword_fallback_score_start: float = 0.75
    semantic_score_floor: float = 0.6
