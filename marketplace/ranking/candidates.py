from __future__ import annotations

from dataclasses import replace
from typing import Optional

from marketplace.ranking.models import Candidate
from marketplace.search.models import Engagement, ListingRecord, SearchResult

DEFAULT_QUALITY_SCORE = 0.6
NEUTRAL_MARKET_VALUE = 0.5


def market_value(price: float, suggested_price: Optional[float], market_average: Optional[float]) -> float:
    """How close ``price`` sits to the suggested price, else the district average.

    1.0 means priced at the reference; the value drops linearly to 0 as the
    gap reaches the reference price.
    """
    for reference in (suggested_price, market_average):
        if reference:
            return max(0.0, 1 - abs(price - reference) / reference)
    return NEUTRAL_MARKET_VALUE


def candidate_from_listing(listing: ListingRecord, *, commute_minutes: Optional[float] = None) -> Candidate:
    return Candidate(
        id=listing.listing_id,
        price=listing.price,
        rooms=listing.rooms,
        district=listing.district,
        bedrooms=listing.bedrooms,
        bathrooms=listing.bathrooms,
        amenities=tuple(listing.amenities),
        verified=listing.owner_verified,
        media_score=_quality(listing.media_quality_score),
        completeness_score=_quality(listing.completeness_score),
        commute_minutes=commute_minutes,
        market_value=market_value(listing.price, listing.suggested_price, listing.market_average),
        engagement=listing.engagement,
        furnished=listing.furnished,
        has_elevator=listing.has_elevator,
    )


def candidate_from_result(result: SearchResult, listing: Optional[ListingRecord] = None) -> Candidate:
    """Project a search result into a ranking candidate.

    The stored listing, when given, supplies fields the result summary does
    not carry (bedrooms, furnished, engagement and reference prices).
    """
    apartment = result.apartment
    metrics = apartment.metrics
    if listing is not None:
        return _with_result_context(
            candidate_from_listing(listing, commute_minutes=metrics.commute_minutes),
            result,
        )
    return Candidate(
        id=apartment.id,
        price=apartment.price,
        rooms=apartment.rooms,
        district=apartment.district,
        amenities=tuple(apartment.amenities),
        verified=apartment.owner.verified,
        media_score=_quality(metrics.media_quality),
        completeness_score=_quality(metrics.completeness),
        commute_minutes=metrics.commute_minutes,
        market_value=market_value(apartment.price, metrics.suggested_price, None),
        engagement=Engagement(),
        reason_hints=tuple(result.reasons),
        reason_codes=tuple(result.reason_codes),
        source=result.source,
    )


def _with_result_context(candidate: Candidate, result: SearchResult) -> Candidate:
    return replace(
        candidate,
        reason_hints=tuple(result.reasons),
        reason_codes=tuple(result.reason_codes),
        source=result.source,
    )


def _quality(value: Optional[float]) -> float:
    return DEFAULT_QUALITY_SCORE if value is None else value
