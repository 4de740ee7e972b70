from __future__ import annotations

import re
from typing import Any, Dict, List, Optional

from marketplace.common.enums import ResultSource
from marketplace.search.models import (
    MAX_PHOTO_RESULTS,
    ApartmentSummary,
    KeywordHit,
    ListingMatch,
    ListingMetrics,
    OwnerSummary,
    SearchFilters,
    SearchResult,
)
from marketplace.search.utils import dedupe


CLOSE_BY_METERS = 2000.0
SHORT_COMMUTE_MINUTES = 20.0
CENTRAL_DISTRICT_MAX = 6
HIGH_MEDIA_QUALITY = 0.75

GENERIC_REASONS = {
    ResultSource.structured: ("Good match based on filters", "general_match"),
    ResultSource.hybrid: ("Good match based on filters", "general_match"),
    ResultSource.keyword: ("Keyword match", "text_match"),
    ResultSource.semantic: ("Similar to what you described", "semantic_match"),
}

_DIGITS_RE = re.compile(r"\D")


def baseline_score(start: float, index: int) -> float:
    """Position-decayed score for sources that only give an ordering."""
    return max(0.0, start - index * 0.01)


def build_result(
    match: ListingMatch,
    *,
    source: ResultSource,
    score: float,
    filters: Optional[SearchFilters] = None,
) -> SearchResult:
    listing = match.listing
    reasons: List[str] = []
    codes: List[str] = []

    requested = filters.amenities if filters else ()
    if requested:
        amenity_match = any(amenity in listing.amenities for amenity in requested)
    else:
        amenity_match = bool(listing.amenities)
    if amenity_match:
        _add(reasons, codes, "Matches requested amenities", "amenity_match")

    if listing.owner_verified:
        _add(reasons, codes, "Verified owner", "verified_owner")

    if listing.media_quality_score is not None and listing.media_quality_score > HIGH_MEDIA_QUALITY:
        _add(reasons, codes, "High-quality photos", "high_media_quality")

    commute = match.commute_minutes
    if commute is not None:
        reasons.append(f"~{round(commute)} min to target campus")
        if commute <= SHORT_COMMUTE_MINUTES:
            codes.append("short_commute")

    if match.distance_m is not None and match.distance_m < CLOSE_BY_METERS:
        _add(reasons, codes, "Close to your preferred location", "close_by")

    district_number = _district_number(listing.district)
    if district_number is not None and district_number <= CENTRAL_DISTRICT_MAX:
        _add(reasons, codes, "Central district", "central_location")

    if not reasons:
        _add(reasons, codes, *GENERIC_REASONS[source])

    summary = ApartmentSummary(
        id=listing.listing_id,
        title=listing.title,
        description=listing.description,
        price=listing.price,
        rooms=listing.rooms,
        location=(listing.latitude, listing.longitude),
        address=listing.address,
        district=listing.district,
        amenities=dedupe(listing.amenities),
        photos=dedupe(listing.photos)[:MAX_PHOTO_RESULTS],
        owner=OwnerSummary(name=listing.owner_name or "Owner", verified=listing.owner_verified),
        metrics=ListingMetrics(
            media_quality=listing.media_quality_score,
            completeness=listing.completeness_score,
            commute_minutes=commute,
            suggested_price=listing.suggested_price,
        ),
    )
    return SearchResult(
        apartment=summary,
        score=round(score, 4),
        reasons=dedupe(reasons),
        reason_codes=dedupe(codes),
        source=source,
        distance=match.distance_m,
    )


def build_hit_result(hit: KeywordHit, *, source: ResultSource, score: float) -> SearchResult:
    payload = hit.payload
    reasons = _string_list(payload.get("reasons")) or [GENERIC_REASONS[source][0]]
    codes = _string_list(payload.get("reason_codes")) or [GENERIC_REASONS[source][1]]
    summary = ApartmentSummary(
        id=hit.listing_id,
        title=str(payload.get("title") or ""),
        description=_optional_str(payload.get("description")),
        price=_float(payload.get("price"), 0.0),
        rooms=int(_float(payload.get("rooms"), 0)),
        location=(_float(payload.get("latitude"), 0.0), _float(payload.get("longitude"), 0.0)),
        address=_optional_str(payload.get("address")),
        district=str(payload.get("district") or ""),
        amenities=_string_list(payload.get("amenities")),
        photos=_string_list(payload.get("photos"))[:MAX_PHOTO_RESULTS],
        owner=OwnerSummary(
            name=str(payload.get("owner_name") or "Owner"),
            verified=bool(payload.get("owner_verified")),
        ),
        metrics=ListingMetrics(
            media_quality=_optional_float(payload.get("media_quality_score")),
            completeness=_optional_float(payload.get("completeness_score")),
            commute_minutes=_optional_float(payload.get("commute_minutes")),
            suggested_price=_optional_float(payload.get("suggested_price")),
        ),
    )
    return SearchResult(
        apartment=summary,
        score=round(score, 4),
        reasons=reasons,
        reason_codes=codes,
        source=source,
    )


def serialize_result(result: SearchResult) -> Dict[str, Any]:
    apartment = result.apartment
    return {
        "id": apartment.id,
        "title": apartment.title,
        "description": apartment.description,
        "price": apartment.price,
        "rooms": apartment.rooms,
        "latitude": apartment.location[0],
        "longitude": apartment.location[1],
        "address": apartment.address,
        "district": apartment.district,
        "amenities": list(apartment.amenities),
        "photos": list(apartment.photos),
        "owner": {"name": apartment.owner.name, "verified": apartment.owner.verified},
        "metrics": {
            "media_quality": apartment.metrics.media_quality,
            "completeness": apartment.metrics.completeness,
            "commute_minutes": apartment.metrics.commute_minutes,
            "suggested_price": apartment.metrics.suggested_price,
        },
        "score": result.score,
        "distance": result.distance,
        "reasons": list(result.reasons),
        "reason_codes": list(result.reason_codes),
        "source": result.source.value,
    }


def _add(reasons: List[str], codes: List[str], message: str, code: str) -> None:
    reasons.append(message)
    codes.append(code)


def _district_number(district: Optional[str]) -> Optional[int]:
    digits = _DIGITS_RE.sub("", district or "")
    if not digits:
        return None
    return int(digits)


def _string_list(value: Any) -> List[str]:
    if not value:
        return []
    if isinstance(value, str):
        cleaned = value.strip()
        return [cleaned] if cleaned else []
    if not isinstance(value, (list, tuple)):
        return []
    return dedupe(str(item).strip() for item in value if item is not None and str(item).strip())


def _optional_str(value: Any) -> Optional[str]:
    return None if value is None else str(value)


def _optional_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _float(value: Any, default: float) -> float:
    parsed = _optional_float(value)
    return default if parsed is None else parsed
