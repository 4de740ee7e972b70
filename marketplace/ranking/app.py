from typing import List

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from marketplace.common.api import error_response, ok_response
from marketplace.ranking.analytics import InMemoryRankingEventRepository
from marketplace.ranking.api_models import RankRequestModel
from marketplace.ranking.candidates import candidate_from_listing
from marketplace.ranking.models import RankContext, RankedResult, UserPreferences
from marketplace.ranking.service import RankingService
from marketplace.ranking.weights import InMemoryWeightRepository
from marketplace.search.commute import best_commute_minutes
from marketplace.search.repository import ListingRepository

app = FastAPI(title="Ranking", docs_url=None, redoc_url=None)

_listing_repo = ListingRepository()
_weight_repo = InMemoryWeightRepository()
_event_repo = InMemoryRankingEventRepository()
_service = RankingService(weight_store=_weight_repo, analytics_sink=_event_repo)


def _serialize_ranked(ranked: List[RankedResult]) -> dict:
    scores = [item.score for item in ranked]
    return {
        "results": [
            {
                "apartment_id": item.apartment_id,
                "rank": index,
                "score": item.score,
                "components": item.components.as_dict(),
                "reasons": list(item.reasons),
                "reason_codes": list(item.reason_codes),
                "trade_offs": list(item.trade_offs),
                "source": item.source.value,
            }
            for index, item in enumerate(ranked, start=1)
        ],
        "stats": {
            "total": len(ranked),
            "average_score": round(sum(scores) / len(scores), 3) if scores else 0,
            "top_score": max(scores) if scores else 0,
            "bottom_score": min(scores) if scores else 0,
        },
    }


@app.post("/ranking/rank")
def rank_apartments(request: RankRequestModel):
    if request.schema_version != "v1":
        return JSONResponse(
            status_code=400,
            content=error_response("VALIDATION_ERROR", "schema_version must be v1"),
        )
    prefs = request.preferences
    preferences = UserPreferences(
        budget_min=prefs.budget_min,
        budget_max=prefs.budget_max,
        preferred_districts=tuple(prefs.preferred_districts),
        max_commute_minutes=prefs.max_commute_minutes,
        university=prefs.university,
        preferred_bedrooms=prefs.preferred_bedrooms,
        must_have_furnished=prefs.must_have_furnished,
        preferred_amenities=tuple(prefs.preferred_amenities),
    )
    candidates = []
    missing = []
    for apartment_id in request.apartment_ids:
        listing = _listing_repo.get(apartment_id)
        if listing is None:
            missing.append(apartment_id)
            continue
        commute = best_commute_minutes(listing.commute_cache, preferences.university)
        candidates.append(candidate_from_listing(listing, commute_minutes=commute))
    if missing:
        return JSONResponse(
            status_code=404,
            content=error_response("NOT_FOUND", "Apartments not found", {"apartment_ids": missing}),
        )

    context = None
    if request.context is not None:
        context = RankContext(**request.context.model_dump())
    ranked = _service.rank_apartments(candidates, preferences, context)
    return ok_response(_serialize_ranked(ranked))
