from fastapi import FastAPI
from fastapi.responses import JSONResponse

from marketplace.common.api import error_response, marketplace_error_response, ok_response, status_for
from marketplace.common.enums import SearchMode
from marketplace.common.errors import ValidationError
from marketplace.search.api_models import SearchRequestModel
from marketplace.search.config import build_search_service
from marketplace.search.filters import FilterNormalizer
from marketplace.search.results import serialize_result

app = FastAPI(title="Search", docs_url=None, redoc_url=None)

_service, _listing_repo, _embedding_provider = build_search_service()
_normalizer = FilterNormalizer()


@app.post("/search")
def search_listings(request: SearchRequestModel):
    if request.schema_version != "v1":
        return JSONResponse(
            status_code=400,
            content=error_response("VALIDATION_ERROR", "schema_version must be v1"),
        )
    payload = dict(request.filters)
    if request.query is not None:
        payload["query"] = request.query
    try:
        filters = _normalizer.normalize(payload)
    except ValidationError as exc:
        return JSONResponse(
            status_code=status_for(exc.code),
            content=marketplace_error_response(exc),
        )

    query = filters.query or ""
    if request.mode == SearchMode.structured or not query:
        results = _service.structured_search(filters)
    elif request.mode == SearchMode.keyword:
        results = _service.keyword_search(query, filters)
    elif request.mode == SearchMode.semantic:
        results = _service.semantic_search(query, filters)
    else:
        results = _service.hybrid_search(query, filters)

    return ok_response(
        {
            "mode": request.mode.value,
            "query": query,
            "results": [serialize_result(result) for result in results],
            "total": _service.get_structured_count(filters),
            "limit": filters.limit,
            "offset": filters.offset,
        }
    )
