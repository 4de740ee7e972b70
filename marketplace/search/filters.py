from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic import ValidationError as SchemaValidationError

from marketplace.common.enums import SortMode
from marketplace.common.errors import ValidationError
from marketplace.search.models import (
    DEFAULT_LIMIT,
    DEFAULT_RADIUS_M,
    MAX_LIMIT,
    GeoPoint,
    PriceBand,
    SearchFilters,
)


class LocationModel(BaseModel):
    model_config = ConfigDict(extra="forbid")
    lat: float = Field(validation_alias=AliasChoices("lat", "latitude"))
    lng: float = Field(validation_alias=AliasChoices("lng", "lon", "longitude"))
    radius: Optional[float] = None


class BudgetModel(BaseModel):
    model_config = ConfigDict(extra="forbid")
    min: Optional[float] = None
    max: Optional[float] = None


class SearchFiltersModel(BaseModel):
    model_config = ConfigDict(extra="forbid")
    query: Optional[str] = None
    location: Optional[LocationModel] = None
    budget: Optional[BudgetModel] = None
    rooms: Optional[int] = None
    amenities: List[str] = Field(default_factory=list)
    furnished: Optional[bool] = None
    university: Optional[str] = None
    max_commute: Optional[float] = Field(default=None, validation_alias=AliasChoices("max_commute", "maxCommute"))
    district: Optional[str] = None
    sort_by: Optional[str] = Field(default=None, validation_alias=AliasChoices("sort_by", "sortBy"))
    limit: Optional[int] = None
    offset: Optional[int] = None


@dataclass(frozen=True)
class FilterParseResult:
    filters: Optional[SearchFilters]
    errors: List[Dict[str, Any]]


class FilterNormalizer:
    def __init__(
        self,
        *,
        default_limit: int = DEFAULT_LIMIT,
        max_limit: int = MAX_LIMIT,
        default_radius_m: float = DEFAULT_RADIUS_M,
    ) -> None:
        self._default_limit = default_limit
        self._max_limit = max_limit
        self._default_radius_m = default_radius_m

    def normalize(self, payload: Optional[Dict[str, Any]]) -> SearchFilters:
        result = self.parse(payload)
        if result.errors or result.filters is None:
            raise ValidationError(result.errors)
        return result.filters

    def parse(self, payload: Optional[Dict[str, Any]]) -> FilterParseResult:
        errors: List[Dict[str, Any]] = []
        payload = dict(payload or {})
        try:
            model = SearchFiltersModel.model_validate(payload)
        except SchemaValidationError as exc:
            invalid_fields = set()
            for err in exc.errors():
                loc = err.get("loc", ())
                if loc:
                    invalid_fields.add(loc[0])
                errors.append(
                    {
                        "code": "schema_error",
                        "message": err.get("msg", "invalid"),
                        "path": "/" + "/".join(str(item) for item in loc),
                    }
                )
            # range checks still run on the fields that parsed
            valid_part = {key: value for key, value in payload.items() if key not in invalid_fields}
            try:
                partial = SearchFiltersModel.model_validate(valid_part)
            except SchemaValidationError:
                return FilterParseResult(filters=None, errors=errors)
            errors.extend(self._validate_constraints(partial))
            return FilterParseResult(filters=None, errors=errors)

        errors.extend(self._validate_constraints(model))
        if errors:
            return FilterParseResult(filters=None, errors=errors)
        return FilterParseResult(filters=self._build(model), errors=[])

    def _build(self, model: SearchFiltersModel) -> SearchFilters:
        location = None
        if model.location is not None:
            radius = model.location.radius if model.location.radius is not None else self._default_radius_m
            location = GeoPoint(lat=model.location.lat, lng=model.location.lng, radius=radius)
        budget = None
        if model.budget is not None and (model.budget.min is not None or model.budget.max is not None):
            budget = PriceBand(min=model.budget.min, max=model.budget.max)
        amenities = []
        for amenity in model.amenities:
            cleaned = _normalize_text(amenity)
            if cleaned and cleaned not in amenities:
                amenities.append(cleaned)
        return SearchFilters(
            query=_normalize_text(model.query),
            location=location,
            budget=budget,
            rooms=model.rooms or None,
            amenities=tuple(amenities),
            furnished=model.furnished,
            university=_normalize_text(model.university),
            max_commute=model.max_commute,
            district=_normalize_text(model.district),
            sort_by=SortMode(model.sort_by) if model.sort_by else SortMode.relevance,
            limit=model.limit if model.limit is not None else self._default_limit,
            offset=model.offset if model.offset is not None else 0,
        )

    def _validate_constraints(self, model: SearchFiltersModel) -> List[Dict[str, Any]]:
        errors: List[Dict[str, Any]] = []
        if model.limit is not None and not 1 <= model.limit <= self._max_limit:
            errors.append(
                {
                    "code": "value_range",
                    "message": f"limit must be between 1 and {self._max_limit}",
                    "path": "/limit",
                }
            )
        if model.offset is not None and model.offset < 0:
            errors.append(
                {
                    "code": "value_range",
                    "message": "offset must be non-negative",
                    "path": "/offset",
                }
            )
        if model.sort_by is not None and model.sort_by not in SortMode.__members__:
            errors.append(
                {
                    "code": "invalid_choice",
                    "message": "sort_by must be one of " + ", ".join(mode.value for mode in SortMode),
                    "path": "/sort_by",
                }
            )
        budget = model.budget
        if budget is not None:
            if budget.min is not None and budget.min < 0:
                errors.append(
                    {
                        "code": "value_range",
                        "message": "budget.min must be non-negative",
                        "path": "/budget/min",
                    }
                )
            if budget.max is not None and budget.max < 0:
                errors.append(
                    {
                        "code": "value_range",
                        "message": "budget.max must be non-negative",
                        "path": "/budget/max",
                    }
                )
            if budget.min is not None and budget.max is not None and budget.min > budget.max:
                errors.append(
                    {
                        "code": "value_range",
                        "message": "budget.min must be <= budget.max",
                        "path": "/budget/min",
                    }
                )
        if model.rooms is not None and model.rooms < 0:
            errors.append(
                {
                    "code": "value_range",
                    "message": "rooms must be non-negative",
                    "path": "/rooms",
                }
            )
        if model.max_commute is not None and model.max_commute < 0:
            errors.append(
                {
                    "code": "value_range",
                    "message": "max_commute must be non-negative",
                    "path": "/max_commute",
                }
            )
        location = model.location
        if location is not None:
            if not -90 <= location.lat <= 90:
                errors.append(
                    {
                        "code": "value_range",
                        "message": "location.lat must be within [-90, 90]",
                        "path": "/location/lat",
                    }
                )
            if not -180 <= location.lng <= 180:
                errors.append(
                    {
                        "code": "value_range",
                        "message": "location.lng must be within [-180, 180]",
                        "path": "/location/lng",
                    }
                )
            if location.radius is not None and location.radius <= 0:
                errors.append(
                    {
                        "code": "value_range",
                        "message": "location.radius must be positive",
                        "path": "/location/radius",
                    }
                )
        return errors


def _normalize_text(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    cleaned = " ".join(value.strip().split())
    return cleaned or None
