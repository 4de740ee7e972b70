import pytest

from marketplace.common.enums import SortMode
from marketplace.common.errors import ValidationError
from marketplace.search.filters import FilterNormalizer
from marketplace.search.models import DEFAULT_LIMIT, DEFAULT_RADIUS_M


def test_defaults_applied_to_empty_payload():
    filters = FilterNormalizer().normalize({})
    assert filters.sort_by == SortMode.relevance
    assert filters.limit == DEFAULT_LIMIT
    assert filters.offset == 0
    assert filters.location is None
    assert filters.budget is None
    assert filters.amenities == ()


def test_text_and_amenities_are_cleaned():
    filters = FilterNormalizer().normalize(
        {
            "query": "  quiet   flat ",
            "amenities": ["wifi", " wifi ", "balcony", ""],
            "district": " VII ",
            "location": {"latitude": 47.5, "lon": 19.05},
            "maxCommute": 25,
            "sortBy": "price_asc",
            "rooms": 0,
        }
    )
    assert filters.query == "quiet flat"
    assert filters.amenities == ("wifi", "balcony")
    assert filters.district == "VII"
    assert filters.location.lat == 47.5
    assert filters.location.lng == 19.05
    assert filters.location.radius == DEFAULT_RADIUS_M
    assert filters.max_commute == 25
    assert filters.sort_by == SortMode.price_asc
    assert filters.rooms is None


def test_every_violation_is_reported_together():
    payload = {
        "budget": {"min": 300000, "max": 100000},
        "limit": 0,
        "offset": -5,
        "sort_by": "cheapest",
        "location": {"lat": 120, "lng": 19.0, "radius": -1},
    }
    with pytest.raises(ValidationError) as excinfo:
        FilterNormalizer().normalize(payload)
    paths = {error["path"] for error in excinfo.value.errors}
    assert {"/budget/min", "/limit", "/offset", "/sort_by", "/location/lat", "/location/radius"} <= paths
    assert excinfo.value.code == "VALIDATION_ERROR"
    assert excinfo.value.details["errors"] == excinfo.value.errors


def test_schema_errors_carry_paths():
    result = FilterNormalizer().parse({"rooms": "many", "unexpected": True})
    assert result.filters is None
    assert all(error["code"] == "schema_error" for error in result.errors)
    paths = {error["path"] for error in result.errors}
    assert "/rooms" in paths
    assert "/unexpected" in paths


def test_limit_above_maximum_rejected():
    result = FilterNormalizer(max_limit=50).parse({"limit": 51})
    assert result.filters is None
    assert result.errors[0]["path"] == "/limit"


def test_type_errors_do_not_hide_range_errors():
    with pytest.raises(ValidationError) as excinfo:
        FilterNormalizer().normalize({"rooms": "many", "limit": 500, "offset": -1})
    errors = excinfo.value.errors
    assert {error["path"] for error in errors} == {"/rooms", "/limit", "/offset"}
    assert [error["code"] for error in errors if error["path"] == "/rooms"] == ["schema_error"]


def test_nested_type_error_keeps_other_violations():
    result = FilterNormalizer().parse(
        {"location": {"lat": "north", "lng": 19.0}, "budget": {"min": 10, "max": 5}, "sort_by": "cheapest"}
    )
    assert result.filters is None
    paths = {error["path"] for error in result.errors}
    assert {"/location/lat", "/budget/min", "/sort_by"} <= paths
