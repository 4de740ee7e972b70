from marketplace.common.enums import ListingStatus, ResultSource, SortMode
from marketplace.search.commute import best_commute_minutes, commute_allows, parse_commute_cache
from marketplace.search.filters import FilterNormalizer
from marketplace.search.models import GeoPoint, PriceBand, SearchFilters
from marketplace.search.repository import ListingRepository
from marketplace.search.service import SearchService


def _ids(results):
    return [result.apartment_id for result in results]


def test_budget_and_rooms_filter_has_no_false_positives_or_negatives(listing_repo, fixture_listings):
    service = SearchService(listing_repo)
    filters = FilterNormalizer().normalize({"budget": {"min": 100000, "max": 200000}, "rooms": 1, "limit": 100})
    results = service.structured_search(filters)
    expected = {
        listing.listing_id
        for listing in fixture_listings
        if 100000 <= listing.price <= 200000 and listing.rooms >= 1
    }
    assert set(_ids(results)) == expected
    assert all(result.source == ResultSource.structured for result in results)
    assert service.get_structured_count(filters) == len(expected)


def test_structured_scores_decay_by_position(listing_repo):
    service = SearchService(listing_repo)
    results = service.structured_search(SearchFilters(limit=3))
    assert [result.score for result in results] == [0.9, 0.89, 0.88]


def test_relevance_orders_by_completeness(listing_repo):
    service = SearchService(listing_repo)
    results = service.structured_search(SearchFilters(limit=3))
    assert _ids(results) == ["apt-7", "apt-6", "apt-5"]


def test_pagination_pages_do_not_overlap(make_listing):
    repo = ListingRepository()
    for idx in range(25):
        repo.add(make_listing(f"apt-{idx:02d}", price=100000 + idx * 1000))
    service = SearchService(repo)
    base = SearchFilters(sort_by=SortMode.price_asc)
    first = _ids(service.structured_search(base.page(limit=10, offset=0)))
    second = _ids(service.structured_search(base.page(limit=10, offset=10)))
    top_twenty = _ids(service.structured_search(base.page(limit=20, offset=0)))
    assert not set(first) & set(second)
    assert first + second == top_twenty
    assert service.get_structured_count(base) == 25


def test_sort_modes(listing_repo):
    service = SearchService(listing_repo)
    ascending = service.structured_search(SearchFilters(sort_by=SortMode.price_asc, limit=100))
    descending = service.structured_search(SearchFilters(sort_by=SortMode.price_desc, limit=100))
    newest = service.structured_search(SearchFilters(sort_by=SortMode.newest, limit=2))
    prices = [result.apartment.price for result in ascending]
    assert prices == sorted(prices)
    assert _ids(descending) == list(reversed(_ids(ascending)))
    assert _ids(newest) == ["apt-7", "apt-6"]


def test_amenities_match_any_and_unpublished_hidden(make_listing):
    repo = ListingRepository()
    repo.add(make_listing("wifi", amenities=("wifi",)))
    repo.add(make_listing("balcony", amenities=("balcony", "elevator")))
    repo.add(make_listing("none"))
    repo.add(make_listing("draft", amenities=("wifi",), status=ListingStatus.draft))
    service = SearchService(repo)
    results = service.structured_search(SearchFilters(amenities=("wifi", "balcony")))
    assert set(_ids(results)) == {"wifi", "balcony"}
    assert all("amenity_match" in result.reason_codes for result in results)


def test_radius_filter_and_distance_sort(make_listing):
    repo = ListingRepository()
    repo.add(make_listing("near", latitude=47.4985, longitude=19.0410))
    repo.add(make_listing("mid", latitude=47.5100, longitude=19.0500))
    repo.add(make_listing("far", latitude=47.6500, longitude=19.2000))
    service = SearchService(repo)
    filters = SearchFilters(location=GeoPoint(lat=47.4979, lng=19.0402, radius=5000), sort_by=SortMode.distance)
    results = service.structured_search(filters)
    assert _ids(results) == ["near", "mid"]
    assert results[0].distance < results[1].distance
    assert "close_by" in results[0].reason_codes


def test_commute_filter_keeps_listings_without_cached_entry(make_listing):
    repo = ListingRepository()
    repo.add(make_listing("short", commute_cache={"ELTE": {"transit": 15.0, "walking": 40.0}}))
    repo.add(make_listing("long", commute_cache={"ELTE": {"transit": 45.0}}))
    repo.add(make_listing("other-campus", commute_cache={"BME": {"transit": 60.0}}))
    repo.add(make_listing("unknown"))
    service = SearchService(repo)
    results = service.structured_search(SearchFilters(university="ELTE", max_commute=30))
    assert set(_ids(results)) == {"short", "other-campus", "unknown"}
    short = [result for result in results if result.apartment_id == "short"][0]
    assert "~15 min to target campus" in short.reasons
    assert "short_commute" in short.reason_codes


def test_commute_cache_parsing_is_lenient():
    cache = parse_commute_cache(
        '{"ELTE": {"transit": {"minutes": 18}, "bike": {"travelMinutes": "12"}, "car": {"eta": 3}},'
        ' "BME": "broken", "CEU": {"walking": 9}}'
    )
    assert cache == {"ELTE": {"transit": 18.0, "bike": 12.0}, "CEU": {"walking": 9.0}}
    assert parse_commute_cache("not json") == {}
    assert best_commute_minutes(cache, "ELTE") == 12.0
    assert best_commute_minutes(cache) == 9.0
    assert best_commute_minutes(cache, "BME") is None
    assert commute_allows(cache, "ELTE", 10) is False
    assert commute_allows(cache, "BME", 10) is True


def test_budget_filter_is_inclusive(make_listing):
    repo = ListingRepository()
    repo.add(make_listing("edge-low", price=100000))
    repo.add(make_listing("edge-high", price=200000))
    repo.add(make_listing("outside", price=200001))
    service = SearchService(repo)
    results = service.structured_search(SearchFilters(budget=PriceBand(min=100000, max=200000)))
    assert set(_ids(results)) == {"edge-low", "edge-high"}
