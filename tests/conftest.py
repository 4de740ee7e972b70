from datetime import datetime, timedelta, timezone

import pytest

from marketplace.search.models import ListingRecord
from marketplace.search.repository import ListingRepository


FIXED_TIME = datetime(2026, 1, 28, tzinfo=timezone.utc)

# Deák Ferenc tér, Budapest
CENTER = (47.4979, 19.0402)


@pytest.fixture
def make_listing():
    def factory(listing_id: str, **overrides):
        values = {
            "listing_id": listing_id,
            "title": f"Apartment {listing_id}",
            "price": 150000,
            "rooms": 2,
            "district": "VII",
            "latitude": CENTER[0],
            "longitude": CENTER[1],
            "description": "Bright flat near the university",
            "created_at": FIXED_TIME,
        }
        values.update(overrides)
        return ListingRecord(**values)

    return factory


@pytest.fixture
def fixture_listings(make_listing):
    prices = [80000, 100000, 120000, 150000, 180000, 200000, 210000, 250000]
    rooms = [1, 0, 2, 1, 3, 1, 2, 4]
    return [
        make_listing(
            f"apt-{idx}",
            price=price,
            rooms=room,
            completeness_score=0.5 + idx * 0.05,
            created_at=FIXED_TIME + timedelta(days=idx),
        )
        for idx, (price, room) in enumerate(zip(prices, rooms))
    ]


@pytest.fixture
def listing_repo(fixture_listings):
    repo = ListingRepository()
    for listing in fixture_listings:
        repo.add(listing)
    return repo
