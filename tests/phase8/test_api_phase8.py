from fastapi.testclient import TestClient

from marketplace.ranking.service import RankingService
from marketplace.ranking.weights import InMemoryWeightRepository
from marketplace.search.repository import ListingRepository
from marketplace.search.service import SearchService


def _search_client(monkeypatch, listing_repo):
    import marketplace.search.app as search_app

    monkeypatch.setattr(search_app, "_listing_repo", listing_repo)
    monkeypatch.setattr(search_app, "_service", SearchService(listing_repo))
    return TestClient(search_app.app)


def test_search_api_contract(monkeypatch, listing_repo):
    client = _search_client(monkeypatch, listing_repo)
    response = client.post(
        "/search",
        json={
            "schema_version": "v1",
            "mode": "structured",
            "filters": {"budget": {"min": 100000, "max": 200000}, "rooms": 1, "limit": 2},
        },
    )
    assert response.status_code == 200
    data = response.json()
    assert data["schema_version"] == "v1"
    assert data["status"] == "ok"
    assert len(data["data"]["results"]) == 2
    assert data["data"]["total"] == 4
    first = data["data"]["results"][0]
    assert first["source"] == "structured"
    assert first["reason_codes"]
    assert 100000 <= first["price"] <= 200000


def test_search_api_hybrid_with_query(monkeypatch, listing_repo):
    client = _search_client(monkeypatch, listing_repo)
    response = client.post("/search", json={"schema_version": "v1", "query": "bright flat"})
    data = response.json()
    assert response.status_code == 200
    assert data["data"]["mode"] == "hybrid"
    assert data["data"]["query"] == "bright flat"
    assert data["data"]["total"] == 8
    assert {item["source"] for item in data["data"]["results"]} == {"keyword"}


def test_search_api_rejects_invalid_filters(monkeypatch, listing_repo):
    client = _search_client(monkeypatch, listing_repo)
    response = client.post(
        "/search",
        json={"schema_version": "v1", "filters": {"limit": 0, "budget": {"min": 5, "max": 1}}},
    )
    assert response.status_code == 400
    error = response.json()["error"]
    assert error["code"] == "VALIDATION_ERROR"
    assert {item["path"] for item in error["details"]["errors"]} == {"/limit", "/budget/min"}

    response = client.post("/search", json={"schema_version": "v2"})
    assert response.status_code == 400


def test_ranking_api_contract(monkeypatch, make_listing):
    import marketplace.ranking.app as ranking_app

    repo = ListingRepository()
    repo.add(make_listing("a1", price=120000, owner_verified=True, commute_cache={"ELTE": {"transit": 10.0}}))
    repo.add(make_listing("a2", price=260000))
    monkeypatch.setattr(ranking_app, "_listing_repo", repo)
    monkeypatch.setattr(ranking_app, "_service", RankingService(weight_store=InMemoryWeightRepository()))

    client = TestClient(ranking_app.app)
    response = client.post(
        "/ranking/rank",
        json={
            "schema_version": "v1",
            "apartment_ids": ["a2", "a1"],
            "preferences": {"budget_max": 200000, "university": "ELTE"},
        },
    )
    assert response.status_code == 200
    data = response.json()["data"]
    assert [item["apartment_id"] for item in data["results"]] == ["a1", "a2"]
    assert data["results"][0]["rank"] == 1
    assert "commute_match" in data["results"][0]["reason_codes"]
    assert data["results"][1]["trade_offs"] == ["Over budget by 60,000 HUF"]
    assert data["stats"]["total"] == 2
    assert data["stats"]["top_score"] == data["results"][0]["score"]
    assert data["stats"]["bottom_score"] == data["results"][1]["score"]

    missing = client.post("/ranking/rank", json={"schema_version": "v1", "apartment_ids": ["nope"]})
    assert missing.status_code == 404
    assert missing.json()["error"]["details"] == {"apartment_ids": ["nope"]}
