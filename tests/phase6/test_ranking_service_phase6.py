from concurrent.futures import ThreadPoolExecutor
import threading

import pytest

from marketplace.common.enums import ResultSource
from marketplace.common.errors import PersistenceFailure
from marketplace.ranking.analytics import InMemoryRankingEventRepository, build_ranking_events
from marketplace.ranking.candidates import candidate_from_listing, candidate_from_result, market_value
from marketplace.ranking.models import Candidate, RankContext, RankingWeights, UserPreferences
from marketplace.ranking.service import RankingService
from marketplace.ranking.weights import InMemoryWeightRepository, WeightCache
from marketplace.search.models import Engagement, ListingMatch
from marketplace.search.results import build_result


class FailingWeightStore:
    def __init__(self):
        self.calls = 0

    def latest_weights(self):
        self.calls += 1
        raise ConnectionError("database offline")


class CountingWeightStore(InMemoryWeightRepository):
    def __init__(self, rows=None):
        super().__init__(rows)
        self.calls = 0

    def latest_weights(self):
        self.calls += 1
        return super().latest_weights()


class FailingSink:
    def __init__(self):
        self.attempts = 0

    def log_ranking_events(self, events):
        self.attempts += 1
        raise PersistenceFailure("analytics table locked")


def _candidates():
    return [
        Candidate(id="cheap", price=90000, rooms=2, verified=True, market_value=0.9),
        Candidate(id="pricey", price=400000, rooms=1, market_value=0.2),
        Candidate(id="middle", price=150000, rooms=2),
    ]


def test_rank_orders_by_final_score():
    service = RankingService()
    ranked = service.rank_apartments(_candidates(), UserPreferences(budget_max=200000))
    assert [item.apartment_id for item in ranked] == ["cheap", "middle", "pricey"]
    scores = [item.score for item in ranked]
    assert scores == sorted(scores, reverse=True)
    assert "over_budget" in ranked[-1].reason_codes
    assert ranked[-1].trade_offs


def test_rank_empty_candidates():
    assert RankingService().rank_apartments([], UserPreferences()) == []


def test_weight_store_failure_uses_defaults():
    store = FailingWeightStore()
    service = RankingService(weight_store=store)
    ranked = service.rank_apartments(_candidates(), UserPreferences())
    assert len(ranked) == 3
    assert service.weights == RankingWeights()
    service.rank_apartments(_candidates(), UserPreferences())
    assert store.calls == 1


def test_weight_cache_lifecycle():
    store = CountingWeightStore([{"market": 0.4}])
    cache = WeightCache(store)
    assert cache.state == WeightCache.UNLOADED
    assert cache.get().market == 0.4
    assert cache.state == WeightCache.CACHED
    store.record({"market": 0.05, "engagement": 0.3})
    assert cache.get().market == 0.4
    cache.invalidate()
    assert cache.state == WeightCache.INVALIDATED
    weights = cache.get()
    assert weights.market == 0.05
    assert weights.engagement == 0.3
    assert weights.constraint == 0.25
    assert store.calls == 2


def test_invalid_weight_row_falls_back_to_defaults():
    cache = WeightCache(InMemoryWeightRepository([{name: 0 for name in RankingWeights().as_dict()}]))
    assert cache.get() == RankingWeights()
    cache = WeightCache(InMemoryWeightRepository([{"trust": -1}]))
    assert cache.get() == RankingWeights()
    assert WeightCache(InMemoryWeightRepository()).get() == RankingWeights()


def test_weight_cache_loads_once_under_concurrency():
    store = CountingWeightStore([{"trust": 0.3}])
    cache = WeightCache(store)
    barrier = threading.Barrier(8)

    def read():
        barrier.wait()
        return cache.get()

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(lambda _: read(), range(8)))
    assert store.calls == 1
    assert all(result.trust == 0.3 for result in results)


def test_invalidate_weight_cache_reloads_service_weights():
    store = InMemoryWeightRepository([{"constraint": 1.0}])
    service = RankingService(weight_store=store)
    assert service.weights.constraint == 1.0
    store.record({"constraint": 0.5})
    service.invalidate_weight_cache()
    assert service.weights.constraint == 0.5


def test_top_results_logged_to_analytics():
    sink = InMemoryRankingEventRepository()
    service = RankingService(analytics_sink=sink)
    context = RankContext(user_id="u1", experiment_id="ranking_v1", variant_id="b", log_top_n=2)
    ranked = service.rank_apartments(_candidates(), UserPreferences(), context)
    service.analytics.wait(timeout=5)
    events = sink.list()
    assert [event.apartment_id for event in events] == [item.apartment_id for item in ranked[:2]]
    assert [event.position for event in events] == [1, 2]
    assert events[0].user_id == "u1"
    assert events[0].variant_id == "b"
    assert set(events[0].component_scores) == {
        "constraint",
        "preference",
        "accessibility",
        "trust",
        "market",
        "engagement",
    }
    service.close()


def test_default_log_top_n_is_five():
    service = RankingService()
    candidates = [Candidate(id=f"c{idx}", price=100000, rooms=1) for idx in range(8)]
    ranked = service.rank_apartments(candidates, UserPreferences())
    assert len(build_ranking_events(ranked, RankContext(user_id="u"))) == 5


def test_analytics_failure_does_not_fail_ranking():
    sink = FailingSink()
    service = RankingService(analytics_sink=sink)
    ranked = service.rank_apartments(_candidates(), UserPreferences(), RankContext(user_id="u1"))
    service.analytics.wait(timeout=5)
    assert len(ranked) == 3
    assert sink.attempts == 1
    service.close()


def test_market_value_prefers_suggested_price():
    assert market_value(100000, 100000, 50000) == 1.0
    assert market_value(120000, 100000, None) == pytest.approx(0.8)
    assert market_value(150000, None, 100000) == pytest.approx(0.5)
    assert market_value(300000, 100000, None) == 0.0
    assert market_value(100000, None, None) == 0.5


def test_candidate_projection_from_search_result(make_listing):
    listing = make_listing(
        "a1",
        bedrooms=2,
        furnished=True,
        owner_verified=True,
        suggested_price=150000,
        engagement=Engagement(views=10, saves=2, messages=1),
        commute_cache={"ELTE": {"transit": 12.0}},
    )
    result = build_result(ListingMatch(listing=listing, commute_minutes=12.0), source=ResultSource.keyword, score=0.8)

    summary_only = candidate_from_result(result)
    assert summary_only.media_score == 0.6
    assert summary_only.completeness_score == 0.6
    assert summary_only.market_value == 1.0
    assert summary_only.commute_minutes == 12.0
    assert summary_only.reason_hints == tuple(result.reasons)
    assert summary_only.source == ResultSource.keyword

    hydrated = candidate_from_result(result, listing)
    assert hydrated.bedrooms == 2
    assert hydrated.furnished is True
    assert hydrated.engagement.saves == 2
    assert hydrated.reason_codes == tuple(result.reason_codes)

    direct = candidate_from_listing(listing)
    assert direct.commute_minutes is None
    assert direct.verified is True


def test_ranking_without_context_still_logs_anonymously():
    sink = InMemoryRankingEventRepository()
    service = RankingService(analytics_sink=sink)
    ranked = service.rank_apartments(_candidates(), UserPreferences())
    service.analytics.wait(timeout=5)
    events = sink.list()
    assert [event.apartment_id for event in events] == [item.apartment_id for item in ranked]
    assert all(event.user_id is None for event in events)
    assert all(event.experiment_id is None and event.variant_id is None for event in events)
    service.close()
