from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from marketplace.ranking.analytics import AnalyticsSink, RankingEventLogger
from marketplace.ranking.models import (
    Candidate,
    RankContext,
    RankedResult,
    RankingConfig,
    RankingWeights,
    UserPreferences,
)
from marketplace.ranking.scoring import evaluate_candidate
from marketplace.ranking.weights import WeightCache, WeightStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RankingObservabilityEvent:
    event_type: str
    details: Dict[str, object]


class RankingObservability:
    def __init__(self) -> None:
        self._events: List[RankingObservabilityEvent] = []
        self._lock = threading.Lock()

    def record(self, event_type: str, **details: object) -> None:
        with self._lock:
            self._events.append(RankingObservabilityEvent(event_type=event_type, details=details))

    def events(self) -> List[RankingObservabilityEvent]:
        with self._lock:
            return list(self._events)


class RankingService:
    """Scores candidates against user preferences with the current weights.

    Ranking never fails because of persistence: weights fall back to the
    defaults and analytics writes happen in the background.
    """

    def __init__(
        self,
        *,
        weight_store: Optional[WeightStore] = None,
        analytics_sink: Optional[AnalyticsSink] = None,
        config: Optional[RankingConfig] = None,
        observability: Optional[RankingObservability] = None,
        executor: Optional[ThreadPoolExecutor] = None,
    ) -> None:
        self._config = config or RankingConfig()
        self._observability = observability or RankingObservability()
        self._weights = WeightCache(weight_store)
        self._analytics = RankingEventLogger(
            analytics_sink,
            executor=executor,
            max_workers=self._config.analytics_max_workers,
            default_top_n=self._config.default_log_top_n,
        )

    @property
    def observability(self) -> RankingObservability:
        return self._observability

    @property
    def analytics(self) -> RankingEventLogger:
        return self._analytics

    @property
    def weights(self) -> RankingWeights:
        return self._weights.get()

    def rank_apartments(
        self,
        candidates: Sequence[Candidate],
        preferences: UserPreferences,
        context: Optional[RankContext] = None,
    ) -> List[RankedResult]:
        if not candidates:
            return []
        weights = self._weights.get()
        scored = [
            evaluate_candidate(
                candidate,
                preferences,
                weights,
                default_commute_limit=self._config.default_commute_limit_minutes,
            )
            for candidate in candidates
        ]
        ranked = sorted(scored, key=lambda item: -item.score)
        self._observability.record(
            "ranked",
            candidate_count=len(ranked),
            top_score=ranked[0].score,
            weights_state=self._weights.state,
        )
        self.log_ranking_results(ranked, context or RankContext())
        return ranked

    def log_ranking_results(self, ranked: Sequence[RankedResult], context: RankContext) -> None:
        future = self._analytics.submit(ranked, context)
        if future is not None:
            self._observability.record("analytics_submitted", user_id=context.user_id)

    def invalidate_weight_cache(self) -> None:
        self._weights.invalidate()
        logger.info("Ranking weight cache invalidated")
        self._observability.record("weights_invalidated")

    def close(self) -> None:
        self._analytics.close()
