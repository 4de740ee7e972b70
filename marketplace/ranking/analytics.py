from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from datetime import datetime, timezone
from typing import List, Optional, Protocol, Sequence

from marketplace.ranking.models import RankContext, RankedResult, RankingEvent

logger = logging.getLogger(__name__)

DEFAULT_LOG_TOP_N = 5


class AnalyticsSink(Protocol):
    def log_ranking_events(self, events: Sequence[RankingEvent]) -> None:
        ...


class InMemoryRankingEventRepository:
    def __init__(self) -> None:
        self._events: List[RankingEvent] = []
        self._lock = threading.Lock()

    def log_ranking_events(self, events: Sequence[RankingEvent]) -> None:
        with self._lock:
            self._events.extend(events)

    def list(self) -> List[RankingEvent]:
        with self._lock:
            return list(self._events)


def build_ranking_events(
    ranked: Sequence[RankedResult],
    context: RankContext,
    *,
    default_top_n: int = DEFAULT_LOG_TOP_N,
    logged_at: Optional[datetime] = None,
) -> List[RankingEvent]:
    top_n = context.log_top_n if context.log_top_n is not None else default_top_n
    timestamp = logged_at or datetime.now(tz=timezone.utc)
    return [
        RankingEvent(
            user_id=context.user_id,
            apartment_id=result.apartment_id,
            experiment_id=context.experiment_id,
            variant_id=context.variant_id,
            ranking_score=result.score,
            component_scores=result.components.as_dict(),
            reasons=list(result.reasons),
            position=position,
            logged_at=timestamp,
        )
        for position, result in enumerate(ranked[: max(0, top_n)], start=1)
    ]


class RankingEventLogger:
    """Writes ranking events to the sink off the request path."""

    def __init__(
        self,
        sink: Optional[AnalyticsSink],
        *,
        executor: Optional[ThreadPoolExecutor] = None,
        max_workers: int = 2,
        default_top_n: int = DEFAULT_LOG_TOP_N,
    ) -> None:
        self._sink = sink
        self._default_top_n = default_top_n
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="ranking-analytics")
        self._pending: List[Future] = []
        self._lock = threading.Lock()

    def submit(self, ranked: Sequence[RankedResult], context: RankContext) -> Optional[Future]:
        if self._sink is None or not ranked:
            return None
        events = build_ranking_events(ranked, context, default_top_n=self._default_top_n)
        if not events:
            return None
        future = self._executor.submit(self._write, events)
        with self._lock:
            self._pending = [item for item in self._pending if not item.done()]
            self._pending.append(future)
        return future

    def wait(self, timeout: Optional[float] = None) -> None:
        with self._lock:
            pending = list(self._pending)
        wait(pending, timeout=timeout)

    def close(self) -> None:
        if self._owns_executor:
            self._executor.shutdown(wait=True)

    def _write(self, events: List[RankingEvent]) -> None:
        try:
            self._sink.log_ranking_events(events)  # type: ignore[union-attr]
        except Exception as exc:
            logger.warning("Failed to log %d ranking events: %s", len(events), exc)
