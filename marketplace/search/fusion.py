from __future__ import annotations

from dataclasses import replace
from typing import Dict, List, Optional, Sequence

from marketplace.common.enums import ResultSource
from marketplace.search.models import DEFAULT_LIMIT, SearchResult
from marketplace.search.utils import dedupe


class FusionEngine:
    """Max-score fusion of ranked lists.

    A listing surfaced by several strategies keeps its best score and the
    union of every justification; a more specific source tag replaces
    ``structured``.
    """

    def __init__(self, *, top_n: int = DEFAULT_LIMIT) -> None:
        if top_n <= 0:
            raise ValueError("top_n must be positive")
        self._top_n = top_n

    @property
    def top_n(self) -> int:
        return self._top_n

    def merge(self, result_lists: Sequence[Sequence[SearchResult]], *, top_n: Optional[int] = None) -> List[SearchResult]:
        combined: Dict[str, SearchResult] = {}
        for results in result_lists:
            for result in results:
                existing = combined.get(result.apartment_id)
                if existing is None:
                    combined[result.apartment_id] = result
                    continue
                combined[result.apartment_id] = _merge_pair(existing, result)
        ordered = sorted(combined.values(), key=lambda item: -item.score)
        return ordered[: top_n or self._top_n]

    def merge_weighted(
        self,
        result_lists: Sequence[Sequence[SearchResult]],
        weights: Optional[Sequence[float]] = None,
        *,
        top_n: Optional[int] = None,
    ) -> List[SearchResult]:
        if not result_lists:
            return []
        weights = list(weights or [])
        weighted: List[List[SearchResult]] = []
        for index, results in enumerate(result_lists):
            weight = weights[index] if index < len(weights) and weights[index] is not None else 1.0
            if weight < 0:
                raise ValueError("fusion weights must be non-negative")
            weighted.append([replace(result, score=round(result.score * weight, 4)) for result in results])
        return self.merge(weighted, top_n=top_n)


def _merge_pair(existing: SearchResult, incoming: SearchResult) -> SearchResult:
    source = existing.source
    if existing.source == ResultSource.structured:
        source = incoming.source
    return replace(
        existing,
        score=max(existing.score, incoming.score),
        reasons=dedupe(list(existing.reasons) + list(incoming.reasons)),
        reason_codes=dedupe(list(existing.reason_codes) + list(incoming.reason_codes)),
        source=source,
        distance=existing.distance if existing.distance is not None else incoming.distance,
    )
