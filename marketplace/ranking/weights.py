from __future__ import annotations

import logging
import threading
from typing import Dict, List, Mapping, Optional, Protocol

from marketplace.common.errors import PersistenceFailure
from marketplace.ranking.models import RankingWeights

logger = logging.getLogger(__name__)


class WeightStore(Protocol):
    def latest_weights(self) -> Optional[Mapping[str, float]]:
        ...


class InMemoryWeightRepository:
    def __init__(self, rows: Optional[List[Mapping[str, float]]] = None) -> None:
        self._history: List[Dict[str, float]] = [dict(row) for row in rows or []]
        self._lock = threading.Lock()

    def record(self, weights: Mapping[str, float]) -> None:
        with self._lock:
            self._history.append(dict(weights))

    def history(self) -> List[Dict[str, float]]:
        with self._lock:
            return [dict(row) for row in self._history]

    def latest_weights(self) -> Optional[Mapping[str, float]]:
        with self._lock:
            return dict(self._history[-1]) if self._history else None


class WeightCache:
    """Lazily loads ranking weights and keeps them until invalidated.

    Reads of a cached snapshot take no lock. The first read after
    construction or ``invalidate()`` loads under a lock so only one caller
    hits the store. Store errors and invalid rows yield the default weights,
    which are cached like any other snapshot.
    """

    UNLOADED = "unloaded"
    CACHED = "cached"
    INVALIDATED = "invalidated"

    def __init__(self, store: Optional[WeightStore] = None, *, defaults: Optional[RankingWeights] = None) -> None:
        self._store = store
        self._defaults = defaults or RankingWeights()
        self._weights: Optional[RankingWeights] = None
        self._state = self.UNLOADED
        self._lock = threading.Lock()

    @property
    def state(self) -> str:
        return self._state

    def get(self) -> RankingWeights:
        weights = self._weights
        if weights is not None:
            return weights
        with self._lock:
            if self._weights is None:
                self._weights = self._load()
                self._state = self.CACHED
            return self._weights

    def invalidate(self) -> None:
        with self._lock:
            self._weights = None
            self._state = self.INVALIDATED

    def _load(self) -> RankingWeights:
        if self._store is None:
            return self._defaults
        try:
            row = self._fetch()
        except PersistenceFailure as exc:
            logger.warning("Failed to load ranking weights, using defaults: %s", exc)
            return self._defaults
        if not row:
            return self._defaults
        try:
            return RankingWeights.from_mapping(row, base=self._defaults)
        except (TypeError, ValueError) as exc:
            logger.warning("Ignoring invalid ranking weights %s: %s", dict(row), exc)
            return self._defaults

    def _fetch(self) -> Optional[Mapping[str, float]]:
        try:
            return self._store.latest_weights()  # type: ignore[union-attr]
        except PersistenceFailure:
            raise
        except Exception as exc:
            raise PersistenceFailure(f"weight store unavailable: {exc}", code="WEIGHTS_UNAVAILABLE") from exc
