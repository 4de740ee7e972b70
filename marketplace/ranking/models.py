from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Dict, List, Mapping, Optional, Tuple

from marketplace.common.enums import ResultSource
from marketplace.search.models import Engagement


COMPONENT_NAMES = ("constraint", "preference", "accessibility", "trust", "market", "engagement")


@dataclass(frozen=True)
class Candidate:
    id: str
    price: float
    rooms: int
    district: Optional[str] = None
    bedrooms: Optional[int] = None
    bathrooms: Optional[int] = None
    amenities: Tuple[str, ...] = ()
    verified: bool = False
    media_score: Optional[float] = None
    completeness_score: Optional[float] = None
    commute_minutes: Optional[float] = None
    market_value: Optional[float] = None
    engagement: Engagement = field(default_factory=Engagement)
    furnished: Optional[bool] = None
    has_elevator: Optional[bool] = None
    reason_hints: Tuple[str, ...] = ()
    reason_codes: Tuple[str, ...] = ()
    source: ResultSource = ResultSource.structured


@dataclass(frozen=True)
class UserPreferences:
    budget_min: Optional[float] = None
    budget_max: Optional[float] = None
    preferred_districts: Tuple[str, ...] = ()
    max_commute_minutes: Optional[float] = None
    university: Optional[str] = None
    preferred_bedrooms: Optional[int] = None
    must_have_furnished: bool = False
    preferred_amenities: Tuple[str, ...] = ()


@dataclass(frozen=True)
class RankingWeights:
    constraint: float = 0.25
    preference: float = 0.2
    accessibility: float = 0.15
    trust: float = 0.15
    market: float = 0.1
    engagement: float = 0.15

    def __post_init__(self) -> None:
        values = self.as_dict()
        for name, value in values.items():
            if value < 0:
                raise ValueError(f"Ranking weight {name} must be non-negative")
        if sum(values.values()) <= 0:
            raise ValueError("Ranking weights must not all be zero")

    @property
    def total(self) -> float:
        return sum(self.as_dict().values())

    def as_dict(self) -> Dict[str, float]:
        return {name: float(getattr(self, name)) for name in COMPONENT_NAMES}

    @classmethod
    def from_mapping(cls, values: Mapping[str, object], *, base: Optional["RankingWeights"] = None) -> "RankingWeights":
        """Overlay known component weights from ``values`` onto ``base`` (defaults when omitted)."""
        merged = (base or cls()).as_dict()
        for name in COMPONENT_NAMES:
            if name in values and values[name] is not None:
                merged[name] = float(values[name])  # type: ignore[arg-type]
        return cls(**merged)


@dataclass(frozen=True)
class Explanation:
    reasons: Tuple[str, ...] = ()
    reason_codes: Tuple[str, ...] = ()
    trade_offs: Tuple[str, ...] = ()

    @classmethod
    def reason(cls, message: str, code: str) -> "Explanation":
        return cls(reasons=(message,), reason_codes=(code,))

    @classmethod
    def trade_off(cls, message: str, code: str) -> "Explanation":
        return cls(reason_codes=(code,), trade_offs=(message,))

    @classmethod
    def code(cls, code: str) -> "Explanation":
        return cls(reason_codes=(code,))

    def merge(self, *others: "Explanation") -> "Explanation":
        reasons = list(self.reasons)
        codes = list(self.reason_codes)
        trade_offs = list(self.trade_offs)
        for other in others:
            reasons.extend(other.reasons)
            codes.extend(other.reason_codes)
            trade_offs.extend(other.trade_offs)
        return Explanation(
            reasons=tuple(dict.fromkeys(reasons)),
            reason_codes=tuple(dict.fromkeys(codes)),
            trade_offs=tuple(dict.fromkeys(trade_offs)),
        )


@dataclass(frozen=True)
class ComponentScore:
    score: float
    explanation: Explanation = Explanation()


@dataclass(frozen=True)
class RankingComponents:
    constraint: float
    preference: float
    accessibility: float
    trust: float
    market: float
    engagement: float

    def as_dict(self) -> Dict[str, float]:
        return asdict(self)


@dataclass(frozen=True)
class RankedResult:
    apartment_id: str
    score: float
    components: RankingComponents
    reasons: List[str]
    reason_codes: List[str]
    trade_offs: List[str]
    source: ResultSource = ResultSource.structured


@dataclass(frozen=True)
class RankContext:
    user_id: Optional[str] = None
    experiment_id: Optional[str] = None
    variant_id: Optional[str] = None
    log_top_n: Optional[int] = None


@dataclass(frozen=True)
class RankingEvent:
    user_id: Optional[str]
    apartment_id: str
    experiment_id: Optional[str]
    variant_id: Optional[str]
    ranking_score: float
    component_scores: Dict[str, float]
    reasons: List[str]
    position: int
    logged_at: datetime


@dataclass(frozen=True)
class RankingConfig:
    default_commute_limit_minutes: float = 30.0
    default_log_top_n: int = 5
    analytics_max_workers: int = 2
