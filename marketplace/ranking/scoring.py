"""Component scorers for apartment ranking.

Each scorer is a pure function returning a ``ComponentScore`` clamped to
[0, 1] together with the reasons, codes and trade-offs it produced.
"""
from __future__ import annotations

import math
from typing import List

from marketplace.ranking.models import (
    Candidate,
    ComponentScore,
    Explanation,
    RankedResult,
    RankingComponents,
    RankingWeights,
    UserPreferences,
)


MAX_BUDGET_PENALTY = 0.7
UNFURNISHED_MULTIPLIER = 0.2
DEFAULT_COMMUTE_LIMIT = 30.0


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return min(high, max(low, value))


def score_constraints(candidate: Candidate, preferences: UserPreferences) -> ComponentScore:
    score = 1.0
    notes: List[Explanation] = []

    if preferences.budget_max:
        overage = candidate.price - preferences.budget_max
        if overage > 0:
            score -= clamp(overage / preferences.budget_max, 0.0, MAX_BUDGET_PENALTY)
            notes.append(Explanation.trade_off(f"Over budget by {overage:,.0f} HUF", "over_budget"))
        else:
            notes.append(Explanation.reason("Within your budget", "within_budget"))

    if preferences.must_have_furnished and candidate.furnished is False:
        score *= UNFURNISHED_MULTIPLIER
        notes.append(Explanation.trade_off("Not furnished", "missing_furnished"))

    return ComponentScore(clamp(score), Explanation().merge(*notes))


def score_preferences(candidate: Candidate, preferences: UserPreferences) -> ComponentScore:
    score = 0.5
    notes: List[Explanation] = []

    if preferences.preferred_bedrooms:
        bedrooms = candidate.bedrooms if candidate.bedrooms is not None else candidate.rooms
        if bedrooms >= preferences.preferred_bedrooms:
            score += 0.2
            notes.append(Explanation.reason(f"{preferences.preferred_bedrooms}+ bedrooms", "bedroom_match"))
        else:
            score -= 0.2
            notes.append(Explanation.trade_off("Fewer bedrooms than preferred", "bedroom_shortfall"))

    if preferences.preferred_districts and candidate.district:
        district = candidate.district.lower()
        if any(preferred.lower() in district for preferred in preferences.preferred_districts):
            score += 0.15
            notes.append(Explanation.reason(f"Preferred district ({candidate.district})", "district_match"))

    if preferences.preferred_amenities:
        wanted = preferences.preferred_amenities
        matches = sum(1 for amenity in candidate.amenities if amenity in wanted)
        ratio = matches / len(wanted)
        score += ratio * 0.2
        if ratio > 0:
            notes.append(Explanation.reason("Includes preferred amenities", "amenity_match"))
        else:
            notes.append(Explanation.code("amenity_gap"))

    return ComponentScore(clamp(score), Explanation().merge(*notes))


def score_accessibility(
    candidate: Candidate,
    preferences: UserPreferences,
    *,
    default_limit: float = DEFAULT_COMMUTE_LIMIT,
) -> ComponentScore:
    commute = candidate.commute_minutes
    if commute is None:
        return ComponentScore(0.5)

    limit = preferences.max_commute_minutes or default_limit
    ratio = commute / limit
    minutes = _format_minutes(commute)
    if ratio <= 1:
        return ComponentScore(
            clamp(1 - ratio * 0.25),
            Explanation.reason(f"Commute around {minutes} minutes", "commute_match"),
        )
    return ComponentScore(
        clamp(0.5 - (ratio - 1) * 0.4),
        Explanation.trade_off(f"Commute about {minutes} minutes", "commute_long"),
    )


def score_trust(candidate: Candidate) -> ComponentScore:
    score = 0.4
    notes: List[Explanation] = []

    if candidate.verified:
        score += 0.3
        notes.append(Explanation.reason("Verified owner", "verified_owner"))

    if candidate.completeness_score is not None:
        score += (candidate.completeness_score - 0.5) * 0.3
        if candidate.completeness_score > 0.8:
            notes.append(Explanation.reason("Complete listing details", "high_completeness"))

    if candidate.media_score is not None:
        score += (candidate.media_score - 0.5) * 0.2
        if candidate.media_score > 0.8:
            notes.append(Explanation.reason("High-quality photos", "media_quality"))

    return ComponentScore(clamp(score), Explanation().merge(*notes))


def score_market(candidate: Candidate) -> ComponentScore:
    if candidate.market_value is None:
        return ComponentScore(0.5)
    value = clamp(candidate.market_value)
    if value > 0.7:
        return ComponentScore(value, Explanation.reason("Fair market price", "market_match"))
    if value < 0.4:
        return ComponentScore(value, Explanation.trade_off("Price above market averages", "market_overpriced"))
    return ComponentScore(value)


def score_engagement(candidate: Candidate) -> ComponentScore:
    views = max(0, candidate.engagement.views)
    saves = max(0, candidate.engagement.saves)
    messages = max(0, candidate.engagement.messages)

    score = (
        0.4
        + min(0.3, math.log10(views + 1) * 0.15)
        + min(0.2, saves * 0.02)
        + min(0.2, messages * 0.04)
    )
    explanation = Explanation()
    if saves > 5 or messages > 2:
        explanation = Explanation.reason("Popular with other students", "high_engagement")
    return ComponentScore(clamp(score), explanation)


def evaluate_candidate(
    candidate: Candidate,
    preferences: UserPreferences,
    weights: RankingWeights,
    *,
    default_commute_limit: float = DEFAULT_COMMUTE_LIMIT,
) -> RankedResult:
    constraint = score_constraints(candidate, preferences)
    preference = score_preferences(candidate, preferences)
    accessibility = score_accessibility(candidate, preferences, default_limit=default_commute_limit)
    trust = score_trust(candidate)
    market = score_market(candidate)
    engagement = score_engagement(candidate)

    components = RankingComponents(
        constraint=constraint.score,
        preference=preference.score,
        accessibility=accessibility.score,
        trust=trust.score,
        market=market.score,
        engagement=engagement.score,
    )
    weighted = sum(components.as_dict()[name] * weight for name, weight in weights.as_dict().items())
    final = clamp(weighted / weights.total)

    seed = Explanation(reasons=tuple(candidate.reason_hints), reason_codes=tuple(candidate.reason_codes))
    explanation = seed.merge(
        constraint.explanation,
        preference.explanation,
        accessibility.explanation,
        trust.explanation,
        market.explanation,
        engagement.explanation,
    )
    return RankedResult(
        apartment_id=candidate.id,
        score=round(final, 3),
        components=components,
        reasons=list(explanation.reasons),
        reason_codes=list(explanation.reason_codes),
        trade_offs=list(explanation.trade_offs),
        source=candidate.source,
    )


def _format_minutes(minutes: float) -> str:
    return str(int(minutes)) if float(minutes).is_integer() else f"{minutes:.1f}"
