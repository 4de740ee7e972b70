from __future__ import annotations

import json
import math
from typing import Any, Dict, Optional

from marketplace.search.models import CommuteCache


MINUTE_KEYS = ("minutes", "travelMinutes", "travel_minutes")


def parse_commute_cache(raw: Any) -> CommuteCache:
    """Parse the loosely typed ``university -> mode -> {minutes}`` blob stored on a listing.

    Malformed universities or modes are skipped rather than rejected.
    """
    data = raw
    if isinstance(data, (str, bytes)):
        try:
            data = json.loads(data)
        except ValueError:
            return {}
    if not isinstance(data, dict):
        return {}
    parsed: CommuteCache = {}
    for university, modes in data.items():
        if not isinstance(modes, dict):
            continue
        mode_minutes: Dict[str, float] = {}
        for mode, entry in modes.items():
            minutes = _entry_minutes(entry)
            if minutes is not None:
                mode_minutes[str(mode)] = minutes
        if mode_minutes:
            parsed[str(university)] = mode_minutes
    return parsed


def _entry_minutes(entry: Any) -> Optional[float]:
    raw = entry
    if isinstance(entry, dict):
        raw = None
        for key in MINUTE_KEYS:
            if entry.get(key) is not None:
                raw = entry[key]
                break
    if raw is None or isinstance(raw, bool):
        return None
    try:
        minutes = float(raw)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(minutes):
        return None
    return minutes


def best_commute_minutes(cache: CommuteCache, university: Optional[str] = None) -> Optional[float]:
    """Shortest cached commute for ``university`` (or across every university when None)."""
    universities = [university] if university else list(cache.keys())
    best: Optional[float] = None
    for name in universities:
        for minutes in (cache.get(name) or {}).values():
            if best is None or minutes < best:
                best = minutes
    return best


def commute_allows(cache: CommuteCache, university: Optional[str], max_commute: Optional[float]) -> bool:
    """Commute filter: a listing without cached data for the university is never excluded."""
    if not university and max_commute is None:
        return True
    entries = [cache[university]] if university and university in cache else []
    if not university:
        entries = list(cache.values())
    if not entries:
        return True
    if max_commute is None:
        return True
    return any(minutes <= max_commute for modes in entries for minutes in modes.values())
