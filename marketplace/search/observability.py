from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List


@dataclass(frozen=True)
class SearchEvent:
    event_type: str
    details: Dict[str, Any]
    recorded_at: datetime


class SearchObservability:
    def __init__(self) -> None:
        self._events: List[SearchEvent] = []
        self._lock = threading.Lock()

    def record(self, event_type: str, **details: Any) -> None:
        event = SearchEvent(
            event_type=event_type,
            details=details,
            recorded_at=datetime.now(tz=timezone.utc),
        )
        with self._lock:
            self._events.append(event)

    def events(self) -> List[SearchEvent]:
        with self._lock:
            return list(self._events)

    def of_type(self, event_type: str) -> List[SearchEvent]:
        return [event for event in self.events() if event.event_type == event_type]
