from __future__ import annotations

import logging
from collections import defaultdict
from typing import Callable, DefaultDict

from gridnum.contracts import NarrativeEvent
from gridnum.core.ids import new_event_id, now_utc

logger = logging.getLogger(__name__)

NarrativeHandler = Callable[[NarrativeEvent], None]


class EventBus:
    def __init__(self) -> None:
        self._narrative_handlers: list[NarrativeHandler] = []
        self._counter: DefaultDict[str, int] = defaultdict(int)

    def subscribe_narrative(self, handler: NarrativeHandler) -> None:
        self._narrative_handlers.append(handler)

    def publish_narrative(self, event: NarrativeEvent) -> None:
        self._counter[event.event_type] += 1
        for handler in self._narrative_handlers:
            # a failing subscriber must not take the others (or the caller) down with it
            try:
                handler(event)
            except Exception:
                logger.exception("narrative handler failed for %s", event.event_type)

    def emitted_count(self, event_type: str | None = None) -> int:
        if event_type is None:
            return sum(self._counter.values())
        return self._counter[event_type]


def game_event(game_id: str, event_type: str, actors: list[str], claims: list[str], severity: str = "normal") -> NarrativeEvent:
    return NarrativeEvent(
        event_id=new_event_id(game_id, event_type),
        time=now_utc(),
        scope=game_id,
        event_type=event_type,
        actors=actors,
        claims=claims,
        evidence_handles=[],
        severity=severity,
    )
