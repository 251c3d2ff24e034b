"""Mini README: In-process telemetry fan-out.

Structure:
    * Topic constants - the event names consumers subscribe to.
    * TelemetryEvent - a published payload stamped with a hub-wide sequence.
    * TelemetrySink - protocol the engine publishes through.
    * TelemetryHub - keeps a bounded history and fans events out to
      synchronous listeners and asyncio subscriber queues.

Publishing is fire-and-forget: a failing listener is logged and skipped, and
a subscriber whose queue is full misses the event rather than blocking the
simulation tick that produced it.
"""

from __future__ import annotations

import asyncio
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Deque, Dict, List, Optional, Protocol

from ..logging_utils import get_logger

LOGGER = get_logger(__name__)

DRONE_POSITION = "drone:position"
MISSION_PROGRESS = "mission:progress"
MISSION_STATUS = "mission:status"
FLEET_STATS = "fleet:stats"


@dataclass(slots=True, frozen=True)
class TelemetryEvent:
    sequence: int
    topic: str
    payload: Dict[str, Any]
    published_at: datetime

    def as_dict(self) -> Dict[str, Any]:
        return {
            "sequence": self.sequence,
            "topic": self.topic,
            "payload": dict(self.payload),
            "published_at": self.published_at.isoformat(),
        }


class TelemetrySink(Protocol):
    def publish(self, topic: str, payload: Dict[str, Any]) -> Any:
        ...


Listener = Callable[[TelemetryEvent], None]


class TelemetryHub:
    """Publish telemetry to listeners, subscriber queues and a history buffer."""

    def __init__(self, *, history_size: int = 1000) -> None:
        self._sequence = 0
        self._history: Deque[TelemetryEvent] = deque(maxlen=history_size)
        self._listeners: List[Listener] = []
        self._subscribers: List[asyncio.Queue] = []

    def publish(self, topic: str, payload: Dict[str, Any]) -> TelemetryEvent:
        self._sequence += 1
        event = TelemetryEvent(
            sequence=self._sequence,
            topic=topic,
            payload=dict(payload),
            published_at=datetime.now(timezone.utc),
        )
        self._history.append(event)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                LOGGER.exception("Telemetry listener failed for %s", topic)
        for queue in list(self._subscribers):
            try:
                queue.put_nowait(event)
            except asyncio.QueueFull:
                LOGGER.debug("Subscriber queue full; dropping %s #%s", topic, event.sequence)
        return event

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def subscribe(self, maxsize: int = 256) -> asyncio.Queue:
        """Return a queue receiving every event published from now on."""

        queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._subscribers.append(queue)
        LOGGER.debug("Telemetry subscriber added (%s total)", len(self._subscribers))
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        if queue in self._subscribers:
            self._subscribers.remove(queue)

    def history(self, topic: Optional[str] = None) -> List[TelemetryEvent]:
        """Return retained events in publication order, optionally for one topic."""

        return [event for event in self._history if topic is None or event.topic == topic]
