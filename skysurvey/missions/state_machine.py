"""Mini README: Mission lifecycle rules and per-mission coordination.

Structure:
    * MissionOperation - operations that move a mission between statuses.
    * TRANSITIONS - legal source statuses and the target of each operation.
    * next_status - validate an operation and return the target status.
    * MissionControl - lock and wake signal shared by a mission's simulation
      worker and the operations that change its status.

Lifecycle::

    PLANNED --start--> ACTIVE <--pause/resume--> PAUSED
    PLANNED | ACTIVE | PAUSED --abort--> ABORTED
    ACTIVE --complete--> COMPLETED       (simulation engine only)
    PLANNED --fail--> FAILED             (planner or infrastructure errors)

``MissionControl.lock`` is the serialization point for status: external
operations write status while holding it, and the worker reads status and
emits a tick's updates while holding it, so no tick can be emitted after an
abort is recorded. ``wake`` is set after every status write so a worker
waiting between ticks reacts immediately.
"""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import Dict, FrozenSet, List, Tuple

from ..errors import InvalidTransition
from .models import MissionStatus


class MissionOperation(str, Enum):
    START = "start"
    PAUSE = "pause"
    RESUME = "resume"
    ABORT = "abort"
    COMPLETE = "complete"
    FAIL = "fail"


TRANSITIONS: Dict[MissionOperation, Tuple[FrozenSet[MissionStatus], MissionStatus]] = {
    MissionOperation.START: (
        frozenset({MissionStatus.PLANNED, MissionStatus.PAUSED}),
        MissionStatus.ACTIVE,
    ),
    MissionOperation.PAUSE: (frozenset({MissionStatus.ACTIVE}), MissionStatus.PAUSED),
    MissionOperation.RESUME: (frozenset({MissionStatus.PAUSED}), MissionStatus.ACTIVE),
    MissionOperation.ABORT: (
        frozenset({MissionStatus.PLANNED, MissionStatus.ACTIVE, MissionStatus.PAUSED}),
        MissionStatus.ABORTED,
    ),
    MissionOperation.COMPLETE: (frozenset({MissionStatus.ACTIVE}), MissionStatus.COMPLETED),
    MissionOperation.FAIL: (frozenset({MissionStatus.PLANNED}), MissionStatus.FAILED),
}

TERMINAL_STATUSES = frozenset(
    {MissionStatus.COMPLETED, MissionStatus.ABORTED, MissionStatus.FAILED}
)


def next_status(
    mission_id: str, current: MissionStatus, operation: MissionOperation
) -> MissionStatus:
    """Return the status ``operation`` leads to, or raise ``InvalidTransition``."""

    sources, target = TRANSITIONS[operation]
    if current not in sources:
        raise InvalidTransition(mission_id, operation.value, current.value)
    return target


def allowed_operations(status: MissionStatus) -> List[MissionOperation]:
    return [operation for operation, (sources, _) in TRANSITIONS.items() if status in sources]


class MissionControl:
    """Coordination primitives for one mission."""

    def __init__(self) -> None:
        self.lock = asyncio.Lock()
        self.wake = asyncio.Event()

    def signal(self) -> None:
        self.wake.set()

    async def wait_tick(self, seconds: float) -> None:
        """Sleep for one tick, returning early when the mission is signalled."""

        if seconds <= 0:
            await asyncio.sleep(0)
            return
        try:
            await asyncio.wait_for(self.wake.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass
