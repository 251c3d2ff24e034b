"""Mini README: Job queue that starts one simulation worker per mission.

Structure:
    * RetryPolicy - attempt count and exponential backoff for a job.
    * MissionQueue - bounded-concurrency asyncio task pool keyed by mission.

``enqueue`` never starts a second job for a mission whose job is still
running. Instead the running job is flagged to run once more when it
finishes, so a resume that races a worker stopping for a pause is not lost.
Jobs that fail with a transient error are retried with exponential backoff;
errors listed as permanent (the worker already aborted the mission, or the
mission is gone) are recorded and logged without a retry. When every
attempt fails the ``on_exhausted`` hook runs so the mission is not left
ACTIVE without a worker.

Finished jobs drop out of the task table. The last result or error of each
mission is kept for at most ``history_size`` missions.
"""

from __future__ import annotations

import asyncio
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Optional, Set, Tuple, Type

from ..errors import BatteryExhausted, NotFound, WorkerFailure
from ..logging_utils import get_logger

LOGGER = get_logger(__name__)

Job = Callable[[str], Awaitable[Any]]
ExhaustedHandler = Callable[[str, BaseException], Awaitable[None]]

PERMANENT_ERRORS: Tuple[Type[BaseException], ...] = (BatteryExhausted, WorkerFailure, NotFound)


@dataclass(slots=True, frozen=True)
class RetryPolicy:
    attempts: int = 3
    backoff_seconds: float = 2.0

    def delay_for(self, attempt: int) -> float:
        """Delay before retrying after the ``attempt``-th failure (1-based)."""

        return self.backoff_seconds * (2 ** (attempt - 1))


class MissionQueue:
    """Run mission jobs as asyncio tasks with retries and a concurrency cap."""

    def __init__(
        self,
        job: Job,
        *,
        max_concurrent: int = 16,
        retry_policy: RetryPolicy = RetryPolicy(),
        permanent_errors: Tuple[Type[BaseException], ...] = PERMANENT_ERRORS,
        on_exhausted: Optional[ExhaustedHandler] = None,
        history_size: int = 1000,
    ) -> None:
        self._job = job
        self._slots = asyncio.Semaphore(max_concurrent)
        self._retry_policy = retry_policy
        self._permanent_errors = permanent_errors
        self._on_exhausted = on_exhausted
        self._history_size = history_size
        self._tasks: "OrderedDict[str, asyncio.Task]" = OrderedDict()
        self._rerun: Set[str] = set()
        self._results: "OrderedDict[str, Any]" = OrderedDict()
        self._failures: "OrderedDict[str, BaseException]" = OrderedDict()
        self._closed = False

    def enqueue(self, mission_id: str, retry_policy: Optional[RetryPolicy] = None) -> bool:
        """Schedule a job for ``mission_id``; False when one is already running."""

        if self._closed:
            raise RuntimeError("Mission queue is shut down")
        task = self._tasks.get(mission_id)
        if task is not None and not task.done():
            self._rerun.add(mission_id)
            return False
        policy = retry_policy or self._retry_policy
        self._tasks[mission_id] = asyncio.get_running_loop().create_task(
            self._run(mission_id, policy), name=f"mission-{mission_id}"
        )
        LOGGER.info("Mission %s queued for simulation", mission_id)
        return True

    def is_running(self, mission_id: str) -> bool:
        task = self._tasks.get(mission_id)
        return task is not None and not task.done()

    def running(self) -> List[str]:
        """Missions whose job is queued or in flight."""

        return [mission_id for mission_id, task in self._tasks.items() if not task.done()]

    def result(self, mission_id: str) -> Any:
        return self._results.get(mission_id)

    def last_error(self, mission_id: str) -> Optional[BaseException]:
        return self._failures.get(mission_id)

    async def join(self, mission_id: Optional[str] = None) -> None:
        """Wait until the mission's job (or every job) has finished."""

        while True:
            if mission_id is not None:
                pending = [self._tasks[mission_id]] if mission_id in self._tasks else []
            else:
                pending = list(self._tasks.values())
            pending = [task for task in pending if not task.done()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    async def shutdown(self) -> None:
        """Cancel running jobs and refuse new ones."""

        self._closed = True
        running = [task for task in self._tasks.values() if not task.done()]
        for task in running:
            task.cancel()
        await asyncio.gather(*running, return_exceptions=True)
        LOGGER.info("Mission queue shut down (%s jobs cancelled)", len(running))

    async def _run(self, mission_id: str, policy: RetryPolicy) -> None:
        try:
            while True:
                async with self._slots:
                    await self._attempt(mission_id, policy)
                if mission_id not in self._rerun:
                    return
                self._rerun.discard(mission_id)
                LOGGER.info("Mission %s was re-queued while running; running it again", mission_id)
        finally:
            self._rerun.discard(mission_id)
            if self._tasks.get(mission_id) is asyncio.current_task():
                del self._tasks[mission_id]

    async def _attempt(self, mission_id: str, policy: RetryPolicy) -> None:
        for attempt in range(1, policy.attempts + 1):
            try:
                result = await self._job(mission_id)
            except asyncio.CancelledError:
                raise
            except self._permanent_errors as error:
                self._remember(self._failures, mission_id, error)
                LOGGER.warning("Mission %s job failed: %s", mission_id, error)
                return
            except Exception as error:
                self._remember(self._failures, mission_id, error)
                if attempt >= policy.attempts:
                    LOGGER.error(
                        "Mission %s job failed after %s attempts: %s",
                        mission_id,
                        attempt,
                        error,
                    )
                    await self._exhausted(mission_id, error)
                    return
                delay = policy.delay_for(attempt)
                LOGGER.warning(
                    "Mission %s job attempt %s/%s failed (%s); retrying in %.1fs",
                    mission_id,
                    attempt,
                    policy.attempts,
                    error,
                    delay,
                )
                await asyncio.sleep(delay)
            else:
                self._failures.pop(mission_id, None)
                self._remember(self._results, mission_id, result)
                LOGGER.info("Mission %s job finished: %s", mission_id, result)
                return

    def _remember(self, records: "OrderedDict[str, Any]", mission_id: str, value: Any) -> None:
        records.pop(mission_id, None)
        records[mission_id] = value
        while len(records) > self._history_size:
            records.popitem(last=False)

    async def _exhausted(self, mission_id: str, error: BaseException) -> None:
        if self._on_exhausted is None:
            return
        try:
            await self._on_exhausted(mission_id, error)
        except Exception:
            LOGGER.exception("Recovery for mission %s failed", mission_id)
