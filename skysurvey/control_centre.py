"""Mini README: Wiring of the SkySurvey subsystems.

Structure:
    * MissionControlCentre - holds one instance of every subsystem and
      connects the mission service to the job queue and simulator.

Usage:
    ``MissionControlCentre.build(settings)`` is what the HTTP interface and
    the CLI use. Tests build one with ``tick_seconds=0`` so missions fly as
    fast as the event loop allows. ``start_background`` starts the idle fleet
    simulator when ``idle_simulation`` is enabled. ``shutdown`` stops it and
    cancels running workers, and must be awaited on the loop that ran them.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .configuration import SkySurveySettings, get_settings
from .fleet import FleetRegistry
from .logging_utils import get_logger
from .missions import MissionService, MissionStore
from .route_planning import RoutePlanner
from .simulation import IdleFleetSimulator, MissionQueue, MissionSimulator, RetryPolicy
from .surveys import SurveyManager
from .telemetry import TelemetryHub

LOGGER = get_logger(__name__)


@dataclass(slots=True)
class MissionControlCentre:
    settings: SkySurveySettings
    telemetry: TelemetryHub
    fleet: FleetRegistry
    store: MissionStore
    planner: RoutePlanner
    service: MissionService
    simulator: MissionSimulator
    queue: MissionQueue
    surveys: SurveyManager
    idle: IdleFleetSimulator

    @classmethod
    def build(cls, settings: Optional[SkySurveySettings] = None) -> "MissionControlCentre":
        """Create every subsystem from ``settings`` (cached settings by default)."""

        settings = settings or get_settings()
        telemetry = TelemetryHub()
        fleet = FleetRegistry(telemetry=telemetry)
        store = MissionStore()
        planner = RoutePlanner(
            perimeter_offset_m=settings.perimeter_offset_m,
            crosshatch_rotated=settings.crosshatch_rotated,
        )
        service = MissionService(
            store,
            fleet,
            planner,
            telemetry=telemetry,
            default_overlap_percent=settings.default_overlap_percent,
            default_speed=settings.default_speed,
            max_waypoints=settings.max_waypoints,
        )
        simulator = MissionSimulator(
            service,
            tick_seconds=settings.tick_seconds,
            battery_drain_per_tick=settings.battery_drain_per_tick,
            low_battery_threshold=settings.low_battery_threshold,
        )
        queue = MissionQueue(
            simulator.run,
            max_concurrent=settings.max_concurrent_missions,
            retry_policy=RetryPolicy(
                attempts=settings.queue_attempts,
                backoff_seconds=settings.queue_backoff_seconds,
            ),
            on_exhausted=simulator.abandon,
        )
        service.attach_launcher(queue.enqueue)
        LOGGER.info(
            "Mission control centre ready (environment=%s, tick=%ss)",
            settings.environment,
            settings.tick_seconds,
        )
        return cls(
            settings=settings,
            telemetry=telemetry,
            fleet=fleet,
            store=store,
            planner=planner,
            service=service,
            simulator=simulator,
            queue=queue,
            surveys=SurveyManager(store, fleet),
            idle=IdleFleetSimulator(
                fleet, telemetry=telemetry, interval_seconds=settings.idle_interval_seconds
            ),
        )

    def start_background(self) -> None:
        if self.settings.idle_simulation:
            self.idle.start()

    async def shutdown(self) -> None:
        await self.idle.stop()
        await self.queue.shutdown()
