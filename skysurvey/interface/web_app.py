"""Mini README: FastAPI service exposing mission planning and control.

Structure:
    * Request models - pydantic bodies for path planning and drone
      registration and editing.
    * create_application - application factory wiring routes to a
      ``MissionControlCentre``.

Routes:
    * ``POST /plan-path`` previews waypoints without creating a mission.
    * ``/missions`` creates, lists and inspects missions; the
      ``start``/``pause``/``resume``/``abort`` sub-resources drive the lifecycle
      and ``/missions/active/list`` lists ACTIVE and PAUSED missions.
    * ``/reports`` and ``/surveys`` expose survey reports, per-drone and
      organisation statistics.
    * ``/fleet`` registers, lists, edits and removes drones.
    * ``/ws/telemetry`` streams telemetry events as JSON.

Path planning runs in the threadpool so simulation workers keep ticking
while a large survey is planned. Engine errors are translated once, by an
exception handler: unknown ids are 404, lifecycle conflicts 409, surveys
that produce no waypoints or too many 422, and workers that cannot be
launched 503.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import List, Optional, Set, Tuple

from fastapi import FastAPI, HTTPException, Request, WebSocket, WebSocketDisconnect
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, field_validator

from ..control_centre import MissionControlCentre
from ..errors import (
    DroneUnavailable,
    EmptyPath,
    InvalidTransition,
    MissionError,
    NotFound,
    ReportUnavailable,
    SurveyTooLarge,
    WorkerFailure,
)
from ..fleet import DroneStatus
from ..logging_utils import get_logger
from ..missions import MissionRequest, MissionStatus
from ..route_planning import PathPattern
from ..utils.geojson import path_to_geojson, polygon_from_geojson

LOGGER = get_logger(__name__)


class PlanPathRequest(BaseModel):
    survey_area: Optional[List[Tuple[float, float]]] = None
    area_geojson: Optional[str] = None
    path_pattern: PathPattern = PathPattern.GRID
    altitude: float = Field(..., gt=0)
    overlap_percent: Optional[float] = Field(None, ge=0, lt=100)
    cruise_speed: float = Field(10.0, gt=0)

    @field_validator("path_pattern", mode="before")
    @classmethod
    def _coerce_pattern(cls, value):
        if isinstance(value, str):
            return PathPattern.from_str(value)
        return value


class DroneRegistration(BaseModel):
    name: str = Field(..., min_length=1)
    model: str = Field(..., min_length=1)
    speed: float = Field(10.0, gt=0)
    max_speed: float = Field(15.0, gt=0)
    max_altitude: float = Field(120.0, gt=0)
    drone_id: Optional[str] = None


class DroneUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    model: Optional[str] = Field(None, min_length=1)
    status: Optional[DroneStatus] = None
    battery: Optional[float] = Field(None, ge=0, le=100)
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    altitude: Optional[float] = None
    speed: Optional[float] = Field(None, gt=0)
    max_speed: Optional[float] = Field(None, gt=0)
    max_altitude: Optional[float] = Field(None, gt=0)


class AbortRequest(BaseModel):
    reason: str = "aborted by operator"


def _status_code_for(error: MissionError) -> int:
    if isinstance(error, NotFound):
        return 404
    if isinstance(error, (EmptyPath, SurveyTooLarge)):
        return 422
    if isinstance(error, (InvalidTransition, DroneUnavailable, ReportUnavailable)):
        return 409
    if isinstance(error, WorkerFailure):
        return 503
    return 500


def create_application(centre: Optional[MissionControlCentre] = None) -> FastAPI:
    """Create the FastAPI application with routes bound to ``centre``."""

    centre = centre or MissionControlCentre.build()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        centre.start_background()
        LOGGER.info("SkySurvey API ready")
        yield
        LOGGER.info("SkySurvey API shutting down")
        await centre.shutdown()

    app = FastAPI(title="SkySurvey Mission Control", version="0.1.0", lifespan=lifespan)
    app.state.centre = centre
    service = centre.service
    fleet = centre.fleet
    surveys = centre.surveys

    @app.exception_handler(MissionError)
    async def mission_error_handler(request: Request, error: MissionError) -> JSONResponse:
        status_code = _status_code_for(error)
        LOGGER.info("%s %s -> %s: %s", request.method, request.url.path, status_code, error)
        return JSONResponse(status_code=status_code, content={"detail": str(error)})

    @app.post("/plan-path")
    async def plan_path(body: PlanPathRequest) -> JSONResponse:
        """Return generated waypoints for a survey area."""

        polygon = body.survey_area
        if body.area_geojson:
            try:
                polygon = polygon_from_geojson(body.area_geojson)
            except ValueError as error:
                raise HTTPException(status_code=400, detail=str(error)) from error
        if not polygon:
            raise HTTPException(status_code=400, detail="survey_area or area_geojson is required")
        path = await run_in_threadpool(
            service.plan_path, polygon, body.path_pattern, body.altitude, body.overlap_percent
        )
        LOGGER.info("Previewed %s path with %s waypoints", body.path_pattern.value, len(path))
        return JSONResponse(
            {
                "pattern": body.path_pattern.value,
                "waypoints": [list(waypoint.as_tuple()) for waypoint in path.waypoints],
                "length_m": path.length_m(),
                "commands": path.as_commands(cruise_speed=body.cruise_speed),
                "geojson": path_to_geojson(path),
            }
        )

    @app.post("/missions", status_code=201)
    async def create_mission(body: MissionRequest) -> JSONResponse:
        service.available_drone(body.drone_id)
        path = await run_in_threadpool(service.plan_for, body)
        mission = service.create_mission(body, path=path)
        return JSONResponse(status_code=201, content=mission.as_dict())

    @app.get("/missions")
    async def list_missions(
        status: Optional[MissionStatus] = None, drone_id: Optional[str] = None
    ) -> JSONResponse:
        missions = service.list_missions(status=status, drone_id=drone_id)
        LOGGER.debug("Listing %s missions", len(missions))
        return JSONResponse({"missions": [mission.as_dict() for mission in missions]})

    @app.get("/missions/active/list")
    async def list_active_missions() -> JSONResponse:
        return JSONResponse(
            {"missions": [mission.as_dict() for mission in service.active_missions()]}
        )

    @app.get("/missions/{mission_id}")
    async def get_mission(mission_id: str) -> JSONResponse:
        return JSONResponse(service.get_mission(mission_id).as_dict())

    @app.get("/missions/{mission_id}/waypoints")
    async def mission_waypoints(mission_id: str) -> JSONResponse:
        waypoints = service.waypoints(mission_id)
        return JSONResponse({"waypoints": [waypoint.as_dict() for waypoint in waypoints]})

    @app.get("/missions/{mission_id}/progress")
    async def mission_progress(mission_id: str) -> JSONResponse:
        return JSONResponse(service.report_progress(mission_id).as_dict())

    @app.post("/missions/{mission_id}/start")
    async def start_mission(mission_id: str) -> JSONResponse:
        return JSONResponse((await service.start_mission(mission_id)).as_dict())

    @app.post("/missions/{mission_id}/pause")
    async def pause_mission(mission_id: str) -> JSONResponse:
        return JSONResponse((await service.pause_mission(mission_id)).as_dict())

    @app.post("/missions/{mission_id}/resume")
    async def resume_mission(mission_id: str) -> JSONResponse:
        return JSONResponse((await service.resume_mission(mission_id)).as_dict())

    @app.post("/missions/{mission_id}/abort")
    async def abort_mission(mission_id: str, body: Optional[AbortRequest] = None) -> JSONResponse:
        reason = body.reason if body is not None else AbortRequest().reason
        return JSONResponse((await service.abort_mission(mission_id, reason)).as_dict())

    @app.post("/missions/{mission_id}/report")
    async def generate_report(mission_id: str) -> JSONResponse:
        return JSONResponse(surveys.generate_report(mission_id).as_dict())

    @app.get("/reports")
    async def list_reports() -> JSONResponse:
        return JSONResponse({"reports": [report.as_dict() for report in surveys.list_reports()]})

    @app.get("/reports/statistics")
    async def report_statistics() -> JSONResponse:
        return JSONResponse(surveys.organisation_statistics().as_dict())

    @app.get("/surveys/{mission_id}")
    async def survey_report(mission_id: str) -> JSONResponse:
        """Return the mission's survey report, generating it on first request."""

        return JSONResponse(surveys.generate_report(mission_id).as_dict())

    @app.get("/surveys/stats/drone/{drone_id}")
    async def drone_survey_statistics(drone_id: str) -> JSONResponse:
        return JSONResponse(surveys.drone_statistics(drone_id).as_dict())

    @app.get("/fleet/drones")
    async def list_drones(status: Optional[DroneStatus] = None) -> JSONResponse:
        return JSONResponse({"drones": [drone.as_dict() for drone in fleet.list_drones(status)]})

    @app.post("/fleet/drones", status_code=201)
    async def register_drone(body: DroneRegistration) -> JSONResponse:
        try:
            drone = fleet.register_drone(
                body.name,
                body.model,
                speed=body.speed,
                max_speed=body.max_speed,
                max_altitude=body.max_altitude,
                drone_id=body.drone_id,
            )
        except ValueError as error:
            raise HTTPException(status_code=409, detail=str(error)) from error
        return JSONResponse(status_code=201, content=drone.as_dict())

    @app.get("/fleet/drones/{drone_id}")
    async def get_drone(drone_id: str) -> JSONResponse:
        return JSONResponse(fleet.get_drone(drone_id).as_dict())

    @app.put("/fleet/drones/{drone_id}")
    async def update_drone(drone_id: str, body: DroneUpdate) -> JSONResponse:
        drone = fleet.update_drone(drone_id, **body.model_dump(exclude_none=True))
        return JSONResponse(drone.as_dict())

    @app.delete("/fleet/drones/{drone_id}")
    async def remove_drone(drone_id: str) -> JSONResponse:
        drone = fleet.remove_drone(drone_id)
        return JSONResponse({"removed": drone.as_dict()})

    @app.get("/fleet/statistics")
    async def fleet_statistics() -> JSONResponse:
        return JSONResponse(fleet.fleet_statistics().as_dict())

    @app.websocket("/ws/telemetry")
    async def telemetry_stream(websocket: WebSocket, topics: Optional[str] = None) -> None:
        """Stream telemetry events, optionally filtered by comma-separated topics."""

        wanted: Set[str] = {topic.strip() for topic in topics.split(",")} if topics else set()
        queue = centre.telemetry.subscribe()
        await websocket.accept()
        LOGGER.info("Telemetry client connected (topics=%s)", sorted(wanted) or "all")
        disconnected = asyncio.ensure_future(_wait_for_disconnect(websocket))
        try:
            while True:
                next_event = asyncio.ensure_future(queue.get())
                await asyncio.wait(
                    {next_event, disconnected}, return_when=asyncio.FIRST_COMPLETED
                )
                if disconnected.done():
                    next_event.cancel()
                    break
                event = next_event.result()
                if wanted and event.topic not in wanted:
                    continue
                await websocket.send_json(event.as_dict())
        except WebSocketDisconnect:
            pass
        finally:
            disconnected.cancel()
            centre.telemetry.unsubscribe(queue)
            LOGGER.info("Telemetry client disconnected")

    return app


async def _wait_for_disconnect(websocket: WebSocket) -> None:
    """Consume client messages until the socket closes; clients only listen."""

    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        return
