"""Mini README: Entry point CLI for SkySurvey mission control.

Commands:
    * run - start the FastAPI service with uvicorn.
    * plan - turn a GeoJSON polygon file into survey waypoints (JSON).
    * simulate - register a demo drone, fly a survey over a GeoJSON polygon
      and print the resulting survey report.

Settings come from ``SKYSURVEY_*`` environment variables; options given on
the command line take precedence.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Optional

import typer
import uvicorn

from skysurvey.configuration import get_settings
from skysurvey.control_centre import MissionControlCentre
from skysurvey.errors import MissionError
from skysurvey.logging_utils import configure_root_logger
from skysurvey.missions import MissionRequest, MissionStatus
from skysurvey.route_planning import PathPattern, RoutePlanner
from skysurvey.utils.geojson import path_to_geojson, polygon_from_geojson

cli = typer.Typer(help="Plan, simulate and serve SkySurvey drone missions.")


def _read_polygon(area_file: Path):
    try:
        return polygon_from_geojson(area_file.read_text(encoding="utf-8"))
    except (OSError, ValueError) as error:
        typer.echo(f"Cannot read survey area from {area_file}: {error}", err=True)
        raise typer.Exit(code=2) from error


@cli.command()
def run(
    host: str = typer.Option(None, help="Host interface to bind."),
    port: int = typer.Option(None, help="Port to listen on."),
    production: bool = typer.Option(
        False, help="Use production server settings (disable auto-reload)."
    ),
) -> None:
    """Start the FastAPI application using uvicorn."""

    settings = get_settings()
    effective_host = host or settings.interface_host
    effective_port = port or settings.interface_port
    configure_root_logger(settings.log_level, settings.log_overrides)

    # Browsers cannot open the wildcard address, so point operators at localhost.
    browser_host = "127.0.0.1" if effective_host in {"0.0.0.0", "::"} else effective_host
    typer.echo(
        f"Starting SkySurvey on {effective_host}:{effective_port}.\n"
        f"API docs at http://{browser_host}:{effective_port}/docs"
    )
    uvicorn.run(
        "skysurvey.interface.web_app:create_application",
        host=effective_host,
        port=effective_port,
        factory=True,
        reload=not production,
    )


@cli.command()
def plan(
    area_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="GeoJSON polygon."),
    pattern: str = typer.Option("GRID", help="GRID, PERIMETER or CROSSHATCH."),
    altitude: float = typer.Option(50.0, min=0.1, help="Flight altitude in metres."),
    overlap: Optional[float] = typer.Option(None, min=0, max=99.9, help="Overlap percent."),
    geojson: bool = typer.Option(False, help="Print a GeoJSON LineString instead."),
) -> None:
    """Print the waypoints generated for a survey area."""

    settings = get_settings()
    configure_root_logger(settings.log_level, settings.log_overrides)
    try:
        path_pattern = PathPattern.from_str(pattern)
    except ValueError as error:
        raise typer.BadParameter(str(error)) from error
    planner = RoutePlanner(
        perimeter_offset_m=settings.perimeter_offset_m,
        crosshatch_rotated=settings.crosshatch_rotated,
    )
    overlap_percent = overlap if overlap is not None else settings.default_overlap_percent
    path = planner.generate_path(_read_polygon(area_file), path_pattern, altitude, overlap_percent)
    if geojson:
        typer.echo(json.dumps(path_to_geojson(path), indent=2))
        return
    typer.echo(
        json.dumps(
            {
                "pattern": path_pattern.value,
                "length_m": path.length_m(),
                "waypoints": [list(waypoint.as_tuple()) for waypoint in path.waypoints],
            },
            indent=2,
        )
    )


@cli.command()
def simulate(
    area_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="GeoJSON polygon."),
    pattern: str = typer.Option("GRID", help="GRID, PERIMETER or CROSSHATCH."),
    altitude: float = typer.Option(50.0, min=0.1, help="Flight altitude in metres."),
    speed: float = typer.Option(10.0, min=0.1, help="Cruise speed in m/s."),
    tick_seconds: float = typer.Option(
        0.0, min=0.0, help="Wall-clock seconds per simulated second (0 = as fast as possible)."
    ),
) -> None:
    """Fly a demo drone over the area and print its survey report."""

    settings = get_settings().model_copy(update={"tick_seconds": tick_seconds})
    configure_root_logger(settings.log_level, settings.log_overrides)
    polygon = _read_polygon(area_file)
    try:
        path_pattern = PathPattern.from_str(pattern)
    except ValueError as error:
        raise typer.BadParameter(str(error)) from error

    async def fly() -> dict:
        centre = MissionControlCentre.build(settings)
        try:
            drone = centre.fleet.register_drone("Demo Surveyor", "SIM-1", speed=speed)
            mission = centre.service.create_mission(
                MissionRequest(
                    name=f"Simulated survey of {area_file.name}",
                    drone_id=drone.drone_id,
                    survey_area=polygon,
                    path_pattern=path_pattern,
                    altitude=altitude,
                    speed=speed,
                )
            )
            await centre.service.start_mission(mission.mission_id)
            await centre.queue.join(mission.mission_id)
            mission = centre.service.get_mission(mission.mission_id)
            if mission.status is not MissionStatus.COMPLETED:
                return {"mission": mission.as_dict()}
            report = centre.surveys.generate_report(mission.mission_id)
            return {"mission": mission.as_dict(), "report": report.as_dict()}
        finally:
            await centre.shutdown()

    try:
        result = asyncio.run(fly())
    except MissionError as error:
        typer.echo(f"Simulation failed: {error}", err=True)
        raise typer.Exit(code=1) from error
    typer.echo(json.dumps(result, indent=2))
    if "report" not in result:
        raise typer.Exit(code=1)


if __name__ == "__main__":
    cli()
