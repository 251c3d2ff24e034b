"""Mini README: Centralised configuration models and helpers for SkySurvey.

Structure:
    * SkySurveySettings - pydantic-settings model describing runtime configuration.
    * get_settings - cached accessor for environment-aware settings.

Usage:
    Import ``get_settings`` to read ``SKYSURVEY_*`` environment variables (or a
    local ``.env`` file). Tests and the CLI construct ``SkySurveySettings``
    directly when they need to override the simulation clock or the queue
    retry policy.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Dict

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _level_name(value: object) -> str:
    """Accept any casing but reject names the logging module does not know."""

    name = str(value).strip().upper()
    if not isinstance(logging.getLevelName(name), int):
        raise ValueError(f"Unknown log level '{value}'")
    return name


class SkySurveySettings(BaseSettings):
    """Runtime configuration for the mission planning and simulation engine."""

    model_config = SettingsConfigDict(
        env_prefix="SKYSURVEY_",
        env_file=".env",
        case_sensitive=False,
    )

    environment: str = Field(
        "development",
        description="Environment label controlling debug toggles and logging levels.",
    )
    log_level: str = Field("INFO", description="Root logging level name.")
    log_overrides: Dict[str, str] = Field(
        default_factory=dict,
        description="Per-logger level overrides, e.g. {'skysurvey.simulation.engine': 'DEBUG'}.",
    )
    interface_host: str = Field(
        "0.0.0.0",
        description="Network interface for the HTTP service to bind to.",
    )
    interface_port: int = Field(
        8000,
        description="Port the HTTP service exposes.",
        ge=1,
        le=65535,
    )
    tick_seconds: float = Field(
        1.0,
        description="Wall-clock duration of one simulation tick (one simulated second).",
        ge=0.0,
    )
    battery_drain_per_tick: float = Field(
        0.1,
        description="Battery percentage consumed per simulation tick.",
        ge=0.0,
        le=100.0,
    )
    low_battery_threshold: float = Field(
        10.0,
        description="Battery percentage below which an active mission is aborted.",
        ge=0.0,
        le=100.0,
    )
    perimeter_offset_m: float = Field(
        -10.0,
        description="Buffer applied to the survey polygon for PERIMETER flights (negative = inward).",
    )
    default_overlap_percent: float = Field(
        70.0,
        description="Coverage overlap used when a mission request omits it.",
        ge=0.0,
        lt=100.0,
    )
    default_speed: float = Field(
        10.0,
        description="Cruise speed in m/s used when neither mission nor drone specify one.",
        gt=0.0,
    )
    queue_attempts: int = Field(
        3,
        description="Attempts the job queue makes to start a mission worker.",
        ge=1,
    )
    queue_backoff_seconds: float = Field(
        2.0,
        description="Initial delay of the exponential retry backoff.",
        ge=0.0,
    )
    max_concurrent_missions: int = Field(
        16,
        description="Upper bound on concurrently simulated missions.",
        ge=1,
    )
    max_waypoints: int = Field(
        20_000,
        description="Largest survey, in estimated waypoints, the planner accepts.",
        ge=1,
    )
    idle_simulation: bool = Field(
        False,
        description="Drift AVAILABLE drones in the background while the HTTP service runs.",
    )
    idle_interval_seconds: float = Field(
        2.0,
        description="Seconds between idle fleet updates.",
        gt=0.0,
    )
    crosshatch_rotated: bool = Field(
        False,
        description=(
            "Fly the CROSSHATCH second pass along longitude instead of repeating"
            " the latitude sweep."
        ),
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalise_log_level(cls, value: str) -> str:
        return _level_name(value)

    @field_validator("log_overrides", mode="after")
    @classmethod
    def _normalise_log_overrides(cls, value: Dict[str, str]) -> Dict[str, str]:
        return {name: _level_name(level) for name, level in value.items()}


@lru_cache()
def get_settings() -> SkySurveySettings:
    """Return cached settings, ensuring consistent configuration across modules."""

    return SkySurveySettings()
