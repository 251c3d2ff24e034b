"""Mini README: HTTP interface for SkySurvey.

Exports the FastAPI application factory used by ``main_mission_control.py``
and the tests.
"""

from .web_app import create_application

__all__ = ["create_application"]
