"""Mini README: Core package initializer for SkySurvey.

SkySurvey plans survey flight paths over polygon areas and simulates drones
flying them. This module only re-exports the logging helper so importing the
package stays cheap; subsystems live in their own subpackages.
"""

from .logging_utils import get_logger

__all__ = ["get_logger"]
