"""Mini README: Survey reporting package.

Turns completed missions into reports and aggregates them per drone and
for the whole organisation.
"""

from .manager import (
    DroneSurveyTotals,
    OrganisationStatistics,
    SurveyManager,
    SurveyOverview,
    SurveyReport,
)

__all__ = [
    "DroneSurveyTotals",
    "OrganisationStatistics",
    "SurveyManager",
    "SurveyOverview",
    "SurveyReport",
]
