"""Domain enums for analysis phases."""

from enum import Enum


class AnalysisPhase(str, Enum):
    """Analysis phase enum."""

    SUCCESSFUL = "Successful"
    FAILED = "Failed"
    INCONCLUSIVE = "Inconclusive"
    ERROR = "Error"
