"""Re-export individual schema modules for easy imports."""

from .plans import (
    GeneratePlanRequest,
    OptimizeReport,
    OptimizeRequest,
    ProgressivePlanRequest,
    ScheduleRequest,
)
from .variations import (
    ApplyVariationRequest,
    CuisineRequest,
    DifficultyRequest,
    RotationRequest,
    SeasonalRequest,
)

__all__ = [
    "GeneratePlanRequest",
    "ProgressivePlanRequest",
    "OptimizeRequest",
    "OptimizeReport",
    "ScheduleRequest",
    "SeasonalRequest",
    "CuisineRequest",
    "DifficultyRequest",
    "RotationRequest",
    "ApplyVariationRequest",
]
