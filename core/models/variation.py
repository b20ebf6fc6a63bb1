from __future__ import annotations

from datetime import datetime
from typing import List, Literal

from pydantic import BaseModel, Field

from core.models.plan import RecipeSwap
from core.models.recipe import NutritionDelta

VariationKind = Literal["seasonal", "cuisine", "difficulty"]


class Variation(BaseModel):
    base_id: str
    variation_id: str
    kind: VariationKind
    target: str                     # season, cuisine or direction
    changes: List[RecipeSwap] = Field(default_factory=list)
    nutritional_impact: NutritionDelta = Field(default_factory=NutritionDelta)
    variety_score: float = Field(0.0, ge=0, le=1)
    seasonal_alignment: float | None = None
    customer_fit_score: float | None = None
    difficulty_adjustment: float | None = None
    created_at: datetime


class EngagementPattern(BaseModel):
    variety_preference: float = Field(0.7, ge=0, le=1)
    adventurousness: float = Field(0.6, ge=0, le=1)
    consistency_preference: float = Field(0.4, ge=0, le=1)
    feedback_responsiveness: float = Field(0.8, ge=0, le=1)
    boredom_threshold_days: int = Field(10, ge=1)


class RotationCycle(BaseModel):
    cycle_number: int
    theme: str
    start_week: int
    duration_days: int
    focus_areas: List[str] = Field(default_factory=list)
    expected_outcomes: List[str] = Field(default_factory=list)
    success_metrics: List[str] = Field(default_factory=list)
    variation: Variation


class RotationPlan(BaseModel):
    customer_id: str
    base_id: str
    weeks: int
    cycles: List[RotationCycle] = Field(default_factory=list)
    variation_frequency_days: int
    predicted_engagement: float = Field(0.0, ge=0, le=1)
