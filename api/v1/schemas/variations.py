# api/v1/schemas/variations.py
from __future__ import annotations

from datetime import date

from pydantic import BaseModel, Field

from core.models.plan import MealPlan
from core.models.variation import EngagementPattern, Variation


class SeasonalRequest(BaseModel):
    plan: MealPlan
    season: str = Field(..., examples=["spring", "summer", "fall", "winter"])


class CuisineRequest(BaseModel):
    plan: MealPlan
    cuisine: str = Field(..., examples=["mediterranean", "asian_fusion"])
    max_changes: int = Field(3, ge=0)


class DifficultyRequest(BaseModel):
    plan: MealPlan
    direction: str = Field(..., examples=["increase", "decrease"])
    skill_level: str = "intermediate"
    max_changes: int = Field(2, ge=0)


class RotationRequest(BaseModel):
    base_plan: MealPlan
    weeks: int = Field(..., examples=[8])
    engagement: EngagementPattern | None = None
    start_date: date | None = None


class ApplyVariationRequest(BaseModel):
    base: MealPlan
    variation: Variation
