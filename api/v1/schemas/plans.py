# api/v1/schemas/plans.py
from __future__ import annotations

from pydantic import BaseModel, Field

from core.generator import PlanOptions
from core.models.plan import MealPlan, NutritionalConstraintSet
from core.models.schedule import LifestyleOptions


class GeneratePlanRequest(BaseModel):
    trainer_id: str = Field(..., examples=["trainer-1"])
    options: PlanOptions


class ProgressivePlanRequest(GeneratePlanRequest):
    week_number: int = Field(..., examples=[3])
    total_weeks: int = Field(..., examples=[12])


class OptimizeRequest(BaseModel):
    plan: MealPlan
    constraints: NutritionalConstraintSet


class OptimizeReport(BaseModel):
    report: str


class ScheduleRequest(BaseModel):
    plan: MealPlan
    lifestyle: LifestyleOptions | None = None
    week_index: int = Field(0, description="0 = plan days 1-7, 1 = days 8-14, ...")
