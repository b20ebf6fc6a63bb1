# api/v1/plans.py
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from api.v1.deps import (
    get_generator,
    get_optimizer,
    get_preference_model,
    get_scheduler,
)
from api.v1.schemas import (
    GeneratePlanRequest,
    OptimizeReport,
    OptimizeRequest,
    ProgressivePlanRequest,
    ScheduleRequest,
)
from core.errors import PlanValidationError
from core.generator import MealPlanGenerator
from core.models.plan import MealPlan, OptimizationResult
from core.models.schedule import MealSchedule
from core.optimizer import NutritionalOptimizer, generate_optimization_report
from core.preferences import PreferenceModel
from core.scheduler import MealPlanScheduler

router = APIRouter()


@router.post(
    "/generate",
    response_model=MealPlan,
    status_code=status.HTTP_201_CREATED,
    summary="Generate a goal-driven plan; pass ?customer_id= to personalise it",
)
def generate_plan(
    body: GeneratePlanRequest,
    customer_id: str | None = None,
    generator: MealPlanGenerator = Depends(get_generator),
    prefs: PreferenceModel = Depends(get_preference_model),
) -> MealPlan:
    profile = prefs.get_customer_preferences(customer_id) if customer_id else None
    try:
        return generator.generate_intelligent_meal_plan(body.options, body.trainer_id, profile)
    except PlanValidationError as e:
        raise HTTPException(422, str(e)) from e


@router.post("/progressive", response_model=MealPlan, status_code=status.HTTP_201_CREATED)
def generate_progressive_plan(
    body: ProgressivePlanRequest,
    customer_id: str | None = None,
    generator: MealPlanGenerator = Depends(get_generator),
    prefs: PreferenceModel = Depends(get_preference_model),
) -> MealPlan:
    profile = prefs.get_customer_preferences(customer_id) if customer_id else None
    try:
        return generator.generate_progressive_meal_plan(
            body.options, body.trainer_id, body.week_number, body.total_weeks, profile
        )
    except PlanValidationError as e:
        raise HTTPException(422, str(e)) from e


@router.post("/optimize", response_model=OptimizationResult, status_code=status.HTTP_200_OK)
def optimize_plan(
    body: OptimizeRequest,
    optimizer: NutritionalOptimizer = Depends(get_optimizer),
) -> OptimizationResult:
    try:
        return optimizer.optimize(body.plan, body.constraints)
    except PlanValidationError as e:
        raise HTTPException(422, str(e)) from e


@router.post("/optimize/report", response_model=OptimizeReport, status_code=status.HTTP_200_OK)
def optimize_plan_report(
    body: OptimizeRequest,
    optimizer: NutritionalOptimizer = Depends(get_optimizer),
) -> OptimizeReport:
    try:
        result = optimizer.optimize(body.plan, body.constraints)
    except PlanValidationError as e:
        raise HTTPException(422, str(e)) from e
    return OptimizeReport(report=generate_optimization_report(result))


@router.post("/schedule", response_model=MealSchedule, status_code=status.HTTP_200_OK)
def schedule_plan(
    body: ScheduleRequest,
    customer_id: str,
    scheduler: MealPlanScheduler = Depends(get_scheduler),
    prefs: PreferenceModel = Depends(get_preference_model),
) -> MealSchedule:
    profile = prefs.get_customer_preferences(customer_id)
    try:
        return scheduler.create_intelligent_schedule(
            body.plan, customer_id, profile, body.lifestyle, body.week_index
        )
    except PlanValidationError as e:
        raise HTTPException(422, str(e)) from e
