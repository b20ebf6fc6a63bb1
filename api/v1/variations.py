# api/v1/variations.py
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from api.v1.deps import get_preference_model, get_variation_generator
from api.v1.schemas import (
    ApplyVariationRequest,
    CuisineRequest,
    DifficultyRequest,
    RotationRequest,
    SeasonalRequest,
)
from core.errors import PlanValidationError
from core.models.plan import MealPlan
from core.models.variation import RotationPlan, Variation
from core.preferences import PreferenceModel
from core.variation import VariationGenerator

router = APIRouter()


@router.post("/seasonal", response_model=Variation, status_code=status.HTTP_200_OK)
def seasonal_variation(
    body: SeasonalRequest,
    variations: VariationGenerator = Depends(get_variation_generator),
) -> Variation:
    try:
        return variations.create_seasonal_variation(body.plan, body.season)
    except PlanValidationError as e:
        raise HTTPException(422, str(e)) from e


@router.post("/cuisine", response_model=Variation, status_code=status.HTTP_200_OK)
def cuisine_variation(
    body: CuisineRequest,
    customer_id: str | None = None,
    variations: VariationGenerator = Depends(get_variation_generator),
    prefs: PreferenceModel = Depends(get_preference_model),
) -> Variation:
    profile = prefs.get_customer_preferences(customer_id) if customer_id else None
    try:
        return variations.create_cuisine_variation(
            body.plan, body.cuisine, profile, body.max_changes
        )
    except PlanValidationError as e:
        raise HTTPException(422, str(e)) from e


@router.post("/difficulty", response_model=Variation, status_code=status.HTTP_200_OK)
def difficulty_variation(
    body: DifficultyRequest,
    variations: VariationGenerator = Depends(get_variation_generator),
) -> Variation:
    try:
        return variations.create_difficulty_progression_variation(
            body.plan, body.direction, body.skill_level, body.max_changes
        )
    except PlanValidationError as e:
        raise HTTPException(422, str(e)) from e


@router.post("/rotation", response_model=RotationPlan, status_code=status.HTTP_200_OK)
def rotation_plan(
    body: RotationRequest,
    customer_id: str,
    variations: VariationGenerator = Depends(get_variation_generator),
    prefs: PreferenceModel = Depends(get_preference_model),
) -> RotationPlan:
    profile = prefs.get_customer_preferences(customer_id)
    try:
        return variations.create_rotation_plan(
            customer_id, body.base_plan, body.weeks, body.engagement, profile, body.start_date
        )
    except PlanValidationError as e:
        raise HTTPException(422, str(e)) from e


@router.post("/apply", response_model=MealPlan, status_code=status.HTTP_200_OK)
def apply_variation(body: ApplyVariationRequest) -> MealPlan:
    try:
        return VariationGenerator.apply_variation_to_meal_plan(body.base, body.variation)
    except PlanValidationError as e:
        raise HTTPException(422, str(e)) from e
