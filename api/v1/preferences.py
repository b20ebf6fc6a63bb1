# api/v1/preferences.py
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel

from api.v1.deps import get_catalog, get_preference_model
from core.catalog import RecipeCatalog
from core.models.preferences import CustomerPreferenceProfile, PreferenceAnalysis
from core.models.recipe import Recipe
from core.preferences import PreferenceModel, generate_preference_analysis

router = APIRouter()


class ScoredRecipe(BaseModel):
    recipe: Recipe
    score: float


# ───────────────────────── helpers ──────────────────────────
def _profile_or_404(model: PreferenceModel, customer_id: str) -> CustomerPreferenceProfile:
    profile = model.get_customer_preferences(customer_id)
    if profile is None:
        raise HTTPException(404, "no rated plans for this customer yet")
    return profile


# ───────────────────────── read ─────────────────────────────
@router.get(
    "/{customer_id}/preferences",
    response_model=CustomerPreferenceProfile,
    status_code=status.HTTP_200_OK,
)
def get_preferences(
    customer_id: str,
    model: PreferenceModel = Depends(get_preference_model),
) -> CustomerPreferenceProfile:
    return _profile_or_404(model, customer_id)


@router.get(
    "/{customer_id}/preferences/analysis",
    response_model=PreferenceAnalysis,
    status_code=status.HTTP_200_OK,
)
def get_preference_analysis(
    customer_id: str,
    model: PreferenceModel = Depends(get_preference_model),
) -> PreferenceAnalysis:
    return generate_preference_analysis(_profile_or_404(model, customer_id))


@router.get(
    "/{customer_id}/recommendations",
    response_model=list[ScoredRecipe],
    status_code=status.HTTP_200_OK,
    summary="Approved recipes ranked for the customer (catalog order on cold start)",
)
def get_recommendations(
    customer_id: str,
    meal_type: str | None = None,
    limit: int = Query(10, ge=1, le=100),
    model: PreferenceModel = Depends(get_preference_model),
    catalog: RecipeCatalog = Depends(get_catalog),
) -> list[ScoredRecipe]:
    ranked = model.personalized_recommendations(customer_id, catalog, meal_type, limit)
    return [ScoredRecipe(recipe=r, score=s) for r, s in ranked]
