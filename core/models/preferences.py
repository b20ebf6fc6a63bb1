from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Literal

from pydantic import BaseModel, Field

from core.models.recipe import Recipe

PreferenceLabel = Literal["love", "like", "neutral", "dislike"]
Importance = Literal["low", "medium", "high", "critical"]


class PreferenceEntry(BaseModel):
    label: PreferenceLabel = "neutral"
    confidence: float = Field(0.0, ge=0, le=1)
    occurrences: int = 0


class NutritionalFocus(BaseModel):
    focus: str                       # e.g. "high_protein", "low_carb"
    importance: Importance = "medium"
    confidence: float = Field(0.0, ge=0, le=1)


class CookingPreferences(BaseModel):
    skill_level: Literal["beginner", "intermediate", "advanced"] = "intermediate"
    max_prep_time: int = 45
    max_cook_time: int = 60
    batch_cook_frequency: Literal["daily", "twice_weekly", "weekly"] = "weekly"


class LearningMetrics(BaseModel):
    plans_rated: int = 0
    average_rating: float = 0.0
    consistency: float = Field(0.0, ge=0, le=1)
    engagement_level: Literal["low", "medium", "high"] = "low"
    stability: float = Field(0.0, ge=0, le=1)


class DietaryExclusions(BaseModel):
    dietary_restrictions: List[str] = Field(default_factory=list)
    allergies: List[str] = Field(default_factory=list)
    intolerances: List[str] = Field(default_factory=list)


class CustomerPreferenceProfile(BaseModel):
    customer_id: str
    ingredient_preferences: Dict[str, PreferenceEntry] = Field(default_factory=dict)
    cuisine_preferences: Dict[str, PreferenceEntry] = Field(default_factory=dict)
    nutritional_focus: List[NutritionalFocus] = Field(default_factory=list)
    dietary_restrictions: List[str] = Field(default_factory=list)
    allergies: List[str] = Field(default_factory=list)
    intolerances: List[str] = Field(default_factory=list)
    cooking_preferences: CookingPreferences = Field(default_factory=CookingPreferences)
    learning_metrics: LearningMetrics = Field(default_factory=LearningMetrics)
    preference_score: float = Field(0.0, ge=0, le=1)
    last_updated: datetime


class RatedPlan(BaseModel):
    """One row of a customer's rating history, recipes already resolved."""

    plan_id: str
    customer_id: str
    rating: float = Field(..., ge=1, le=5)
    rated_at: datetime
    recipes: List[Recipe] = Field(default_factory=list)
    feedback: str | None = None


class PreferenceAnalysis(BaseModel):
    strong_preferences: List[str] = Field(default_factory=list)
    cuisine_profile: List[str] = Field(default_factory=list)
    nutritional_priorities: List[str] = Field(default_factory=list)
    cooking_profile: str
    recommendation_strength: float = Field(0.0, ge=0, le=1)
