from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Literal

from pydantic import BaseModel, Field, model_validator

from core.models.recipe import MACROS, Nutrition, NutritionDelta, Recipe

MealType = Literal["breakfast", "lunch", "dinner", "snack"]


class MealSlot(BaseModel):
    day: int = Field(..., ge=1)
    meal_number: int = Field(..., ge=1)
    meal_type: MealType
    recipe: Recipe


class ShoppingItem(BaseModel):
    ingredient: str
    total_amount: float
    unit: str
    category: str
    used_in_recipes: List[str] = Field(default_factory=list)


class RecipeSwap(BaseModel):
    """One committed substitution, shared by optimizer and variations."""

    day: int
    meal_number: int
    original_recipe: Recipe
    new_recipe: Recipe
    reason: str
    nutritional_delta: NutritionDelta | None = None
    confidence: float = Field(1.0, ge=0, le=1)


class VariationMetadata(BaseModel):
    base_id: str
    variation_id: str
    kind: Literal["seasonal", "cuisine", "difficulty"]
    changes: List[RecipeSwap] = Field(default_factory=list)


class MealPlan(BaseModel):
    id: str
    plan_name: str
    fitness_goal: str
    description: str | None = None
    daily_calorie_target: float = Field(..., gt=0)
    days: int = Field(..., ge=1)
    meals_per_day: int = Field(..., ge=1)
    meals: List[MealSlot] = Field(default_factory=list)
    generated_by: str = "engine"
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    shopping_list: List[ShoppingItem] = Field(default_factory=list)
    nutrition_timing: List[str] = Field(default_factory=list)
    workout_notes: List[str] = Field(default_factory=list)
    optimization_score: float | None = None
    variation_metadata: VariationMetadata | None = None

    def is_complete(self) -> bool:
        return len(self.meals) == self.days * self.meals_per_day

    def ordered_meals(self) -> List[MealSlot]:
        return sorted(self.meals, key=lambda s: (s.day, s.meal_number))

    def slot(self, day: int, meal_number: int) -> MealSlot | None:
        for s in self.meals:
            if s.day == day and s.meal_number == meal_number:
                return s
        return None


class NutritionalConstraintSet(BaseModel):
    """Per-day min/max bounds for the four macros."""

    min_calories: float = Field(..., ge=0)
    max_calories: float = Field(..., ge=0)
    min_protein: float = Field(..., ge=0)
    max_protein: float = Field(..., ge=0)
    min_carbs: float = Field(..., ge=0)
    max_carbs: float = Field(..., ge=0)
    min_fat: float = Field(..., ge=0)
    max_fat: float = Field(..., ge=0)

    @model_validator(mode="after")
    def _check_bounds(self) -> "NutritionalConstraintSet":
        for m in MACROS:
            lo, hi = self.bounds(m)
            if lo > hi:
                raise ValueError(f"min_{m} ({lo}) exceeds max_{m} ({hi})")
        return self

    def bounds(self, macro: str) -> tuple[float, float]:
        return getattr(self, f"min_{macro}"), getattr(self, f"max_{macro}")


class PlanNutrition(BaseModel):
    total: Nutrition
    daily: Nutrition
    protein_ratio: float = 0.0
    carbs_ratio: float = 0.0
    fat_ratio: float = 0.0


class OptimizationResult(BaseModel):
    success: bool
    original_score: float
    optimized_score: float
    improvement_percentage: float
    changes: List[RecipeSwap] = Field(default_factory=list)
    final_nutrition: PlanNutrition
    optimized_plan: MealPlan
    iterations: int = 0
