from __future__ import annotations

from typing import List

from pydantic import BaseModel, ConfigDict, Field, field_validator

MACROS = ("calories", "protein", "carbs", "fat")


def _norm_tags(values: List[str]) -> List[str]:
    out: List[str] = []
    for v in values or []:
        v = str(v).strip().lower()
        if v and v not in out:
            out.append(v)
    return out


class Nutrition(BaseModel):
    """Per-serving (or per-day, when aggregated) nutrition values."""

    calories: float = Field(0.0, ge=0, description="kcal")
    protein: float = Field(0.0, ge=0, description="grams")
    carbs: float = Field(0.0, ge=0, description="grams")
    fat: float = Field(0.0, ge=0, description="grams")
    fiber: float = Field(0.0, ge=0, description="grams")
    sodium: float = Field(0.0, ge=0, description="milligrams")

    model_config = ConfigDict(frozen=True)

    def macro(self, key: str) -> float:
        return float(getattr(self, key))

    def macros(self) -> List[float]:
        return [self.macro(k) for k in MACROS]


class Ingredient(BaseModel):
    name: str = Field(..., description="e.g. 'chicken breast'")
    amount: float = Field(0.0, ge=0)
    unit: str = Field("", description="e.g. 'g', 'cup', 'tbsp'")

    model_config = ConfigDict(frozen=True)


class Recipe(BaseModel):
    """Catalog recipe; immutable once constructed."""

    id: str
    name: str
    description: str | None = None
    nutrition: Nutrition
    prep_time: int = Field(0, ge=0, description="minutes")
    cook_time: int = Field(0, ge=0, description="minutes")
    servings: int = Field(1, ge=1)
    meal_types: List[str] = Field(default_factory=list)
    dietary_tags: List[str] = Field(default_factory=list)
    tags: List[str] = Field(
        default_factory=list,
        description="attribute tags: cuisine, season, cooking method…",
    )
    ingredients: List[Ingredient] = Field(default_factory=list)
    approved: bool = False

    model_config = ConfigDict(frozen=True)

    @field_validator("meal_types", "dietary_tags", "tags", mode="before")
    @classmethod
    def _lower(cls, v: List[str]) -> List[str]:
        return _norm_tags(v)

    # -------------------------------- convenience -------------------
    @property
    def total_time(self) -> int:
        return self.prep_time + self.cook_time

    @property
    def ingredient_names(self) -> List[str]:
        return [i.name.strip().lower() for i in self.ingredients]

    def has_ingredient(self, needle: str) -> bool:
        """Substring match, so 'tomato' hits 'cherry tomatoes'."""
        needle = needle.lower()
        return any(needle in name for name in self.ingredient_names)


class NutritionDelta(BaseModel):
    """Signed difference between two nutrition values."""

    calories: float = 0.0
    protein: float = 0.0
    carbs: float = 0.0
    fat: float = 0.0

    @classmethod
    def between(cls, old: Nutrition, new: Nutrition, divisor: float = 1.0) -> "NutritionDelta":
        return cls(**{k: (new.macro(k) - old.macro(k)) / divisor for k in MACROS})
