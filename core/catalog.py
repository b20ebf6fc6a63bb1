"""
core/catalog.py
────────────────────────────────────────────────────────────────────────
Read-only collaborators the engine depends on.

Responsibilities
----------------
1.   `RecipeFilter` – the narrow query shape every engine path uses.
2.   `RecipeCatalog` / `InMemoryRecipeCatalog` – `search(filter)` over a
     pandas frame of recipes; only approved rows unless asked otherwise.
3.   `RatingHistoryStore` / `EngagementSource` protocols plus in-memory
     implementations used by the API wiring and the tests.

Nothing here knows about SQL – `services.db` loads rows and hands them
to the in-memory classes.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Mapping, Protocol

import pandas as pd
from pydantic import BaseModel, Field

from core.models.engagement import EngagementSignals
from core.models.preferences import RatedPlan
from core.models.recipe import Recipe

_LOG = logging.getLogger(__name__)


class RecipeFilter(BaseModel):
    meal_type: str | None = None
    dietary_tags: List[str] = Field(default_factory=list)
    approved: bool | None = True          # None → approval not checked
    max_prep_time: int | None = None
    min_calories: float | None = None
    max_calories: float | None = None
    min_protein: float | None = None
    max_protein: float | None = None
    min_carbs: float | None = None
    max_carbs: float | None = None
    min_fat: float | None = None
    max_fat: float | None = None
    include_ingredients: List[str] = Field(default_factory=list)
    exclude_ingredients: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    limit: int | None = None


class RecipeCatalog(Protocol):
    def search(self, flt: RecipeFilter) -> List[Recipe]: ...


class RatingHistoryStore(Protocol):
    def rated_plans(self, customer_id: str, limit: int) -> List[RatedPlan]: ...


class EngagementSource(Protocol):
    def signals(self, window: str) -> List[EngagementSignals]: ...


def _matches(col: pd.Series, fn) -> pd.Series:
    return col.map(fn).astype(bool)


def _contains(col: pd.Series, needle: str) -> pd.Series:
    return col.str.contains(needle.lower(), regex=False, na=False).astype(bool)


# ──────────────────────────────────────────────────────────────────────
#  In-memory catalog
# ──────────────────────────────────────────────────────────────────────
class InMemoryRecipeCatalog:
    def __init__(self, recipes: Iterable[Recipe]) -> None:
        self._by_id: Dict[str, Recipe] = {}
        rows = []
        for r in recipes:
            self._by_id[r.id] = r
            rows.append(
                {
                    "id": r.id,
                    "approved": r.approved,
                    "prep_time": r.prep_time,
                    "calories": r.nutrition.calories,
                    "protein": r.nutrition.protein,
                    "carbs": r.nutrition.carbs,
                    "fat": r.nutrition.fat,
                    "meal_types": set(r.meal_types),
                    "dietary_tags": set(r.dietary_tags),
                    "tags": set(r.tags) | set(r.dietary_tags),
                    "ingredients": " | ".join(r.ingredient_names),
                }
            )
        self._df = pd.DataFrame(
            rows,
            columns=[
                "id", "approved", "prep_time", "calories", "protein", "carbs",
                "fat", "meal_types", "dietary_tags", "tags", "ingredients",
            ],
        )

    def __len__(self) -> int:
        return len(self._by_id)

    def get(self, recipe_id: str) -> Recipe | None:
        return self._by_id.get(recipe_id)

    def all(self) -> List[Recipe]:
        return list(self._by_id.values())

    # ─────────────────────────────── filter ───────────────────────── #
    def search(self, flt: RecipeFilter) -> List[Recipe]:
        df = self._df
        if df.empty:
            return []

        if flt.approved is not None:
            df = df[df["approved"] == flt.approved]

        if flt.meal_type:
            mt = flt.meal_type.lower()
            df = df[_matches(df["meal_types"], lambda s: mt in s)]

        if flt.dietary_tags:
            need = {t.lower() for t in flt.dietary_tags}
            df = df[_matches(df["dietary_tags"], lambda s: need <= s)]

        if flt.tags:
            want = {t.lower() for t in flt.tags}
            df = df[_matches(df["tags"], lambda s: bool(want & s))]

        if flt.max_prep_time is not None:
            df = df[df["prep_time"] <= flt.max_prep_time]

        for macro in ("calories", "protein", "carbs", "fat"):
            lo = getattr(flt, f"min_{macro}")
            hi = getattr(flt, f"max_{macro}")
            if lo is not None:
                df = df[df[macro] >= lo]
            if hi is not None:
                df = df[df[macro] <= hi]

        if flt.include_ingredients:
            mask = pd.Series(False, index=df.index)
            for needle in flt.include_ingredients:
                mask |= _contains(df["ingredients"], needle)
            df = df[mask]

        for needle in flt.exclude_ingredients:
            df = df[~_contains(df["ingredients"], needle)]

        if flt.limit is not None:
            df = df.head(flt.limit)

        _LOG.debug("catalog search meal_type=%s → %d rows", flt.meal_type, len(df))
        return [self._by_id[i] for i in df["id"]]


# ──────────────────────────────────────────────────────────────────────
#  History + engagement fakes
# ──────────────────────────────────────────────────────────────────────
class InMemoryRatingHistory:
    def __init__(self, plans: Iterable[RatedPlan] = ()) -> None:
        self._plans = list(plans)

    def rated_plans(self, customer_id: str, limit: int) -> List[RatedPlan]:
        mine = [p for p in self._plans if p.customer_id == customer_id]
        mine.sort(key=lambda p: p.rated_at, reverse=True)
        return mine[:limit]


class InMemoryEngagementSource:
    """
    `by_window` maps a window label ("24h", "7d"…) to its signals;
    a plain list is served for every window.
    """

    def __init__(
        self,
        signals: Iterable[EngagementSignals] | Mapping[str, Iterable[EngagementSignals]] = (),
    ) -> None:
        if isinstance(signals, Mapping):
            self._by_window = {k: list(v) for k, v in signals.items()}
            self._default: List[EngagementSignals] = []
        else:
            self._by_window = {}
            self._default = list(signals)

    def signals(self, window: str) -> List[EngagementSignals]:
        return list(self._by_window.get(window, self._default))
