"""
core/generator.py
────────────────────────────────────────────────────────────────────────
Assemble a complete meal plan for a trainer's client.

Pipeline
--------
    options ─► goal targets ─► catalog candidates per meal type
            ─► preference ranking (optional profile) ─► draft plan
            ─► optimizer ─► shopping list + timing annotations

Invalid options raise `PlanValidationError` before any work. Anything
going wrong downstream (catalog down, empty pool, optimizer error)
yields an unoptimized fallback plan with the same slot count.
"""

from __future__ import annotations

import logging
import uuid
from typing import Dict, List

import pandas as pd
from pydantic import BaseModel, Field, ValidationError

from core.catalog import RecipeCatalog, RecipeFilter
from core.errors import PlanValidationError
from core.ingredients import aggregate_ingredients
from core.models.plan import MealPlan, MealSlot, NutritionalConstraintSet
from core.models.preferences import CustomerPreferenceProfile
from core.models.recipe import Nutrition, Recipe
from core.nutrition_targets import GOAL_PROFILES, GoalTargetCalculator, goal_key
from core.optimizer import NutritionalOptimizer
from core.preferences import score_recipe_for_customer

_LOG = logging.getLogger(__name__)

MEAL_LAYOUTS: Dict[int, List[str]] = {
    1: ["dinner"],
    2: ["breakfast", "dinner"],
    3: ["breakfast", "lunch", "dinner"],
    4: ["breakfast", "lunch", "dinner", "snack"],
    5: ["breakfast", "snack", "lunch", "snack", "dinner"],
    6: ["breakfast", "snack", "lunch", "snack", "dinner", "snack"],
}

# relative share of the day's kcal per meal type (normalised per layout)
_CALORIE_SHARE = {"breakfast": 0.25, "lunch": 0.35, "dinner": 0.35, "snack": 0.10}

PREFERENCE_WEIGHT = 0.6
CLOSENESS_WEIGHT = 0.4


class PlanOptions(BaseModel):
    plan_name: str = "Personalized Meal Plan"
    fitness_goal: str = "general_health"
    description: str | None = None
    daily_calorie_target: float = Field(..., ge=800, le=5001)
    days: int = Field(7, ge=1, le=30)
    meals_per_day: int = Field(3, ge=1, le=6)
    dietary_tags: List[str] = Field(default_factory=list)
    max_prep_time: int | None = Field(None, ge=0)
    exclude_ingredients: List[str] = Field(default_factory=list)


def _slot_targets(layout: List[str], kcal: float) -> List[float]:
    shares = [_CALORIE_SHARE[m] for m in layout]
    total = sum(shares)
    return [kcal * s / total for s in shares]


class MealPlanGenerator:
    def __init__(
        self,
        catalog: RecipeCatalog,
        optimizer: NutritionalOptimizer | None = None,
        calculator: GoalTargetCalculator | None = None,
    ) -> None:
        self._catalog = catalog
        self._optimizer = optimizer or NutritionalOptimizer(catalog)
        self._calc = calculator or GoalTargetCalculator()

    # ───────────────────────────── public ─────────────────────────── #
    def generate_intelligent_meal_plan(
        self,
        options: PlanOptions | dict,
        trainer_id: str,
        profile: CustomerPreferenceProfile | None = None,
    ) -> MealPlan:
        opts = self._validate(options)
        return self._generate(opts, trainer_id, profile, factor=1.0)

    def generate_progressive_meal_plan(
        self,
        options: PlanOptions | dict,
        trainer_id: str,
        week_number: int,
        total_weeks: int,
        profile: CustomerPreferenceProfile | None = None,
    ) -> MealPlan:
        opts = self._validate(options)
        factor = self._calc.progressive_factor(opts.fitness_goal, week_number, total_weeks)
        opts = opts.model_copy(update={"plan_name": f"{opts.plan_name} - Week {week_number}"})
        _LOG.debug("progressive week %d/%d factor=%.3f", week_number, total_weeks, factor)
        return self._generate(opts, trainer_id, profile, factor=factor)

    # ──────────────────────────── pipeline ────────────────────────── #
    @staticmethod
    def _validate(options: PlanOptions | dict) -> PlanOptions:
        if isinstance(options, PlanOptions):
            options = options.model_dump()
        try:
            return PlanOptions.model_validate(options)
        except ValidationError as e:
            raise PlanValidationError(f"invalid plan options: {e}", "options") from e

    def _generate(
        self,
        opts: PlanOptions,
        trainer_id: str,
        profile: CustomerPreferenceProfile | None,
        factor: float,
    ) -> MealPlan:
        targets = self._calc.targets(opts.fitness_goal, opts.daily_calorie_target, factor)
        layout = MEAL_LAYOUTS[opts.meals_per_day]
        pools: Dict[str, List[Recipe]] = {}

        try:
            for meal_type in dict.fromkeys(layout):
                pools[meal_type] = self._candidates(meal_type, opts, profile)
                if not pools[meal_type]:
                    raise LookupError(f"no approved {meal_type} recipes match the request")

            draft = self._draft(opts, trainer_id, targets, layout, pools, profile)
            constraints: NutritionalConstraintSet = self._calc.constraints(targets)
            result = self._optimizer.optimize(draft, constraints, self._filter(opts, profile))
            plan = result.optimized_plan
        except PlanValidationError:
            raise
        except Exception as e:
            _LOG.warning("plan generation degraded to fallback: %s", e)
            return self._fallback(opts, trainer_id, targets, layout, pools)

        return plan.model_copy(
            update={
                "shopping_list": aggregate_ingredients(plan.meals),
                "nutrition_timing": self._calc.timing_recommendations(opts.fitness_goal),
                "workout_notes": self._calc.workout_notes(opts.fitness_goal),
            }
        )

    @staticmethod
    def _filter(
        opts: PlanOptions, profile: CustomerPreferenceProfile | None, meal_type: str | None = None
    ) -> RecipeFilter:
        exclude = list(opts.exclude_ingredients)
        if profile is not None:
            exclude += profile.allergies + profile.intolerances
        return RecipeFilter(
            meal_type=meal_type,
            dietary_tags=opts.dietary_tags,
            approved=True,
            max_prep_time=opts.max_prep_time,
            exclude_ingredients=exclude,
        )

    def _candidates(
        self,
        meal_type: str,
        opts: PlanOptions,
        profile: CustomerPreferenceProfile | None,
    ) -> List[Recipe]:
        flt = self._filter(opts, profile, meal_type)
        return [r for r in self._catalog.search(flt) if r.approved]

    @staticmethod
    def _rank(
        pool: List[Recipe],
        slot_kcal: float,
        profile: CustomerPreferenceProfile | None,
    ) -> List[Recipe]:
        df = pd.DataFrame(
            {
                "pos": range(len(pool)),
                "id": [r.id for r in pool],
                "kcal": [r.nutrition.calories for r in pool],
            }
        )
        df["closeness"] = 1.0 / (1.0 + (df["kcal"] - slot_kcal).abs() / max(slot_kcal, 1.0))
        if profile is not None:
            df["pref"] = [score_recipe_for_customer(r, profile) for r in pool]
            df["score"] = PREFERENCE_WEIGHT * df["pref"] + CLOSENESS_WEIGHT * df["closeness"]
        else:
            df["score"] = df["closeness"]
        df = df.sort_values(["score", "id"], ascending=[False, True])
        return [pool[i] for i in df["pos"]]

    def _draft(
        self,
        opts: PlanOptions,
        trainer_id: str,
        targets: Dict[str, float],
        layout: List[str],
        pools: Dict[str, List[Recipe]],
        profile: CustomerPreferenceProfile | None,
    ) -> MealPlan:
        slot_kcal = _slot_targets(layout, targets["kcal"])
        ranked: Dict[int, List[Recipe]] = {
            n: self._rank(pools[mt], slot_kcal[n], profile) for n, mt in enumerate(layout)
        }
        meals: List[MealSlot] = []
        for day in range(1, opts.days + 1):
            for n, meal_type in enumerate(layout):
                options = ranked[n]
                # rotate through the top of the ranking so days differ
                pick = options[(day - 1 + layout[:n].count(meal_type)) % len(options)]
                meals.append(
                    MealSlot(day=day, meal_number=n + 1, meal_type=meal_type, recipe=pick)
                )
        return self._plan(opts, trainer_id, targets, meals, generated_by="engine")

    def _plan(
        self,
        opts: PlanOptions,
        trainer_id: str,
        targets: Dict[str, float],
        meals: List[MealSlot],
        generated_by: str,
    ) -> MealPlan:
        return MealPlan(
            id=f"plan-{uuid.uuid4().hex[:12]}",
            plan_name=opts.plan_name,
            fitness_goal=goal_key(opts.fitness_goal),
            description=opts.description
            or f"{goal_key(opts.fitness_goal).replace('_', ' ').title()} plan by trainer {trainer_id}",
            daily_calorie_target=targets["kcal"],
            days=opts.days,
            meals_per_day=opts.meals_per_day,
            meals=meals,
            generated_by=generated_by,
        )

    # ──────────────────────────── fallback ────────────────────────── #
    def _fallback(
        self,
        opts: PlanOptions,
        trainer_id: str,
        targets: Dict[str, float],
        layout: List[str],
        pools: Dict[str, List[Recipe]],
    ) -> MealPlan:
        slot_kcal = _slot_targets(layout, targets["kcal"])
        picks: Dict[int, Recipe] = {}
        for n, meal_type in enumerate(layout):
            pool = pools.get(meal_type) or []
            if pool:
                picks[n] = min(pool, key=lambda r: (abs(r.nutrition.calories - slot_kcal[n]), r.id))
            else:
                picks[n] = _placeholder(meal_type, slot_kcal[n], opts.fitness_goal)

        meals = [
            MealSlot(day=day, meal_number=n + 1, meal_type=mt, recipe=picks[n])
            for day in range(1, opts.days + 1)
            for n, mt in enumerate(layout)
        ]
        plan = self._plan(opts, trainer_id, targets, meals, generated_by="fallback")
        return plan.model_copy(
            update={
                "shopping_list": aggregate_ingredients(plan.meals),
                "nutrition_timing": self._calc.timing_recommendations(opts.fitness_goal),
            }
        )


def _placeholder(meal_type: str, kcal: float, goal: str) -> Recipe:
    """Macro-balanced stand-in used only when no catalog recipe is available."""
    gp = GOAL_PROFILES[goal_key(goal)]
    return Recipe(
        id=f"placeholder-{meal_type}",
        name=f"Balanced {meal_type} (trainer's choice)",
        nutrition=Nutrition(
            calories=round(kcal, 0),
            protein=round(gp.protein_ratio * kcal / 4, 1),
            carbs=round(gp.carbs_ratio * kcal / 4, 1),
            fat=round(gp.fat_ratio * kcal / 9, 1),
        ),
        meal_types=[meal_type],
        tags=["placeholder"],
        approved=False,
    )
