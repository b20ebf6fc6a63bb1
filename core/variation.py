"""
core/variation.py
────────────────────────────────────────────────────────────────────────
Keep long-running clients interested without rebuilding their plan.

Responsibilities
----------------
1.   Seasonal / cuisine / difficulty variations – a small set of
     same-meal-type, calorie-close swaps described as a `Variation`.
2.   `create_rotation_plan()` – themed cycles spaced by the client's
     boredom threshold.
3.   `apply_variation_to_meal_plan()` – pure transform, base untouched.

Variety score
-------------
    1 − mean pairwise cosine similarity of the slot ingredient sets
    (MultiLabelBinarizer → cosine_similarity).
"""

from __future__ import annotations

import hashlib
import logging
import math
import re
from datetime import date, datetime, timedelta, timezone
from functools import lru_cache
from typing import Dict, List, Tuple

import numpy as np
from sklearn.metrics.pairwise import cosine_similarity
from sklearn.preprocessing import MultiLabelBinarizer

from core.catalog import RecipeCatalog, RecipeFilter
from core.errors import PlanValidationError
from core.ingredients import aggregate_ingredients
from core.models.plan import MealPlan, MealSlot, RecipeSwap, VariationMetadata
from core.models.preferences import CustomerPreferenceProfile
from core.models.recipe import NutritionDelta, Recipe
from core.models.variation import EngagementPattern, RotationCycle, RotationPlan, Variation
from core.optimizer import plan_nutrition, validate_plan
from core.preferences import score_recipe_for_customer

_LOG = logging.getLogger(__name__)

SEASONAL_INGREDIENTS: Dict[str, Dict[str, List[str]]] = {
    "spring": {
        "primary": ["asparagus", "artichokes", "spring onions", "peas", "strawberries", "apricots"],
        "secondary": ["spinach", "arugula", "radishes", "carrots"],
    },
    "summer": {
        "primary": ["tomatoes", "zucchini", "bell peppers", "berries", "stone fruits", "corn"],
        "secondary": ["cucumbers", "eggplant", "basil", "mint"],
    },
    "fall": {
        "primary": ["squash", "pumpkin", "apples", "cranberries", "sweet potatoes", "brussels sprouts"],
        "secondary": ["cauliflower", "cabbage", "pears", "pomegranate"],
    },
    "winter": {
        "primary": ["root vegetables", "citrus", "dark leafy greens", "dried beans", "nuts"],
        "secondary": ["potatoes", "onions", "garlic", "ginger"],
    },
}
_SEASON_ALIASES = {"autumn": "fall"}

CUISINE_KEY_INGREDIENTS: Dict[str, List[str]] = {
    "mediterranean": ["olive oil", "tomato", "herbs", "seafood", "legumes"],
    "asian_fusion": ["ginger", "soy sauce", "sesame oil", "vegetables", "rice"],
}

SKILL_CAPS = {"beginner": 0.3, "intermediate": 0.5, "advanced": 0.8}
DIRECTIONS = ("increase", "decrease")

SEASONAL_KCAL_WINDOW = 100
SEASONAL_KCAL_CEILING = 1.1
CUISINE_KCAL_WINDOW = 120
DIFFICULTY_KCAL_WINDOW = 100
DIFFICULTY_TIME_WINDOW = 20
DIFFICULTY_STEP = 0.1
DIFFICULTY_FLOOR = 0.2

_NAME_SUFFIX = {"seasonal": "Seasonal", "cuisine": "Cultural", "difficulty": "Skill Building"}

# (theme, focus areas, expected outcomes, success metrics)
_THEMES: List[Tuple[str, List[str], List[str], List[str]]] = [
    (
        "Seasonal Focus",
        ["seasonal produce", "freshness"],
        ["higher micronutrient variety", "lower ingredient cost"],
        ["plan rating ≥ 4", "seasonal alignment ≥ 0.5"],
    ),
    (
        "Cultural Exploration",
        ["new cuisines", "flavour variety"],
        ["renewed interest in the plan", "broader ingredient range"],
        ["plan rating ≥ 4", "cuisine recipes kept after the cycle"],
    ),
    (
        "Skill Building",
        ["cooking technique", "confidence in the kitchen"],
        ["more complex recipes prepared", "less reliance on repeats"],
        ["difficulty adjustment > 0", "no drop in adherence"],
    ),
    (
        "Health Optimization",
        ["whole foods", "healthy fats"],
        ["better macro balance", "improved energy"],
        ["nutrition targets met", "plan rating ≥ 4"],
    ),
]


# ──────────────────────────────── helpers ──────────────────────────── #
def _stem(term: str) -> str:
    term = term.lower()
    if term.endswith("ies"):
        return term[:-3]
    if term.endswith(("oes", "shes", "ches", "xes")):
        return term[:-2]
    if term.endswith("s") and not term.endswith("ss"):
        return term[:-1]
    return term


@lru_cache(maxsize=256)
def _term_pattern(term: str) -> re.Pattern:
    # whole words only: "peas" hits "green peas" but not "chickpeas" or "peanut butter"
    return re.compile(rf"\b{re.escape(_stem(term))}(?:ies|es|s|y)?\b")


def _has_term(recipe: Recipe, term: str) -> bool:
    pattern = _term_pattern(term)
    return any(pattern.search(name) for name in recipe.ingredient_names)


def _count_terms(recipe: Recipe, terms: List[str]) -> int:
    return sum(1 for t in terms if _has_term(recipe, t))


def season_key(season: str) -> str:
    key = _SEASON_ALIASES.get(season.strip().lower(), season.strip().lower())
    if key not in SEASONAL_INGREDIENTS:
        raise PlanValidationError(
            f"unknown season {season!r}; expected one of {sorted(SEASONAL_INGREDIENTS)}", "season"
        )
    return key


def season_for(day: date) -> str:
    if 3 <= day.month <= 5:
        return "spring"
    if 6 <= day.month <= 8:
        return "summer"
    if 9 <= day.month <= 11:
        return "fall"
    return "winter"


def difficulty(recipe: Recipe) -> float:
    return min(1.0, recipe.total_time / 60)


def variety_score(slots: List[MealSlot]) -> float:
    if len(slots) < 2:
        return 0.0
    mlb = MultiLabelBinarizer()
    x = mlb.fit_transform([set(s.recipe.ingredient_names) for s in slots])
    if x.shape[1] == 0:
        return 0.0
    sim = cosine_similarity(x)
    n = len(slots)
    mean_off_diag = (sim.sum() - np.trace(sim)) / (n * (n - 1))
    return float(np.clip(1.0 - mean_off_diag, 0.0, 1.0))


def variation_id(kind: str, target: str, base_id: str, changes: List[RecipeSwap]) -> str:
    h = hashlib.sha1(base_id.encode())
    for c in changes:
        h.update(f"|{c.day}:{c.meal_number}:{c.original_recipe.id}>{c.new_recipe.id}".encode())
    return f"var-{kind}-{target}-{h.hexdigest()[:8]}"


def _swapped(plan: MealPlan, changes: List[RecipeSwap]) -> List[MealSlot]:
    by_slot = {(c.day, c.meal_number): c.new_recipe for c in changes}
    return [
        s.model_copy(update={"recipe": by_slot[(s.day, s.meal_number)]})
        if (s.day, s.meal_number) in by_slot else s
        for s in plan.ordered_meals()
    ]


# ──────────────────────────────────────────────────────────────────────
#  Generator
# ──────────────────────────────────────────────────────────────────────
class VariationGenerator:
    def __init__(self, catalog: RecipeCatalog) -> None:
        self._catalog = catalog

    # ─────────────────────────── variations ───────────────────────── #
    def create_seasonal_variation(self, plan: MealPlan, season: str) -> Variation:
        validate_plan(plan)
        key = season_key(season)
        primary = SEASONAL_INGREDIENTS[key]["primary"]
        secondary = SEASONAL_INGREDIENTS[key]["secondary"]
        pools = self._pools(plan)

        changes: List[RecipeSwap] = []
        memo: Dict[Tuple[str, str], Recipe | None] = {}
        for slot in plan.ordered_meals():
            if _count_terms(slot.recipe, primary):
                continue
            memo_key = (slot.meal_type, slot.recipe.id)
            if memo_key not in memo:
                kcal = slot.recipe.nutrition.calories
                cands = [
                    r for r in pools.get(slot.meal_type, [])
                    if r.id != slot.recipe.id
                    and abs(r.nutrition.calories - kcal) <= SEASONAL_KCAL_WINDOW
                    and r.nutrition.calories <= kcal * SEASONAL_KCAL_CEILING
                    and _count_terms(r, primary)
                ]
                memo[memo_key] = min(
                    cands,
                    key=lambda r: (
                        -(3 * _count_terms(r, primary) + _count_terms(r, secondary)),
                        abs(r.nutrition.calories - kcal),
                        r.id,
                    ),
                    default=None,
                )
            pick = memo[memo_key]
            if pick is not None:
                changes.append(self._swap(slot, pick, f"In-season {key} ingredients"))

        result = _swapped(plan, changes)
        aligned = sum(1 for s in result if _count_terms(s.recipe, primary + secondary))
        return self._variation(
            plan, "seasonal", key, changes, result, seasonal_alignment=aligned / len(result)
        )

    def create_cuisine_variation(
        self,
        plan: MealPlan,
        cuisine: str,
        profile: CustomerPreferenceProfile | None = None,
        max_changes: int = 3,
    ) -> Variation:
        validate_plan(plan)
        cuisine = cuisine.strip().lower().replace(" ", "_")
        if max_changes < 0:
            raise PlanValidationError("max_changes must be ≥ 0", "max_changes")
        key_ingredients = CUISINE_KEY_INGREDIENTS.get(cuisine, [])

        def matches(r: Recipe) -> bool:
            return cuisine in r.tags or _count_terms(r, key_ingredients) > 0

        pools = self._pools(plan)
        slots = plan.ordered_meals()
        off_cuisine = [s for s in slots if not matches(s.recipe)]
        k = min(max_changes, len(off_cuisine))
        picked = [off_cuisine[i * len(off_cuisine) // k] for i in range(k)] if k else []

        changes: List[RecipeSwap] = []
        used: set[str] = set()
        for slot in picked:
            kcal = slot.recipe.nutrition.calories
            cands = [
                r for r in pools.get(slot.meal_type, [])
                if r.id not in used
                and r.id != slot.recipe.id
                and abs(r.nutrition.calories - kcal) <= CUISINE_KCAL_WINDOW
                and matches(r)
            ]
            pick = min(
                cands,
                key=lambda r: (
                    -score_recipe_for_customer(r, profile) if profile is not None
                    else -_count_terms(r, key_ingredients),
                    abs(r.nutrition.calories - kcal),
                    r.id,
                ),
                default=None,
            )
            if pick is not None:
                used.add(pick.id)
                changes.append(self._swap(slot, pick, f"Explore {cuisine.replace('_', ' ')} cuisine"))

        result = _swapped(plan, changes)
        if profile is not None and changes:
            fit = float(np.mean([score_recipe_for_customer(c.new_recipe, profile) for c in changes]))
        else:
            fit = sum(1 for s in result if matches(s.recipe)) / len(result)
        return self._variation(plan, "cuisine", cuisine, changes, result, customer_fit_score=fit)

    def create_difficulty_progression_variation(
        self,
        plan: MealPlan,
        direction: str,
        skill_level: str = "intermediate",
        max_changes: int = 2,
    ) -> Variation:
        validate_plan(plan)
        if direction not in DIRECTIONS:
            raise PlanValidationError(f"direction must be one of {DIRECTIONS}", "direction")
        if skill_level not in SKILL_CAPS:
            raise PlanValidationError(f"unknown skill level {skill_level!r}", "skill_level")
        if max_changes < 0:
            raise PlanValidationError("max_changes must be ≥ 0", "max_changes")

        slots = plan.ordered_meals()
        current = float(np.mean([difficulty(s.recipe) for s in slots]))
        step = DIFFICULTY_STEP if direction == "increase" else -DIFFICULTY_STEP
        target = min(SKILL_CAPS[skill_level], max(DIFFICULTY_FLOOR, current + step))
        target_minutes = target * 60
        harder = direction == "increase"

        # slots furthest on the wrong side of the target go first
        movable = [s for s in slots if (difficulty(s.recipe) < target) == harder
                   and difficulty(s.recipe) != target]
        movable.sort(key=lambda s: (-abs(difficulty(s.recipe) - target), s.day, s.meal_number))

        pools = self._pools(plan)
        changes: List[RecipeSwap] = []
        for slot in movable:
            if len(changes) >= max_changes:
                break
            kcal = slot.recipe.nutrition.calories
            cands = [
                r for r in pools.get(slot.meal_type, [])
                if r.id != slot.recipe.id
                and abs(r.total_time - target_minutes) <= DIFFICULTY_TIME_WINDOW
                and abs(r.nutrition.calories - kcal) <= DIFFICULTY_KCAL_WINDOW
                and (difficulty(r) > difficulty(slot.recipe)) == harder
                and difficulty(r) != difficulty(slot.recipe)
            ]
            pick = min(
                cands,
                key=lambda r: (abs(r.total_time - target_minutes), abs(r.nutrition.calories - kcal), r.id),
                default=None,
            )
            if pick is not None:
                verb = "Step up" if harder else "Simplify"
                changes.append(self._swap(slot, pick, f"{verb} to ~{target_minutes:.0f} min recipes"))

        result = _swapped(plan, changes)
        adjustment = float(np.mean([difficulty(s.recipe) for s in result])) - current
        return self._variation(
            plan, "difficulty", direction, changes, result, difficulty_adjustment=adjustment
        )

    # ──────────────────────────── rotation ────────────────────────── #
    def create_rotation_plan(
        self,
        customer_id: str,
        base_plan: MealPlan,
        weeks: int,
        engagement: EngagementPattern | None = None,
        profile: CustomerPreferenceProfile | None = None,
        start_date: date | None = None,
    ) -> RotationPlan:
        if not 1 <= weeks <= 52:
            raise PlanValidationError("weeks must be between 1 and 52", "weeks")
        validate_plan(base_plan)
        eng = engagement or EngagementPattern()
        start = start_date or date.today()

        frequency = int(min(14, max(3, round(eng.boredom_threshold_days + (1 - eng.variety_preference) * 5))))
        n_cycles = math.ceil(weeks * 7 / frequency)
        skill = profile.cooking_preferences.skill_level if profile else "intermediate"

        memo: Dict[Tuple[str, str], Variation] = {}
        cycles: List[RotationCycle] = []
        for i in range(n_cycles):
            theme, focus, outcomes, metrics = _THEMES[i % len(_THEMES)]
            kind, target = self._theme_target(i % len(_THEMES), start + timedelta(days=i * frequency), profile)
            if (kind, target) not in memo:
                if kind == "seasonal":
                    memo[(kind, target)] = self.create_seasonal_variation(base_plan, target)
                elif kind == "cuisine":
                    memo[(kind, target)] = self.create_cuisine_variation(base_plan, target, profile)
                else:
                    memo[(kind, target)] = self.create_difficulty_progression_variation(
                        base_plan, target, skill
                    )
            cycles.append(
                RotationCycle(
                    cycle_number=i + 1,
                    theme=theme,
                    start_week=i * frequency // 7 + 1,
                    duration_days=frequency,
                    focus_areas=focus,
                    expected_outcomes=outcomes,
                    success_metrics=metrics,
                    variation=memo[(kind, target)],
                )
            )

        mean_variety = float(np.mean([c.variation.variety_score for c in cycles]))
        predicted = (
            0.4 * eng.variety_preference
            + 0.2 * eng.adventurousness
            + 0.2 * eng.feedback_responsiveness
            + 0.2 * mean_variety
        )
        _LOG.info(
            "rotation for %s: %d cycles every %d days", customer_id, n_cycles, frequency
        )
        return RotationPlan(
            customer_id=customer_id,
            base_id=base_plan.id,
            weeks=weeks,
            cycles=cycles,
            variation_frequency_days=frequency,
            predicted_engagement=float(min(1.0, max(0.0, predicted))),
        )

    @staticmethod
    def _theme_target(
        theme_idx: int, cycle_date: date, profile: CustomerPreferenceProfile | None
    ) -> Tuple[str, str]:
        if theme_idx == 0:
            return "seasonal", season_for(cycle_date)
        if theme_idx == 1:
            liked = [
                (name, p.confidence) for name, p in (profile.cuisine_preferences.items() if profile else [])
                if p.label in ("love", "like")
            ]
            liked.sort(key=lambda kv: (-kv[1], kv[0]))
            return "cuisine", liked[0][0] if liked else "asian_fusion"
        if theme_idx == 2:
            return "difficulty", "increase"
        return "cuisine", "mediterranean"

    # ───────────────────────────── apply ──────────────────────────── #
    @staticmethod
    def apply_variation_to_meal_plan(base: MealPlan, variation: Variation) -> MealPlan:
        if variation.base_id != base.id:
            raise PlanValidationError(
                f"variation {variation.variation_id} targets {variation.base_id}, not {base.id}",
                "variation",
            )
        for c in variation.changes:
            slot = base.slot(c.day, c.meal_number)
            if slot is None or slot.recipe.id != c.original_recipe.id:
                raise PlanValidationError(
                    f"change for day {c.day} meal {c.meal_number} does not match the base plan",
                    "variation",
                )
        meals = _swapped(base, variation.changes)
        return base.model_copy(
            update={
                "id": f"{base.id}-{variation.variation_id}",
                "plan_name": f"{base.plan_name} - {_NAME_SUFFIX[variation.kind]}",
                "meals": meals,
                "created_at": variation.created_at,
                "shopping_list": aggregate_ingredients(meals),
                "variation_metadata": VariationMetadata(
                    base_id=base.id,
                    variation_id=variation.variation_id,
                    kind=variation.kind,
                    changes=list(variation.changes),
                ),
            }
        )

    # ──────────────────────────── internals ───────────────────────── #
    def _pools(self, plan: MealPlan) -> Dict[str, List[Recipe]]:
        pools: Dict[str, List[Recipe]] = {}
        try:
            for meal_type in dict.fromkeys(s.meal_type for s in plan.meals):
                pools[meal_type] = [
                    r for r in self._catalog.search(RecipeFilter(meal_type=meal_type, approved=True))
                    if r.approved
                ]
        except Exception as e:
            _LOG.error("catalog search failed, variation will carry no changes: %s", e)
            return {}
        return pools

    @staticmethod
    def _swap(slot: MealSlot, new: Recipe, reason: str) -> RecipeSwap:
        return RecipeSwap(
            day=slot.day,
            meal_number=slot.meal_number,
            original_recipe=slot.recipe,
            new_recipe=new,
            reason=reason,
            nutritional_delta=NutritionDelta.between(slot.recipe.nutrition, new.nutrition),
            confidence=0.8,
        )

    @staticmethod
    def _variation(
        plan: MealPlan,
        kind: str,
        target: str,
        changes: List[RecipeSwap],
        result: List[MealSlot],
        **scores,
    ) -> Variation:
        before = plan_nutrition(plan).daily
        after = plan_nutrition(plan.model_copy(update={"meals": result})).daily
        _LOG.debug("%s variation (%s) for %s: %d changes", kind, target, plan.id, len(changes))
        return Variation(
            base_id=plan.id,
            variation_id=variation_id(kind, target, plan.id, changes),
            kind=kind,
            target=target,
            changes=changes,
            nutritional_impact=NutritionDelta.between(before, after),
            variety_score=variety_score(result),
            created_at=datetime.now(timezone.utc),
            **scores,
        )
