"""
core/nutrition_targets.py
────────────────────────────────────────────────────────────────────────
Goal-specific daily targets for the plan generator:

1. Goal profile lookup (macro energy split + calorie modifier)
2. kcal + macro grams for the five goal branches
3. Fiber / sodium guard-rails
4. Constraint set (target ± tolerance) handed to the optimizer
5. Progressive weekly nudge across a multi-week horizon
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from core.errors import PlanValidationError
from core.models.plan import NutritionalConstraintSet

Logger = logging.getLogger(__name__)


# ──────────────────────────────────────────────────────────────────────
#  Goal profiles
# ──────────────────────────────────────────────────────────────────────
@dataclass(frozen=True)
class GoalProfile:
    protein_ratio: float   # share of kcal
    carbs_ratio: float
    fat_ratio: float
    calorie_modifier: float


GOAL_PROFILES: dict[str, GoalProfile] = {
    "weight_loss": GoalProfile(0.35, 0.30, 0.35, 0.85),
    "muscle_gain": GoalProfile(0.30, 0.45, 0.25, 1.15),
    "maintenance": GoalProfile(0.25, 0.45, 0.30, 1.0),
    "athletic_performance": GoalProfile(0.25, 0.55, 0.20, 1.2),
    "general_health": GoalProfile(0.20, 0.50, 0.30, 1.0),
}

PERFORMANCE_GOALS = frozenset({"muscle_gain", "athletic_performance"})

_ALIASES = {
    "lose": "weight_loss",
    "gain": "muscle_gain",
    "maintain": "maintenance",
    "performance": "athletic_performance",
}


def goal_key(goal: str | None) -> str:
    key = (goal or "").strip().lower().replace("-", "_").replace(" ", "_")
    key = _ALIASES.get(key, key)
    if key not in GOAL_PROFILES:
        Logger.debug("unknown goal %r → general_health", goal)
        return "general_health"
    return key


def is_performance_goal(goal: str | None) -> bool:
    return goal_key(goal) in PERFORMANCE_GOALS


# ──────────────────────────────────────────────────────────────────────
#  Calculator
# ──────────────────────────────────────────────────────────────────────
class GoalTargetCalculator:
    """Source-of-truth for goal kcal+macros handed to generator/optimizer."""

    def __init__(self, tolerance: float = 0.10) -> None:
        if not 0 < tolerance < 1:
            raise PlanValidationError("tolerance must be in (0, 1)", "tolerance")
        self.tolerance = tolerance

    # --------------- public entrypoint --------------------------------
    def targets(self, goal: str, daily_calories: float, factor: float = 1.0) -> dict[str, float]:
        profile = GOAL_PROFILES[goal_key(goal)]
        kcal = daily_calories * profile.calorie_modifier * factor
        return {
            "kcal": round(kcal, 0),
            "protein_g": round(profile.protein_ratio * kcal / 4, 1),
            "carbs_g": round(profile.carbs_ratio * kcal / 4, 1),
            "fat_g": round(profile.fat_ratio * kcal / 9, 1),
            "fiber_g": round(max(25.0, kcal / 1000 * 14), 1),
            "sodium_mg": round(min(2300.0, kcal * 1.5), 0),
        }

    def constraints(self, targets: dict[str, float]) -> NutritionalConstraintSet:
        lo, hi = 1 - self.tolerance, 1 + self.tolerance
        return NutritionalConstraintSet(
            min_calories=targets["kcal"] * lo,
            max_calories=targets["kcal"] * hi,
            min_protein=targets["protein_g"] * lo,
            max_protein=targets["protein_g"] * hi,
            min_carbs=targets["carbs_g"] * lo,
            max_carbs=targets["carbs_g"] * hi,
            min_fat=targets["fat_g"] * lo,
            max_fat=targets["fat_g"] * hi,
        )

    # --------------- Progressive nudge -------------------------------
    @staticmethod
    def progressive_factor(goal: str, week_number: int, total_weeks: int) -> float:
        """
        Monotone calorie factor for week `week_number` of `total_weeks`:
        weight loss trends down 2 % per 4 weeks (floor 0.9), gain/
        performance trends up the same amount (cap 1.1), others flat.
        """
        if total_weeks < 1:
            raise PlanValidationError("total_weeks must be ≥ 1", "total_weeks")
        if not 1 <= week_number <= total_weeks:
            raise PlanValidationError(
                f"week_number must be between 1 and {total_weeks}", "week_number"
            )
        step = 0.02 * (week_number - 1) / 4
        key = goal_key(goal)
        if key == "weight_loss":
            return max(0.9, 1.0 - step)
        if key in PERFORMANCE_GOALS:
            return min(1.1, 1.0 + step)
        return 1.0

    # --------------- Annotations --------------------------------------
    @staticmethod
    def timing_recommendations(goal: str) -> list[str]:
        key = goal_key(goal)
        recs = [
            "morning_protein: include 20-30 g protein at breakfast",
            "evening_light: keep the last meal lighter and ≥ 2 h before bed",
        ]
        if key in PERFORMANCE_GOALS:
            recs.insert(1, "post_workout_carbs: eat carbs + protein within 30 min after training")
        if key == "weight_loss":
            recs.append("front_load_calories: place most calories earlier in the day")
        return recs

    @staticmethod
    def workout_notes(goal: str) -> list[str]:
        key = goal_key(goal)
        if key == "muscle_gain":
            return [
                "pre_workout: light carb + protein snack 60 min before training",
                "post_workout: 0.3 g/kg protein within 30 min after training",
            ]
        if key == "athletic_performance":
            return [
                "pre_workout: carb-focused meal 2-3 h before, snack 60 min before",
                "intra_workout: fluids and electrolytes for sessions over 60 min",
                "post_workout: 3:1 carbs to protein within 30 min after training",
            ]
        return []
