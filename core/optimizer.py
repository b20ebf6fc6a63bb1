"""
core/optimizer.py
────────────────────────────────────────────────────────────────────────
Greedy, constraint-driven recipe substitution.

Responsibilities
----------------
1.   `plan_nutrition()` – totals, per-day values and macro energy ratios.
2.   `constraint_score()` – 1 − mean normalised distance to the bounds
     (a satisfied macro contributes 0).
3.   `NutritionalOptimizer.optimize()` – repeatedly fix the worst
     violation with the best single swap; a swap is only committed if
     it strictly raises the score, so the result never regresses.
4.   `generate_optimization_report()` – plain-text rendering.

This is local improvement, not a solver: it stops at the first plan
where no single swap helps.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Tuple

import numpy as np
import pandas as pd
from pydantic import ValidationError

from core.catalog import RecipeCatalog, RecipeFilter
from core.errors import PlanValidationError
from core.models.plan import (
    MealPlan,
    MealSlot,
    NutritionalConstraintSet,
    OptimizationResult,
    PlanNutrition,
    RecipeSwap,
)
from core.models.recipe import MACROS, Nutrition, NutritionDelta, Recipe

_LOG = logging.getLogger(__name__)

_UNITS = {"calories": "kcal", "protein": "g", "carbs": "g", "fat": "g"}


# ──────────────────────────────────────────────────────────────────────
#  Nutrition maths
# ──────────────────────────────────────────────────────────────────────
def plan_nutrition(plan: MealPlan) -> PlanNutrition:
    keys = list(MACROS) + ["fiber", "sodium"]
    df = pd.DataFrame(
        [s.recipe.nutrition.model_dump() for s in plan.meals], columns=keys
    )
    totals = df.sum() if not df.empty else pd.Series(0.0, index=keys)
    total = Nutrition(**{k: float(totals[k]) for k in keys})
    daily = Nutrition(**{k: float(totals[k]) / plan.days for k in keys})
    cal = total.calories
    return PlanNutrition(
        total=total,
        daily=daily,
        protein_ratio=(total.protein * 4 / cal) if cal else 0.0,
        carbs_ratio=(total.carbs * 4 / cal) if cal else 0.0,
        fat_ratio=(total.fat * 9 / cal) if cal else 0.0,
    )


def _bounds(constraints: NutritionalConstraintSet) -> Tuple[np.ndarray, np.ndarray]:
    lo = np.array([constraints.bounds(m)[0] for m in MACROS], dtype=float)
    hi = np.array([constraints.bounds(m)[1] for m in MACROS], dtype=float)
    return lo, hi


def _distances(daily: np.ndarray, lo: np.ndarray, hi: np.ndarray) -> np.ndarray:
    """Per-macro normalised distance in [0, 1]; 0 inside the bounds."""
    under = np.where(daily < lo, (lo - daily) / np.maximum(lo, 1.0), 0.0)
    over = np.where(daily > hi, (daily - hi) / np.maximum(hi, 1.0), 0.0)
    return np.minimum(under + over, 1.0)


def constraint_score(daily: Nutrition, constraints: NutritionalConstraintSet) -> float:
    lo, hi = _bounds(constraints)
    d = _distances(np.array(daily.macros(), dtype=float), lo, hi)
    return float(1.0 - d.mean())


def _validated_constraints(constraints) -> NutritionalConstraintSet:
    if isinstance(constraints, NutritionalConstraintSet):
        # re-run validation in case the instance was built with model_construct
        constraints = constraints.model_dump()
    try:
        return NutritionalConstraintSet.model_validate(constraints)
    except ValidationError as e:
        raise PlanValidationError(f"invalid constraint set: {e}", "constraints") from e


def validate_plan(plan: MealPlan) -> None:
    if plan.days < 1 or plan.meals_per_day < 1:
        raise PlanValidationError("days and meals_per_day must be positive", "plan")
    if not plan.is_complete():
        raise PlanValidationError(
            f"incomplete plan: {len(plan.meals)} slots, expected "
            f"{plan.days * plan.meals_per_day}",
            "meals",
        )


# ──────────────────────────────────────────────────────────────────────
#  Optimizer
# ──────────────────────────────────────────────────────────────────────
class NutritionalOptimizer:
    def __init__(self, catalog: RecipeCatalog, max_iterations: int = 50) -> None:
        self._catalog = catalog
        self.max_iterations = max_iterations

    # ───────────────────────────── public ─────────────────────────── #
    def optimize(
        self,
        plan: MealPlan,
        constraints,
        candidate_filter: RecipeFilter | None = None,
    ) -> OptimizationResult:
        """
        `candidate_filter` narrows the swap pool (dietary tags, exclusions,
        prep time); meal type and approval are always enforced.
        """
        validate_plan(plan)
        cons = _validated_constraints(constraints)
        lo, hi = _bounds(cons)

        slots: List[MealSlot] = [s.model_copy() for s in plan.ordered_meals()]
        daily = self._daily_vector(slots, plan.days)
        score = 1.0 - _distances(daily, lo, hi).mean()
        original_score = float(score)

        pools: Dict[str, List[Recipe]] = {}
        changes: List[RecipeSwap] = []
        iterations = 0

        while iterations < self.max_iterations:
            dist = _distances(daily, lo, hi)
            violated = [i for i in np.argsort(-dist, kind="stable") if dist[i] > 0]
            if not violated:
                break
            iterations += 1

            committed = False
            for macro_idx in violated:
                best = self._best_swap(
                    slots, plan.days, daily, lo, hi, score, int(macro_idx), pools, candidate_filter
                )
                if best is None:
                    continue
                slot_idx, cand, new_daily, new_score = best
                old = slots[slot_idx]
                changes.append(
                    RecipeSwap(
                        day=old.day,
                        meal_number=old.meal_number,
                        original_recipe=old.recipe,
                        new_recipe=cand,
                        reason=self._reason(int(macro_idx), daily, new_daily, lo, hi),
                        nutritional_delta=NutritionDelta.between(
                            old.recipe.nutrition, cand.nutrition
                        ),
                    )
                )
                slots[slot_idx] = old.model_copy(update={"recipe": cand})
                daily, score = new_daily, new_score
                committed = True
                break

            if not committed:
                _LOG.debug("no improving swap left after %d iterations", iterations)
                break

        optimized = plan.model_copy(
            update={"meals": slots, "optimization_score": round(float(score), 4)}
        )
        final = plan_nutrition(optimized)
        success = bool((_distances(daily, lo, hi) == 0).all())
        if original_score > 0:
            improvement = (score - original_score) / original_score * 100
        else:
            improvement = 100.0 if score > 0 else 0.0

        return OptimizationResult(
            success=success,
            original_score=original_score,
            optimized_score=float(score),
            improvement_percentage=float(improvement),
            changes=changes,
            final_nutrition=final,
            optimized_plan=optimized,
            iterations=iterations,
        )

    # ──────────────────────────── internals ───────────────────────── #
    @staticmethod
    def _daily_vector(slots: List[MealSlot], days: int) -> np.ndarray:
        mat = np.array([s.recipe.nutrition.macros() for s in slots], dtype=float)
        return mat.sum(axis=0) / days if len(mat) else np.zeros(len(MACROS))

    def _pool(
        self, meal_type: str, pools: Dict[str, List[Recipe]], base: RecipeFilter | None
    ) -> List[Recipe]:
        if meal_type not in pools:
            flt = (base or RecipeFilter()).model_copy(
                update={"meal_type": meal_type, "approved": True, "limit": None}
            )
            try:
                pools[meal_type] = self._catalog.search(flt)
            except Exception as e:
                _LOG.error("catalog search failed for %s: %s", meal_type, e)
                pools[meal_type] = []
        return pools[meal_type]

    def _best_swap(
        self,
        slots: List[MealSlot],
        days: int,
        daily: np.ndarray,
        lo: np.ndarray,
        hi: np.ndarray,
        score: float,
        macro_idx: int,
        pools: Dict[str, List[Recipe]],
        base: RecipeFilter | None = None,
    ) -> Tuple[int, Recipe, np.ndarray, float] | None:
        cur = _distances(daily, lo, hi)
        best: Tuple[float, float, str, int] | None = None
        best_payload: Tuple[int, Recipe, np.ndarray, float] | None = None

        for idx, slot in enumerate(slots):
            pool = [r for r in self._pool(slot.meal_type, pools, base)
                    if r.approved and r.id != slot.recipe.id]
            if not pool:
                continue
            old_vec = np.array(slot.recipe.nutrition.macros(), dtype=float)
            cand_mat = np.array([r.nutrition.macros() for r in pool], dtype=float)
            new_daily = daily + (cand_mat - old_vec) / days          # (n, 4)
            new_dist = np.vstack([_distances(row, lo, hi) for row in new_daily])
            new_scores = 1.0 - new_dist.mean(axis=1)

            ok = (
                (new_dist[:, macro_idx] < cur[macro_idx])
                & (new_dist <= cur + 1e-12).all(axis=1)
                & (new_scores > score + 1e-12)
            )
            for j in np.flatnonzero(ok):
                key = (
                    -float(new_scores[j]),
                    abs(float(cand_mat[j, 0] - old_vec[0])),
                    pool[j].id,
                    idx,
                )
                if best is None or key < best:
                    best = key
                    best_payload = (idx, pool[j], new_daily[j], float(new_scores[j]))

        return best_payload

    @staticmethod
    def _reason(
        macro_idx: int, before: np.ndarray, after: np.ndarray, lo: np.ndarray, hi: np.ndarray
    ) -> str:
        macro = MACROS[macro_idx]
        verb = "Raise" if before[macro_idx] < lo[macro_idx] else "Reduce"
        unit = _UNITS[macro]
        return (
            f"{verb} daily {macro}: {before[macro_idx]:.0f} → {after[macro_idx]:.0f} {unit} "
            f"(target {lo[macro_idx]:.0f}-{hi[macro_idx]:.0f} {unit})"
        )


# ──────────────────────────────────────────────────────────────────────
#  Report
# ──────────────────────────────────────────────────────────────────────
def generate_optimization_report(result: OptimizationResult) -> str:
    if result.success:
        status = "SUCCESSFUL"
    elif result.changes:
        status = "PARTIAL"
    else:
        status = "NO IMPROVEMENT"
    lines = [
        "=== NUTRITIONAL OPTIMIZATION REPORT ===",
        "",
        f"Optimization Status: {status}",
        f"Original Score: {result.original_score:.3f}",
        f"Optimized Score: {result.optimized_score:.3f}",
        f"Improvement: {result.improvement_percentage:.1f}%",
        "",
    ]
    if result.changes:
        lines.append("RECIPE SUBSTITUTIONS:")
        for n, c in enumerate(result.changes, start=1):
            lines += [
                f"{n}. Day {c.day}, Meal {c.meal_number}:",
                f"   Old: {c.original_recipe.name}",
                f"   New: {c.new_recipe.name}",
                f"   Reason: {c.reason}",
            ]
        lines.append("")
    d = result.final_nutrition.daily
    fn = result.final_nutrition
    lines += [
        "FINAL NUTRITIONAL PROFILE:",
        f"Daily Calories: {d.calories:.0f}",
        f"Daily Protein: {d.protein:.1f}g ({fn.protein_ratio * 100:.1f}%)",
        f"Daily Carbs: {d.carbs:.1f}g ({fn.carbs_ratio * 100:.1f}%)",
        f"Daily Fat: {d.fat:.1f}g ({fn.fat_ratio * 100:.1f}%)",
    ]
    return "\n".join(lines)
