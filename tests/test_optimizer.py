# tests/test_optimizer.py
from __future__ import annotations

import math
import pytest

from core.catalog import RecipeFilter
from core.errors import PlanValidationError
from core.models.plan import NutritionalConstraintSet
from core.models.recipe import MACROS, Nutrition
from core.optimizer import (
    NutritionalOptimizer,
    constraint_score,
    generate_optimization_report,
    plan_nutrition,
)
from sample_data import CATALOG, BrokenCatalog, make_plan

LAYOUT = ["breakfast", "lunch", "dinner"]

# oats 400 + bowl 600 + cod 420 = 1420 kcal/day, only calories too low
PLAN = make_plan(LAYOUT, picks={"dinner": "d-cod"})
BOUNDS = NutritionalConstraintSet(
    min_calories=1500, max_calories=1700,
    min_protein=90, max_protein=130,
    min_carbs=120, max_carbs=200,
    min_fat=30, max_fat=70,
)


# ── maths ────────────────────────────────────────────────────────────
def test_plan_nutrition_daily_and_ratios():
    n = plan_nutrition(PLAN)
    assert math.isclose(n.daily.calories, 1420)
    assert math.isclose(n.total.calories, 1420 * 7)
    assert math.isclose(n.daily.protein, 115)
    assert math.isclose(n.protein_ratio, 115 * 4 / 1420)


def test_constraint_score_is_one_inside_bounds():
    inside = Nutrition(calories=1600, protein=100, carbs=150, fat=50)
    assert constraint_score(inside, BOUNDS) == 1.0
    short = Nutrition(calories=750, protein=100, carbs=150, fat=50)
    # calories 50 % short → mean distance 0.5 / 4
    assert math.isclose(constraint_score(short, BOUNDS), 1 - 0.5 / 4)


# ── optimize ─────────────────────────────────────────────────────────
def test_optimize_reaches_bounds_with_greedy_swaps():
    result = NutritionalOptimizer(CATALOG).optimize(PLAN, BOUNDS)
    assert result.success
    assert result.optimized_score >= result.original_score
    assert math.isclose(result.optimized_score, 1.0)
    assert result.improvement_percentage > 0

    assert [c.new_recipe.id for c in result.changes] == ["l-lasagna", "d-stirfry"]
    assert all(c.reason.startswith("Raise daily calories") for c in result.changes)
    assert math.isclose(result.changes[0].nutritional_delta.calories, 350)
    assert len(result.optimized_plan.meals) == 21


def test_optimize_never_mutates_input_plan():
    before = [s.recipe.id for s in PLAN.meals]
    NutritionalOptimizer(CATALOG).optimize(PLAN, BOUNDS)
    assert [s.recipe.id for s in PLAN.meals] == before


def test_never_regresses_under_iteration_cap():
    result = NutritionalOptimizer(CATALOG, max_iterations=1).optimize(PLAN, BOUNDS)
    assert result.iterations == 1
    assert len(result.changes) == 1
    assert not result.success
    assert result.optimized_score > result.original_score


def _macro_gaps(plan, cons):
    daily = plan_nutrition(plan).daily
    gaps = []
    for m in MACROS:
        lo, hi = cons.bounds(m)
        v = getattr(daily, m)
        gaps.append(max(lo - v, 0.0, v - hi))
    return gaps


@pytest.mark.parametrize(
    "picks,update",
    [
        ({"dinner": "d-cod"}, {}),
        ({"dinner": "d-cod"}, {"max_fat": 37}),                    # calorie swaps must not add fat
        ({"dinner": "d-cod"}, {"max_protein": 116, "max_fat": 40}),
        ({}, {"min_calories": 1000, "max_calories": 1200}),       # everything too rich
        ({}, {"min_calories": 3000, "max_calories": 3500}),       # unreachable
        ({"lunch": "l-lasagna"}, {"min_carbs": 100, "max_carbs": 150, "max_fat": 50}),
    ],
)
def test_no_constraint_set_makes_the_plan_worse(picks, update):
    plan = make_plan(LAYOUT, picks=picks)
    cons = BOUNDS.model_copy(update=update)
    result = NutritionalOptimizer(CATALOG).optimize(plan, cons)
    assert result.optimized_score >= result.original_score
    assert all(
        after <= before + 1e-9
        for before, after in zip(_macro_gaps(plan, cons), _macro_gaps(result.optimized_plan, cons))
    )
    assert result.success == (result.optimized_score == 1.0)


def test_candidate_filter_limits_swap_pool():
    flt = RecipeFilter(exclude_ingredients=["pasta", "beef"])
    result = NutritionalOptimizer(CATALOG).optimize(PLAN, BOUNDS, flt)
    swapped = {c.new_recipe.id for c in result.changes}
    assert "l-lasagna" not in swapped
    assert "d-stirfry" not in swapped
    assert result.optimized_score >= result.original_score


def test_catalog_failure_returns_unchanged_plan():
    result = NutritionalOptimizer(BrokenCatalog()).optimize(PLAN, BOUNDS)
    assert result.changes == []
    assert not result.success
    assert result.optimized_score == result.original_score
    assert [s.recipe.id for s in result.optimized_plan.meals] == [s.recipe.id for s in PLAN.ordered_meals()]


def test_already_satisfied_plan_needs_no_iterations():
    loose = BOUNDS.model_copy(update={"min_calories": 1000})
    result = NutritionalOptimizer(CATALOG).optimize(PLAN, loose)
    assert result.success and result.iterations == 0 and result.changes == []


# ── validation ───────────────────────────────────────────────────────
def test_inverted_bounds_rejected():
    bad = BOUNDS.model_dump() | {"min_fat": 90, "max_fat": 10}
    with pytest.raises(PlanValidationError):
        NutritionalOptimizer(CATALOG).optimize(PLAN, bad)


def test_incomplete_plan_rejected():
    broken = PLAN.model_copy(update={"meals": PLAN.meals[:-1]})
    with pytest.raises(PlanValidationError):
        NutritionalOptimizer(CATALOG).optimize(broken, BOUNDS)


# ── report ───────────────────────────────────────────────────────────
def test_report_lists_substitutions_and_final_profile():
    report = generate_optimization_report(NutritionalOptimizer(CATALOG).optimize(PLAN, BOUNDS))
    lines = report.splitlines()
    assert lines[0] == "=== NUTRITIONAL OPTIMIZATION REPORT ==="
    assert "Optimization Status: SUCCESSFUL" in lines
    assert "RECIPE SUBSTITUTIONS:" in lines
    assert "1. Day 1, Meal 2:" in lines
    assert any(line.startswith("Daily Calories: ") for line in lines)


def test_report_without_changes():
    report = generate_optimization_report(NutritionalOptimizer(BrokenCatalog()).optimize(PLAN, BOUNDS))
    assert "Optimization Status: NO IMPROVEMENT" in report
    assert "RECIPE SUBSTITUTIONS:" not in report
