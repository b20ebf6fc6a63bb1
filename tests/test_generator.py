# tests/test_generator.py
from __future__ import annotations

from collections import Counter

import pytest

from core.errors import PlanValidationError
from core.generator import MEAL_LAYOUTS, MealPlanGenerator, PlanOptions
from core.models.preferences import CustomerPreferenceProfile
from sample_data import CATALOG, NOW, BrokenCatalog

GEN = MealPlanGenerator(CATALOG)


def opts(**kw) -> dict:
    base = {"daily_calorie_target": 2000, "fitness_goal": "maintenance", "days": 7, "meals_per_day": 3}
    base.update(kw)
    return base


# ── shape ────────────────────────────────────────────────────────────
@pytest.mark.parametrize("days,meals", [(7, 4), (14, 6), (1, 1)])
def test_plan_has_one_slot_per_day_and_meal(days, meals):
    plan = GEN.generate_intelligent_meal_plan(opts(days=days, meals_per_day=meals), "t1")
    assert plan.is_complete()
    assert len(plan.meals) == days * meals
    counts = Counter(s.day for s in plan.meals)
    assert set(counts) == set(range(1, days + 1))
    assert all(c == meals for c in counts.values())


def test_slots_follow_layout_and_use_approved_recipes():
    plan = GEN.generate_intelligent_meal_plan(opts(meals_per_day=4), "t1")
    layout = MEAL_LAYOUTS[4]
    for s in plan.meals:
        assert s.meal_type == layout[s.meal_number - 1]
        assert s.meal_type in s.recipe.meal_types
        assert s.recipe.approved
    assert plan.generated_by == "engine"
    assert plan.shopping_list
    assert plan.nutrition_timing


def test_goal_adjusts_calorie_target():
    gain = GEN.generate_intelligent_meal_plan(opts(fitness_goal="muscle_gain"), "t1")
    loss = GEN.generate_intelligent_meal_plan(opts(fitness_goal="weight_loss"), "t1")
    assert gain.daily_calorie_target > loss.daily_calorie_target
    assert gain.workout_notes and not loss.workout_notes


def test_exclusions_and_allergies_never_reach_the_plan():
    profile = CustomerPreferenceProfile(customer_id="c1", last_updated=NOW, allergies=["chickpeas"])
    plan = GEN.generate_intelligent_meal_plan(
        opts(meals_per_day=4, exclude_ingredients=["salmon"]), "t1", profile
    )
    for s in plan.meals:
        assert not s.recipe.has_ingredient("chickpeas")
        assert not s.recipe.has_ingredient("salmon")


def test_dietary_tags_restrict_candidates():
    plan = GEN.generate_intelligent_meal_plan(opts(dietary_tags=["vegetarian"]), "t1")
    assert all("vegetarian" in s.recipe.dietary_tags for s in plan.meals)


def test_options_model_is_accepted():
    plan = GEN.generate_intelligent_meal_plan(PlanOptions(**opts(plan_name="Cut")), "t9")
    assert plan.plan_name == "Cut"
    assert "t9" in plan.description


# ── fallback ─────────────────────────────────────────────────────────
def test_catalog_failure_falls_back_with_full_slot_count():
    plan = MealPlanGenerator(BrokenCatalog()).generate_intelligent_meal_plan(opts(meals_per_day=4), "t1")
    assert plan.generated_by == "fallback"
    assert len(plan.meals) == 28
    assert {s.recipe.id for s in plan.meals} == {
        "placeholder-breakfast", "placeholder-lunch", "placeholder-dinner", "placeholder-snack"
    }


def test_unmatched_dietary_tag_falls_back():
    plan = GEN.generate_intelligent_meal_plan(opts(dietary_tags=["vegan"]), "t1")
    assert plan.generated_by == "fallback"
    assert plan.is_complete()
    assert all(s.recipe.id.startswith("placeholder-") for s in plan.meals)


# ── validation ───────────────────────────────────────────────────────
@pytest.mark.parametrize(
    "bad",
    [
        {"daily_calorie_target": 500},
        {"daily_calorie_target": 9000},
        {"days": 0},
        {"days": 31},
        {"meals_per_day": 7},
    ],
)
def test_invalid_options_are_rejected(bad):
    with pytest.raises(PlanValidationError):
        GEN.generate_intelligent_meal_plan(opts(**bad), "t1")


def test_missing_calorie_target_is_rejected():
    with pytest.raises(PlanValidationError):
        GEN.generate_intelligent_meal_plan({"days": 7}, "t1")


# ── progressive ──────────────────────────────────────────────────────
def test_progressive_weight_loss_trends_down():
    targets = [
        GEN.generate_progressive_meal_plan(
            opts(fitness_goal="weight_loss", plan_name="Cut"), "t1", week, 12
        ).daily_calorie_target
        for week in (1, 5, 9, 12)
    ]
    assert all(a >= b for a, b in zip(targets, targets[1:]))
    assert targets[0] > targets[-1]


def test_progressive_plan_name_carries_week():
    plan = GEN.generate_progressive_meal_plan(opts(plan_name="Bulk"), "t1", 3, 8)
    assert plan.plan_name == "Bulk - Week 3"


@pytest.mark.parametrize("week,total", [(0, 4), (5, 4), (1, 0)])
def test_progressive_bad_weeks_rejected(week, total):
    with pytest.raises(PlanValidationError):
        GEN.generate_progressive_meal_plan(opts(), "t1", week, total)
