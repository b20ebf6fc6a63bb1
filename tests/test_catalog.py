# tests/test_catalog.py
from __future__ import annotations

import math

from core.catalog import InMemoryRatingHistory, InMemoryRecipeCatalog, RecipeFilter
from core.ingredients import aggregate_ingredients, categorize
from core.models.preferences import RatedPlan
from sample_data import BY_ID, CATALOG, days_ago, make_plan


def _ids(recipes):
    return [r.id for r in recipes]


# ── search ───────────────────────────────────────────────────────────
def test_default_filter_returns_only_approved_in_catalog_order():
    got = _ids(CATALOG.search(RecipeFilter(meal_type="breakfast")))
    assert got == ["b-oats", "b-omelette", "b-frittata", "b-pancakes"]


def test_approved_none_skips_approval_check():
    got = _ids(CATALOG.search(RecipeFilter(meal_type="breakfast", approved=None)))
    assert "b-draft" in got


def test_dietary_tags_must_all_match():
    got = _ids(CATALOG.search(RecipeFilter(dietary_tags=["vegetarian"], meal_type="dinner")))
    assert got == ["d-curry"]


def test_calorie_bounds_and_prep_time():
    flt = RecipeFilter(meal_type="lunch", min_calories=550, max_calories=700, max_prep_time=10)
    assert _ids(CATALOG.search(flt)) == ["l-wrap"]


def test_include_any_and_exclude_ingredients():
    inc = CATALOG.search(RecipeFilter(include_ingredients=["salmon", "cod"]))
    assert _ids(inc) == ["d-salmon", "d-cod"]

    exc = CATALOG.search(RecipeFilter(meal_type="dinner", exclude_ingredients=["rice"]))
    assert _ids(exc) == ["d-salmon", "d-cod"]


def test_tags_match_any_and_limit():
    got = CATALOG.search(RecipeFilter(tags=["mediterranean", "indian"], limit=2))
    assert _ids(got) == ["b-omelette", "l-salad"]


def test_empty_catalog_and_get():
    empty = InMemoryRecipeCatalog([])
    assert empty.search(RecipeFilter(meal_type="lunch")) == []
    assert len(empty) == 0
    assert CATALOG.get("d-cod").name == "D Cod"
    assert CATALOG.get("nope") is None


# ── rating history ───────────────────────────────────────────────────
def test_rating_history_is_newest_first_and_bounded():
    plans = [
        RatedPlan(plan_id=f"p{i}", customer_id="c1", rating=4, rated_at=days_ago(i))
        for i in (5, 1, 3)
    ] + [RatedPlan(plan_id="other", customer_id="c2", rating=1, rated_at=days_ago(0))]
    got = InMemoryRatingHistory(plans).rated_plans("c1", limit=2)
    assert [p.plan_id for p in got] == ["p1", "p3"]


# ── shopping list ────────────────────────────────────────────────────
def test_categorize_handles_overlapping_keywords():
    assert categorize("bell peppers") == "produce"
    assert categorize("black pepper") == "spices"
    assert categorize("eggplant") == "produce"
    assert categorize("eggs") == "dairy"
    assert categorize("mystery powder") == "other"


def test_aggregate_sums_amounts_per_ingredient_and_unit():
    plan = make_plan(["breakfast", "snack"], days=2)
    items = {i.ingredient: i for i in aggregate_ingredients(plan.meals)}

    # greek yogurt: oats (breakfast) + yogurt snack, 2 days, 100 g each
    yogurt = items["greek yogurt"]
    assert math.isclose(yogurt.total_amount, 400.0)
    assert yogurt.unit == "g"
    assert yogurt.category == "dairy"
    assert sorted(yogurt.used_in_recipes) == sorted({BY_ID["b-oats"].name, BY_ID["s-yogurt"].name})
    assert items["walnuts"].category == "pantry"
