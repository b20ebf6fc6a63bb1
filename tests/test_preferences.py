# tests/test_preferences.py
from __future__ import annotations

import math

from core.catalog import InMemoryRatingHistory
from core.models.preferences import (
    CustomerPreferenceProfile,
    DietaryExclusions,
    NutritionalFocus,
    PreferenceEntry,
    RatedPlan,
)
from core.preferences import (
    PreferenceModel,
    generate_preference_analysis,
    rank_recipes,
    score_recipe_for_customer,
)
from sample_data import BY_ID, CATALOG, NOW, days_ago, recipe

# 3 great bowls, 2 poor curries (newest first after sorting)
HISTORY = [
    RatedPlan(plan_id=f"good-{i}", customer_id="c1", rating=5, rated_at=days_ago(i),
              recipes=[BY_ID["l-bowl"]])
    for i in range(3)
] + [
    RatedPlan(plan_id=f"poor-{i}", customer_id="c1", rating=1, rated_at=days_ago(10 + i),
              recipes=[BY_ID["d-curry"]])
    for i in range(2)
]

MODEL = PreferenceModel(InMemoryRatingHistory(HISTORY))


class BrokenHistory:
    def rated_plans(self, customer_id, limit):
        raise ConnectionError("ratings db offline")


def _profile(**kw) -> CustomerPreferenceProfile:
    return CustomerPreferenceProfile(customer_id="c9", last_updated=NOW, **kw)


# ── learning ─────────────────────────────────────────────────────────
def test_cold_start_and_store_failure_return_none():
    assert MODEL.get_customer_preferences("nobody") is None
    assert PreferenceModel(BrokenHistory()).get_customer_preferences("c1") is None


def test_ingredient_and_cuisine_labels():
    p = MODEL.get_customer_preferences("c1")
    ing = p.ingredient_preferences
    assert ing["chicken breast"].label == "love"
    assert math.isclose(ing["chicken breast"].confidence, 0.3)
    assert ing["garlic"].label == "dislike"
    assert ing["rice"].label == "like"          # 3 of 5 plans rated high
    assert p.cuisine_preferences["asian"].label == "love"
    assert p.cuisine_preferences["indian"].label == "dislike"
    assert math.isclose(p.cuisine_preferences["indian"].confidence, 0.4)


def test_single_occurrence_ingredients_are_ignored():
    one = PreferenceModel(InMemoryRatingHistory(HISTORY[:1])).get_customer_preferences("c1")
    assert one.ingredient_preferences == {}


def test_profile_is_deterministic_and_stamped_with_newest_rating():
    a = MODEL.get_customer_preferences("c1")
    b = MODEL.get_customer_preferences("c1")
    assert a.model_dump() == b.model_dump()
    assert a.last_updated == days_ago(0)


def test_metrics_focus_and_exclusions():
    p = MODEL.get_customer_preferences(
        "c1", DietaryExclusions(allergies=["peanut"], dietary_restrictions=["halal"])
    )
    m = p.learning_metrics
    assert m.plans_rated == 5
    assert m.engagement_level == "medium"
    assert 0.0 <= m.consistency <= 1.0 and 0.0 <= m.stability <= 1.0
    assert 0.0 <= p.preference_score <= 1.0
    assert p.allergies == ["peanut"]
    assert p.cooking_preferences.skill_level == "intermediate"
    assert p.cooking_preferences.batch_cook_frequency == "weekly"


def test_high_protein_focus_detected():
    bowls = [
        RatedPlan(plan_id=f"p{i}", customer_id="c2", rating=4, rated_at=days_ago(i),
                  recipes=[BY_ID["l-bowl"], BY_ID["d-cod"]])
        for i in range(5)
    ]
    p = PreferenceModel(InMemoryRatingHistory(bowls)).get_customer_preferences("c2")
    foci = {f.focus: f for f in p.nutritional_focus}
    assert "high_protein" in foci
    assert math.isclose(foci["high_protein"].confidence, 1.0)


def test_history_is_bounded():
    many = [
        RatedPlan(plan_id=f"p{i}", customer_id="c3", rating=4, rated_at=days_ago(i))
        for i in range(30)
    ]
    p = PreferenceModel(InMemoryRatingHistory(many), history_limit=20).get_customer_preferences("c3")
    assert p.learning_metrics.plans_rated == 20
    assert p.learning_metrics.engagement_level == "high"


# ── scoring ──────────────────────────────────────────────────────────
def test_loved_ingredients_score_above_disliked():
    profile = _profile(ingredient_preferences={
        "kale": PreferenceEntry(label="love", confidence=1.0, occurrences=10),
        "okra": PreferenceEntry(label="dislike", confidence=1.0, occurrences=10),
    })
    loved = recipe("x-kale", "lunch", 500, 30, 50, 15, ["kale"])
    hated = recipe("x-okra", "lunch", 500, 30, 50, 15, ["okra"])
    assert score_recipe_for_customer(loved, profile) > score_recipe_for_customer(hated, profile)


def test_score_is_clamped_to_unit_interval():
    loves = {f"i{n}": PreferenceEntry(label="love", confidence=1.0, occurrences=10) for n in range(20)}
    hates = {f"i{n}": PreferenceEntry(label="dislike", confidence=1.0, occurrences=10) for n in range(20)}
    r = recipe("x-many", "dinner", 500, 60, 20, 15, [f"i{n}" for n in range(20)])
    focus = [NutritionalFocus(focus="high_protein", importance="high", confidence=1.0)]
    assert score_recipe_for_customer(r, _profile(ingredient_preferences=loves, nutritional_focus=focus)) == 1.0
    assert score_recipe_for_customer(r, _profile(ingredient_preferences=hates)) == 0.0


def test_rank_is_stable_for_ties():
    ranked = rank_recipes([BY_ID["s-bar"], BY_ID["s-apple"], BY_ID["s-yogurt"]], _profile())
    assert [r.id for r, _ in ranked] == ["s-bar", "s-apple", "s-yogurt"]
    assert all(math.isclose(s, 0.5) for _, s in ranked)


# ── analysis + recommendations ───────────────────────────────────────
def test_preference_analysis_projection():
    profile = _profile(
        ingredient_preferences={
            "garlic": PreferenceEntry(label="love", confidence=0.9, occurrences=9),
            "onion": PreferenceEntry(label="like", confidence=0.5, occurrences=5),
            "okra": PreferenceEntry(label="dislike", confidence=0.8, occurrences=8),
        },
        cuisine_preferences={
            "thai": PreferenceEntry(label="like", confidence=0.6, occurrences=3),
            "french": PreferenceEntry(label="dislike", confidence=1.0, occurrences=5),
        },
        nutritional_focus=[
            NutritionalFocus(focus="high_protein", importance="high", confidence=0.8),
            NutritionalFocus(focus="low_carb", importance="medium", confidence=0.8),
        ],
        preference_score=0.42,
    )
    a = generate_preference_analysis(profile)
    assert a.strong_preferences == ["loves garlic", "dislikes okra"]
    assert a.cuisine_profile == ["thai"]
    assert a.nutritional_priorities == ["high_protein"]
    assert a.cooking_profile == "intermediate (45min prep)"
    assert math.isclose(a.recommendation_strength, 0.42)


def test_recommendations_cold_start_keep_catalog_order():
    got = MODEL.personalized_recommendations("nobody", CATALOG, meal_type="lunch", limit=2)
    assert [r.id for r, _ in got] == ["l-bowl", "l-salad"]
    assert all(s == 0.5 for _, s in got)


def test_recommendations_rank_known_customer():
    got = MODEL.personalized_recommendations("c1", CATALOG, meal_type="dinner", limit=4)
    ids = [r.id for r, _ in got]
    # curry carries the disliked garlic + indian tag
    assert ids[-1] == "d-curry"
    scores = [s for _, s in got]
    assert scores == sorted(scores, reverse=True)
