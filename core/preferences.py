"""
core/preferences.py
────────────────────────────────────────────────────────────────────────
Customer taste profile learned from rated meal-plan history.

Responsibilities
----------------
1.   `PreferenceModel.get_customer_preferences()` – fold the bounded,
     most-recent-first rating history into a fresh profile (no patching
     of a stored one; same history ⇒ same profile).
2.   `score_recipe_for_customer()` – [0, 1] fit of one recipe.
3.   `generate_preference_analysis()` – read-only summary for surfacing.

A customer without history is a cold start: `None`, not an error.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Dict, Iterable, List, Tuple

import numpy as np

from core.catalog import RatingHistoryStore, RecipeCatalog, RecipeFilter
from core.models.preferences import (
    CookingPreferences,
    CustomerPreferenceProfile,
    DietaryExclusions,
    LearningMetrics,
    NutritionalFocus,
    PreferenceAnalysis,
    PreferenceEntry,
    RatedPlan,
)
from core.models.recipe import Recipe

_LOG = logging.getLogger(__name__)

KNOWN_CUISINES = (
    "italian", "asian", "mexican", "indian", "mediterranean",
    "american", "thai", "chinese", "japanese", "french",
)

HIGH_RATING = 4.0
POOR_RATING = 2.0
MIN_INGREDIENT_OCCURRENCES = 2
MAX_INGREDIENT_PREFERENCES = 20

_INGREDIENT_DELTA = {"love": 0.3, "like": 0.15, "neutral": 0.0, "dislike": -0.15}
_CUISINE_DELTA = {"love": 0.4, "like": 0.2, "neutral": 0.0, "dislike": -0.2}
_ENGAGEMENT_WEIGHT = {"high": 1.0, "medium": 0.6, "low": 0.2}

INGREDIENT_WEIGHT = 0.4
CUISINE_WEIGHT = 0.25
FOCUS_WEIGHT = 0.2


def _label(positive: int, negative: int, total: int) -> str:
    if total <= 0:
        return "neutral"
    pos, neg = positive / total, negative / total
    if pos >= 0.8:
        return "love"
    if pos >= 0.6:
        return "like"
    if neg >= 0.6:
        return "dislike"
    return "neutral"


def _energy_ratios(recipes: Iterable[Recipe]) -> Tuple[float, float, float]:
    cal = prot = carb = fat = 0.0
    for r in recipes:
        cal += r.nutrition.calories
        prot += r.nutrition.protein
        carb += r.nutrition.carbs
        fat += r.nutrition.fat
    if cal <= 0:
        return 0.0, 0.0, 0.0
    return prot * 4 / cal, carb * 4 / cal, fat * 9 / cal


def _matches_focus(recipe: Recipe, focus: str) -> bool:
    p, c, _ = _energy_ratios([recipe])
    if focus == "high_protein":
        return p >= 0.25
    if focus == "low_carb":
        return 0 < c <= 0.35
    return False


# ──────────────────────────────────────────────────────────────────────
#  Folding
# ──────────────────────────────────────────────────────────────────────
def _fold_counts(
    history: List[RatedPlan], keys_of
) -> Dict[str, Tuple[int, int, int]]:
    counts: Dict[str, List[int]] = defaultdict(lambda: [0, 0, 0])  # pos, neg, total
    for plan in history:
        high = plan.rating >= HIGH_RATING
        poor = plan.rating <= POOR_RATING
        for recipe in plan.recipes:
            for key in keys_of(recipe):
                c = counts[key]
                c[0] += int(high)
                c[1] += int(poor)
                c[2] += 1
    return {k: (v[0], v[1], v[2]) for k, v in counts.items()}


def _ingredient_preferences(history: List[RatedPlan]) -> Dict[str, PreferenceEntry]:
    counts = _fold_counts(history, lambda r: set(r.ingredient_names))
    entries = [
        (name, PreferenceEntry(
            label=_label(pos, neg, total),
            confidence=min(1.0, total / 10),
            occurrences=total,
        ))
        for name, (pos, neg, total) in counts.items()
        if total >= MIN_INGREDIENT_OCCURRENCES
    ]
    entries.sort(key=lambda kv: (-kv[1].confidence, -kv[1].occurrences, kv[0]))
    return dict(entries[:MAX_INGREDIENT_PREFERENCES])


def _cuisine_preferences(history: List[RatedPlan]) -> Dict[str, PreferenceEntry]:
    counts = _fold_counts(
        history, lambda r: {t for t in r.tags if t in KNOWN_CUISINES}
    )
    return {
        name: PreferenceEntry(
            label=_label(pos, neg, total),
            confidence=min(1.0, total / 5),
            occurrences=total,
        )
        for name, (pos, neg, total) in sorted(counts.items())
    }


def _nutritional_focus(history: List[RatedPlan]) -> List[NutritionalFocus]:
    recipes = [r for p in history for r in p.recipes]
    p, c, _ = _energy_ratios(recipes)
    if not recipes or (p == 0 and c == 0):
        return []
    confidence = min(1.0, len(history) / 5)
    out: List[NutritionalFocus] = []
    if p > 0.25:
        out.append(NutritionalFocus(
            focus="high_protein",
            importance="high" if p > 0.35 else "medium",
            confidence=confidence,
        ))
    if c < 0.35:
        out.append(NutritionalFocus(
            focus="low_carb",
            importance="high" if c < 0.25 else "medium",
            confidence=confidence,
        ))
    return out


def _learning_metrics(history: List[RatedPlan]) -> LearningMetrics:
    ratings = np.array([p.rating for p in history], dtype=float)
    n = len(ratings)
    consistency = float(np.clip(1.0 - ratings.std() / 2.0, 0.0, 1.0))
    if n >= 2:
        half = n // 2
        # history is newest first
        drift = abs(ratings[:half].mean() - ratings[half:].mean())
        stability = float(np.clip(1.0 - drift / 4.0, 0.0, 1.0))
    else:
        stability = 1.0
    level = "high" if n >= 10 else "medium" if n >= 5 else "low"
    return LearningMetrics(
        plans_rated=n,
        average_rating=round(float(ratings.mean()), 2),
        consistency=consistency,
        engagement_level=level,
        stability=stability,
    )


def _preference_score(m: LearningMetrics) -> float:
    score = (
        min(1.0, m.plans_rated / 10) * 0.3
        + m.consistency * 0.25
        + m.stability * 0.25
        + _ENGAGEMENT_WEIGHT[m.engagement_level] * 0.2
    )
    return float(min(1.0, max(0.0, score)))


# ──────────────────────────────────────────────────────────────────────
#  Public API
# ──────────────────────────────────────────────────────────────────────
def score_recipe_for_customer(recipe: Recipe, profile: CustomerPreferenceProfile) -> float:
    score = 0.5

    ingredient_delta = 0.0
    for name in set(recipe.ingredient_names):
        pref = profile.ingredient_preferences.get(name)
        if pref is not None:
            ingredient_delta += _INGREDIENT_DELTA[pref.label] * pref.confidence
    score += ingredient_delta * INGREDIENT_WEIGHT

    cuisine_delta = 0.0
    for tag in recipe.tags:
        pref = profile.cuisine_preferences.get(tag)
        if pref is not None:
            cuisine_delta += _CUISINE_DELTA[pref.label] * pref.confidence
    score += cuisine_delta * CUISINE_WEIGHT

    focus_delta = sum(
        0.2 * f.confidence
        for f in profile.nutritional_focus
        if _matches_focus(recipe, f.focus)
    )
    score += focus_delta * FOCUS_WEIGHT

    return float(min(1.0, max(0.0, score)))


def rank_recipes(
    recipes: Iterable[Recipe], profile: CustomerPreferenceProfile
) -> List[Tuple[Recipe, float]]:
    scored = [(r, score_recipe_for_customer(r, profile)) for r in recipes]
    # stable: ties keep the incoming order
    return sorted(scored, key=lambda rs: -rs[1])


def generate_preference_analysis(profile: CustomerPreferenceProfile) -> PreferenceAnalysis:
    verbs = {"love": "loves", "like": "likes", "dislike": "dislikes"}
    strong = [
        f"{verbs[p.label]} {name}"
        for name, p in sorted(
            profile.ingredient_preferences.items(),
            key=lambda kv: (-kv[1].confidence, kv[0]),
        )
        if p.confidence > 0.7 and p.label in verbs
    ][:10]

    cuisines = [
        name
        for name, p in sorted(
            profile.cuisine_preferences.items(),
            key=lambda kv: (-kv[1].confidence, kv[0]),
        )
        if p.label in ("love", "like")
    ][:5]

    priorities = [
        f.focus for f in profile.nutritional_focus if f.importance in ("high", "critical")
    ]
    cp = profile.cooking_preferences
    return PreferenceAnalysis(
        strong_preferences=strong,
        cuisine_profile=cuisines,
        nutritional_priorities=priorities,
        cooking_profile=f"{cp.skill_level} ({cp.max_prep_time}min prep)",
        recommendation_strength=profile.preference_score,
    )


class PreferenceModel:
    def __init__(self, history: RatingHistoryStore, history_limit: int = 20) -> None:
        self._history = history
        self._limit = history_limit

    def get_customer_preferences(
        self,
        customer_id: str,
        exclusions: DietaryExclusions | None = None,
    ) -> CustomerPreferenceProfile | None:
        try:
            history = self._history.rated_plans(customer_id, self._limit)
        except Exception as e:
            _LOG.error("rating history unavailable for %s: %s", customer_id, e)
            return None

        history = sorted(history, key=lambda p: p.rated_at, reverse=True)[: self._limit]
        if not history:
            _LOG.debug("cold start for customer %s", customer_id)
            return None

        metrics = _learning_metrics(history)
        excl = exclusions or DietaryExclusions()
        return CustomerPreferenceProfile(
            customer_id=customer_id,
            ingredient_preferences=_ingredient_preferences(history),
            cuisine_preferences=_cuisine_preferences(history),
            nutritional_focus=_nutritional_focus(history),
            dietary_restrictions=list(excl.dietary_restrictions),
            allergies=list(excl.allergies),
            intolerances=list(excl.intolerances),
            cooking_preferences=CookingPreferences(),
            learning_metrics=metrics,
            preference_score=_preference_score(metrics),
            last_updated=history[0].rated_at,
        )

    # aliases kept close to the operations' names
    score_recipe_for_customer = staticmethod(score_recipe_for_customer)
    generate_preference_analysis = staticmethod(generate_preference_analysis)

    def personalized_recommendations(
        self,
        customer_id: str,
        catalog: RecipeCatalog,
        meal_type: str | None = None,
        limit: int = 10,
    ) -> List[Tuple[Recipe, float]]:
        try:
            pool = catalog.search(RecipeFilter(meal_type=meal_type))
        except Exception as e:
            _LOG.error("catalog search failed: %s", e)
            return []
        profile = self.get_customer_preferences(customer_id)
        if profile is None:
            return [(r, 0.5) for r in pool[:limit]]
        pool = [
            r for r in pool
            if not any(r.has_ingredient(a) for a in profile.allergies + profile.intolerances)
        ]
        return rank_recipes(pool, profile)[:limit]
