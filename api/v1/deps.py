# api/v1/deps.py
"""
FastAPI providers for the engine's collaborators.

Each request gets a fresh in-memory view of the DB rows it needs; the
score cache is process-wide. Tests swap any of these out through
`app.dependency_overrides`.
"""
from __future__ import annotations

import logging
from functools import lru_cache

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from core.catalog import (
    EngagementSource,
    InMemoryEngagementSource,
    InMemoryRatingHistory,
    InMemoryRecipeCatalog,
    RatingHistoryStore,
    RecipeCatalog,
)
from core.engagement import EngagementScorer
from core.generator import MealPlanGenerator
from core.nutrition_targets import GoalTargetCalculator
from core.optimizer import NutritionalOptimizer
from core.preferences import PreferenceModel
from core.scheduler import MealPlanScheduler
from core.variation import VariationGenerator
from services.cache import ScoreCache, build_score_cache
from services.db import (
    get_session,
    load_engagement_signals,
    load_rated_plans,
    load_recipes,
)

_LOG = logging.getLogger(__name__)


# ───────────────────────── collaborators ────────────────────
# DB failures degrade to empty collaborators: the engine then serves cached
# scores, fallback plans or cold-start answers instead of a 500.
async def get_catalog(db: AsyncSession = Depends(get_session)) -> RecipeCatalog:
    try:
        recipes = await load_recipes(db, approved_only=True)
    except Exception as e:
        _LOG.error("recipe catalog load failed: %s", e)
        recipes = []
    return InMemoryRecipeCatalog(recipes)


async def get_history(
    customer_id: str | None = None,
    db: AsyncSession = Depends(get_session),
) -> RatingHistoryStore:
    if not customer_id:
        return InMemoryRatingHistory()
    try:
        plans = await load_rated_plans(db, customer_id, settings.preference_history_limit)
    except Exception as e:
        _LOG.error("rating history load failed for %s: %s", customer_id, e)
        plans = []
    return InMemoryRatingHistory(plans)


async def get_engagement_source(db: AsyncSession = Depends(get_session)) -> EngagementSource:
    try:
        signals = await load_engagement_signals(db)
    except Exception as e:
        _LOG.error("engagement signals load failed: %s", e)
        signals = {}
    return InMemoryEngagementSource(signals)


@lru_cache
def get_score_cache() -> ScoreCache:
    return build_score_cache(settings.score_cache_backend, settings.redis_url)


# ───────────────────────── engine services ──────────────────
def get_scorer(
    source: EngagementSource = Depends(get_engagement_source),
    cache: ScoreCache = Depends(get_score_cache),
) -> EngagementScorer:
    return EngagementScorer(
        source,
        cache,
        trending_ttls=settings.trending_cache_ttls,
        popular_ttl=settings.popular_cache_ttl,
        viral_ttl=settings.viral_cache_ttl,
        default_ttl=settings.default_cache_ttl,
    )


def get_preference_model(
    history: RatingHistoryStore = Depends(get_history),
) -> PreferenceModel:
    return PreferenceModel(history, history_limit=settings.preference_history_limit)


def get_optimizer(catalog: RecipeCatalog = Depends(get_catalog)) -> NutritionalOptimizer:
    return NutritionalOptimizer(catalog, max_iterations=settings.optimizer_max_iterations)


def get_generator(
    catalog: RecipeCatalog = Depends(get_catalog),
    optimizer: NutritionalOptimizer = Depends(get_optimizer),
) -> MealPlanGenerator:
    return MealPlanGenerator(
        catalog,
        optimizer=optimizer,
        calculator=GoalTargetCalculator(tolerance=settings.constraint_tolerance),
    )


def get_scheduler() -> MealPlanScheduler:
    return MealPlanScheduler()


def get_variation_generator(
    catalog: RecipeCatalog = Depends(get_catalog),
) -> VariationGenerator:
    return VariationGenerator(catalog)
