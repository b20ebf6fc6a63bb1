"""
services/db.py
────────────────────────────────────────────────────────────────────────
* Async SQLAlchemy v2 setup
* Models that map to the three engine tables
* Small DAO helpers that turn rows into core models for the routers
"""
from __future__ import annotations

import logging
from collections import defaultdict
from datetime import datetime
from typing import AsyncGenerator, Dict, List

from sqlalchemy import JSON, Boolean, DateTime, Float, Integer, String, Text, func, select
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    AsyncAttrs,
    AsyncEngine,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import Mapped, declarative_base, mapped_column

from config import settings
from core.models.engagement import EngagementSignals
from core.models.preferences import RatedPlan
from core.models.recipe import Ingredient, Nutrition, Recipe

_LOG = logging.getLogger(__name__)

# ───────── connection helper ────────────────────────────────────────
_ENGINE: AsyncEngine | None = None


async def _create_engine() -> AsyncEngine:
    if not settings.database_url:
        raise RuntimeError("Set the DATABASE_URL env var")
    return create_async_engine(settings.database_url, pool_pre_ping=True)


async def engine() -> AsyncEngine:
    global _ENGINE
    if _ENGINE is None:
        _ENGINE = await _create_engine()
    return _ENGINE


# ───────── declarative base ──────────────────────────────────────────
Base = declarative_base(cls=AsyncAttrs)

# ───────── models ───────────────────────────────────────────────────


class RecipeRow(Base):
    __tablename__ = "recipes"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    name: Mapped[str] = mapped_column(String)
    description: Mapped[str | None] = mapped_column(Text)
    nutrition: Mapped[dict] = mapped_column(JSON)                 # kcal + macros
    prep_time: Mapped[int] = mapped_column(Integer, default=0)
    cook_time: Mapped[int] = mapped_column(Integer, default=0)
    servings: Mapped[int] = mapped_column(Integer, default=1)
    meal_types: Mapped[list] = mapped_column(JSON, default=list)
    dietary_tags: Mapped[list] = mapped_column(JSON, default=list)
    tags: Mapped[list] = mapped_column(JSON, default=list)
    ingredients: Mapped[list] = mapped_column(JSON, default=list)  # [{name, amount, unit}]
    approved: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())


class RecipeEngagementRow(Base):
    __tablename__ = "recipe_engagement"

    id: Mapped[int] = mapped_column(primary_key=True)
    recipe_id: Mapped[str] = mapped_column(String, index=True)
    window: Mapped[str] = mapped_column(String, index=True)       # "24h", "7d", "30d" …
    views: Mapped[int | None] = mapped_column(Integer)
    favorites: Mapped[int | None] = mapped_column(Integer)
    shares: Mapped[int | None] = mapped_column(Integer)
    average_rating: Mapped[float | None] = mapped_column(Float)
    rating_count: Mapped[int | None] = mapped_column(Integer)
    recent_activity: Mapped[int | None] = mapped_column(Integer)
    share_depth: Mapped[float | None] = mapped_column(Float)
    avg_engagement_seconds: Mapped[float | None] = mapped_column(Float)
    lifetime_days: Mapped[float | None] = mapped_column(Float)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now()
    )


class MealPlanRatingRow(Base):
    __tablename__ = "meal_plan_ratings"

    id: Mapped[int] = mapped_column(primary_key=True)
    plan_id: Mapped[str] = mapped_column(String)
    customer_id: Mapped[str] = mapped_column(String, index=True)
    rating: Mapped[int] = mapped_column(Integer)
    recipe_ids: Mapped[list] = mapped_column(JSON, default=list)
    feedback: Mapped[str | None] = mapped_column(Text)
    rated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())


# ───────── row → model ──────────────────────────────────────────────

def recipe_from_row(row: RecipeRow) -> Recipe:
    return Recipe(
        id=row.id,
        name=row.name,
        description=row.description,
        nutrition=Nutrition(**(row.nutrition or {})),
        prep_time=row.prep_time or 0,
        cook_time=row.cook_time or 0,
        servings=row.servings or 1,
        meal_types=row.meal_types or [],
        dietary_tags=row.dietary_tags or [],
        tags=row.tags or [],
        ingredients=[Ingredient(**i) for i in (row.ingredients or [])],
        approved=bool(row.approved),
    )


# ───────── DAO helpers ──────────────────────────────────────────────

async def load_recipes(session: AsyncSession, approved_only: bool = True) -> List[Recipe]:
    stmt = select(RecipeRow).order_by(RecipeRow.id)
    if approved_only:
        stmt = stmt.where(RecipeRow.approved.is_(True))
    rows = (await session.execute(stmt)).scalars().all()
    return [recipe_from_row(r) for r in rows]


async def load_engagement_signals(
    session: AsyncSession, window: str | None = None
) -> Dict[str, List[EngagementSignals]]:
    """Signals keyed by window label, joined with recipe name/meal types/tags."""
    stmt = select(RecipeEngagementRow, RecipeRow).join(
        RecipeRow, RecipeRow.id == RecipeEngagementRow.recipe_id
    )
    if window is not None:
        stmt = stmt.where(RecipeEngagementRow.window == window)

    out: Dict[str, List[EngagementSignals]] = defaultdict(list)
    for eng, rec in (await session.execute(stmt)).all():
        out[eng.window].append(
            EngagementSignals(
                recipe_id=rec.id,
                recipe_name=rec.name,
                meal_types=rec.meal_types or [],
                tags=rec.tags or [],
                # NULL counters are treated as zero
                views=eng.views or 0,
                favorites=eng.favorites or 0,
                shares=eng.shares or 0,
                average_rating=eng.average_rating or 0.0,
                rating_count=eng.rating_count or 0,
                recent_activity=eng.recent_activity or 0,
                share_depth=eng.share_depth or 0.0,
                avg_engagement_seconds=eng.avg_engagement_seconds or 0.0,
                lifetime_days=eng.lifetime_days or 0.0,
            )
        )
    return dict(out)


async def load_rated_plans(
    session: AsyncSession, customer_id: str, limit: int = 20
) -> List[RatedPlan]:
    rows = (
        await session.execute(
            select(MealPlanRatingRow)
            .where(MealPlanRatingRow.customer_id == customer_id)
            .order_by(MealPlanRatingRow.rated_at.desc())
            .limit(limit)
        )
    ).scalars().all()
    if not rows:
        return []

    wanted = {rid for r in rows for rid in (r.recipe_ids or [])}
    recipes: Dict[str, Recipe] = {}
    if wanted:
        for rec in (
            await session.execute(select(RecipeRow).where(RecipeRow.id.in_(wanted)))
        ).scalars():
            recipes[rec.id] = recipe_from_row(rec)

    missing = wanted - recipes.keys()
    if missing:
        _LOG.warning("ratings for %s reference %d unknown recipes", customer_id, len(missing))

    return [
        RatedPlan(
            plan_id=r.plan_id,
            customer_id=r.customer_id,
            rating=r.rating,
            rated_at=r.rated_at,
            recipes=[recipes[i] for i in (r.recipe_ids or []) if i in recipes],
            feedback=r.feedback,
        )
        for r in rows
    ]


# ───────── session helper ────────────────────────────────────────────

async def get_session() -> AsyncGenerator[AsyncSession, None]:
    eng = await engine()
    async_session = async_sessionmaker(eng, expire_on_commit=False)
    async with async_session() as session:
        yield session
