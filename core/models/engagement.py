from __future__ import annotations

from datetime import datetime
from typing import Any, List, Literal

from pydantic import BaseModel, Field


class EngagementSignals(BaseModel):
    """
    Aggregated engagement for one recipe over one window.
    Missing counters default to 0 so every score formula stays total.
    """

    recipe_id: str
    recipe_name: str = ""
    meal_types: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    views: int = Field(0, ge=0)
    favorites: int = Field(0, ge=0)
    shares: int = Field(0, ge=0)
    average_rating: float = Field(0.0, ge=0, le=5)
    rating_count: int = Field(0, ge=0)
    recent_activity: int = Field(0, ge=0, description="events inside the window")
    share_depth: float = Field(0.0, ge=0, description="avg forwarding chain length")
    avg_engagement_seconds: float = Field(0.0, ge=0)
    lifetime_days: float = Field(0.0, ge=0)


class TrendingRecipe(BaseModel):
    recipe_id: str
    recipe_name: str = ""
    trending_score: float = Field(..., ge=0, le=100)
    momentum: float = Field(0.0, ge=0, le=1)
    trend: Literal["rising", "stable", "declining"] = "stable"
    views: int = 0
    favorites: int = 0
    shares: int = 0
    average_rating: float = 0.0


class PopularRecipe(BaseModel):
    recipe_id: str
    recipe_name: str = ""
    popularity_score: float = Field(..., ge=0, le=100)
    views: int = 0
    favorites: int = 0
    average_rating: float = 0.0
    rating_count: int = 0


class ViralRecipe(BaseModel):
    recipe_id: str
    recipe_name: str = ""
    viral_score: float = Field(..., ge=0, le=100)
    share_velocity: float = Field(0.0, ge=0)
    shares: int = 0
    views: int = 0
    share_depth: float = 0.0


class TopRatedRecipe(BaseModel):
    recipe_id: str
    recipe_name: str = ""
    average_rating: float
    rating_count: int


class CategoryTrend(BaseModel):
    category: str
    recipe_count: int
    average_score: float
    top_recipe_id: str | None = None
    direction: Literal["up", "down", "stable"] = "stable"


class EngagementStats(BaseModel):
    window: str
    recipe_count: int = 0
    total_views: int = 0
    total_favorites: int = 0
    total_shares: int = 0
    total_ratings: int = 0
    average_rating: float = 0.0
    most_active_recipe_id: str | None = None


class CachedScoreRecord(BaseModel):
    subject: str
    window: str
    payload: List[dict[str, Any]]
    computed_at: datetime
    ttl: int
