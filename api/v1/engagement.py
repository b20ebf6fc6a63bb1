# api/v1/engagement.py
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status

from api.v1.deps import get_scorer
from core.engagement import EngagementScorer
from core.errors import PlanValidationError
from core.models.engagement import (
    CategoryTrend,
    EngagementStats,
    PopularRecipe,
    TopRatedRecipe,
    TrendingRecipe,
    ViralRecipe,
)

router = APIRouter()


@router.get("/trending", response_model=list[TrendingRecipe], status_code=status.HTTP_200_OK)
def trending(
    window: str = "24h",
    limit: int = Query(10, ge=1, le=100),
    scorer: EngagementScorer = Depends(get_scorer),
) -> list[TrendingRecipe]:
    try:
        return scorer.trending_recipes(window, limit)
    except PlanValidationError as e:
        raise HTTPException(422, str(e)) from e


@router.get("/popular", response_model=list[PopularRecipe], status_code=status.HTTP_200_OK)
def popular(
    window: str = "30d",
    limit: int = Query(10, ge=1, le=100),
    scorer: EngagementScorer = Depends(get_scorer),
) -> list[PopularRecipe]:
    try:
        return scorer.popular_recipes(window, limit)
    except PlanValidationError as e:
        raise HTTPException(422, str(e)) from e


@router.get("/viral", response_model=list[ViralRecipe], status_code=status.HTTP_200_OK)
def viral(
    window: str = "24h",
    limit: int = Query(10, ge=1, le=100),
    min_threshold: float = Query(0.0, ge=0, le=100),
    scorer: EngagementScorer = Depends(get_scorer),
) -> list[ViralRecipe]:
    try:
        return scorer.viral_recipes(window, limit, min_threshold)
    except PlanValidationError as e:
        raise HTTPException(422, str(e)) from e


@router.get("/top-rated", response_model=list[TopRatedRecipe], status_code=status.HTTP_200_OK)
def top_rated(
    window: str = "30d",
    limit: int = Query(10, ge=1, le=100),
    min_ratings: int = Query(5, ge=0),
    scorer: EngagementScorer = Depends(get_scorer),
) -> list[TopRatedRecipe]:
    return scorer.top_rated_recipes(window, limit, min_ratings)


@router.get("/stats", response_model=EngagementStats, status_code=status.HTTP_200_OK)
def stats(
    window: str = "24h",
    scorer: EngagementScorer = Depends(get_scorer),
) -> EngagementStats:
    return scorer.engagement_stats(window)


@router.get("/categories", response_model=list[CategoryTrend], status_code=status.HTTP_200_OK)
def categories(
    window: str = "24h",
    scorer: EngagementScorer = Depends(get_scorer),
) -> list[CategoryTrend]:
    try:
        return scorer.category_trends(window)
    except PlanValidationError as e:
        raise HTTPException(422, str(e)) from e


@router.get(
    "/categories/{category}",
    response_model=list[TrendingRecipe],
    status_code=status.HTTP_200_OK,
    summary="Trending recipes within one meal type or tag category",
)
def trending_in_category(
    category: str,
    window: str = "24h",
    limit: int = Query(10, ge=1, le=100),
    scorer: EngagementScorer = Depends(get_scorer),
) -> list[TrendingRecipe]:
    try:
        return scorer.trending_by_category(category, window, limit)
    except PlanValidationError as e:
        raise HTTPException(422, str(e)) from e
