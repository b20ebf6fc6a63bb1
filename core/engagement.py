"""
core/engagement.py
────────────────────────────────────────────────────────────────────────
Trending / popularity / viral scoring over per-recipe engagement.

Responsibilities
----------------
1.   `score_frame()` – vectorised scores for a batch of signals
     (one pandas row per recipe, numpy for the maths).
2.   `EngagementScorer` – listing operations on top of the scores,
     each cached under `{kind}:{scope}:{window}` in the injected cache.

Every score is clamped to [0, 100]. Zero denominators (no views, no
lifetime) yield 0, never inf/NaN, so sorting stays sane.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from typing import Callable, Dict, List, Type, TypeVar

import numpy as np
import pandas as pd
from pydantic import BaseModel, ValidationError

from core.catalog import EngagementSource
from core.errors import PlanValidationError
from core.models.engagement import (
    CachedScoreRecord,
    CategoryTrend,
    EngagementSignals,
    EngagementStats,
    PopularRecipe,
    TopRatedRecipe,
    TrendingRecipe,
    ViralRecipe,
)

_LOG = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)

CATEGORIES = ["breakfast", "lunch", "dinner", "snack", "dessert", "side"]
KNOWN_WINDOWS = ["1h", "6h", "24h", "7d"]
_WINDOW_RE = re.compile(r"^(\d+)([hd])$")

# ──────────────── weights (each family sums to 100) ────────────────
TRENDING_WEIGHTS = {"views": 20.0, "favorites": 15.0, "shares": 15.0, "rating": 20.0, "momentum": 30.0}
POPULARITY_WEIGHTS = {"views": 30.0, "favorites": 30.0, "rating": 40.0}

VIEWS_SCALE = 1000.0       # views that saturate the views term
FAVORITES_SCALE = 100.0
SHARES_SCALE = 50.0
RATING_TRUST_PRIOR = 10.0  # ratings needed for half trust
VIRAL_VELOCITY_SCALE = 400.0
ENGAGEMENT_TIME_SCALE = 300.0  # seconds for full engagement bonus

RISING_RATIO = 1.5
DECLINING_RATIO = 0.7
CATEGORY_UP_RATIO = 1.2
CATEGORY_DOWN_RATIO = 0.8


def window_hours(window: str) -> float:
    m = _WINDOW_RE.match(str(window).strip().lower())
    if not m or int(m.group(1)) <= 0:
        raise PlanValidationError(f"unsupported window {window!r}, expected e.g. '24h' or '7d'", "window")
    n = int(m.group(1))
    return float(n * 24 if m.group(2) == "d" else n)


def window_decay(window: str) -> float:
    """Strictly decreasing in window length: 1h ≈ 0.96, 24h = 0.5, 7d = 0.125."""
    return 24.0 / (24.0 + window_hours(window))


def _safe_div(num: np.ndarray, den: np.ndarray) -> np.ndarray:
    num = np.asarray(num, dtype=float)
    den = np.asarray(den, dtype=float)
    out = np.zeros_like(num, dtype=float)
    np.divide(num, den, out=out, where=den > 0)
    return out


# ──────────────────────────────────────────────────────────────────────
#  Scoring
# ──────────────────────────────────────────────────────────────────────
def signals_frame(signals: List[EngagementSignals]) -> pd.DataFrame:
    cols = list(EngagementSignals.model_fields)
    return pd.DataFrame([s.model_dump() for s in signals], columns=cols)


def score_frame(df: pd.DataFrame, window: str) -> pd.DataFrame:
    """Add trending/popularity/viral columns to a signals frame."""
    if df.empty:
        return df.assign(
            momentum=[], momentum_ratio=[], trend=[], trending_score=[],
            popularity_score=[], share_velocity=[], viral_score=[],
        )

    hours = window_hours(window)
    views = df["views"].to_numpy(dtype=float)
    favorites = df["favorites"].to_numpy(dtype=float)
    shares = df["shares"].to_numpy(dtype=float)
    rating = df["average_rating"].to_numpy(dtype=float)
    rating_n = df["rating_count"].to_numpy(dtype=float)
    recent = df["recent_activity"].to_numpy(dtype=float)
    depth = df["share_depth"].to_numpy(dtype=float)
    dwell = df["avg_engagement_seconds"].to_numpy(dtype=float)
    lifetime = df["lifetime_days"].to_numpy(dtype=float)

    views_n = np.minimum(views / VIEWS_SCALE, 1.0)
    fav_n = np.minimum(favorites / FAVORITES_SCALE, 1.0)
    shares_n = np.minimum(shares / SHARES_SCALE, 1.0)
    rating_norm = np.clip(rating / 5.0, 0.0, 1.0)

    # momentum: share of lifetime views that happened inside the window
    momentum = np.minimum(_safe_div(recent, views), 1.0) * window_decay(window)

    # trend label: in-window daily rate vs lifetime daily rate
    recent_rate = recent / (hours / 24.0)
    lifetime_rate = _safe_div(views, lifetime)
    ratio = _safe_div(recent_rate, lifetime_rate)
    trend = np.where(
        ratio > RISING_RATIO, "rising",
        np.where(ratio < DECLINING_RATIO, "declining", "stable"),
    )
    trend = np.where(lifetime_rate > 0, trend, "stable")

    w = TRENDING_WEIGHTS
    trending = (
        w["views"] * views_n
        + w["favorites"] * fav_n
        + w["shares"] * shares_n
        + w["rating"] * rating_norm
        + w["momentum"] * momentum
    )

    # rating trust is strictly positive so rating always moves the score
    trust = (1.0 + rating_n) / (1.0 + rating_n + RATING_TRUST_PRIOR)
    p = POPULARITY_WEIGHTS
    popularity = p["views"] * views_n + p["favorites"] * fav_n + p["rating"] * rating_norm * trust

    velocity = np.where(shares > 0, _safe_div(shares, views) * depth, 0.0)
    dwell_boost = 1.0 + np.minimum(dwell / ENGAGEMENT_TIME_SCALE, 1.0)
    viral = velocity * VIRAL_VELOCITY_SCALE * dwell_boost

    return df.assign(
        momentum=momentum,
        momentum_ratio=ratio,
        trend=trend.tolist(),
        trending_score=np.clip(trending, 0.0, 100.0),
        popularity_score=np.clip(popularity, 0.0, 100.0),
        share_velocity=velocity,
        viral_score=np.clip(viral, 0.0, 100.0),
    )


def trending_score(sig: EngagementSignals, window: str) -> float:
    return float(score_frame(signals_frame([sig]), window)["trending_score"].iloc[0])


def popularity_score(sig: EngagementSignals) -> float:
    # popularity ignores the window; "24h" only satisfies the frame helper
    return float(score_frame(signals_frame([sig]), "24h")["popularity_score"].iloc[0])


def share_velocity(sig: EngagementSignals) -> float:
    return float(score_frame(signals_frame([sig]), "24h")["share_velocity"].iloc[0])


def viral_score(sig: EngagementSignals) -> float:
    return float(score_frame(signals_frame([sig]), "24h")["viral_score"].iloc[0])


def _in_category(df: pd.DataFrame, category: str) -> pd.DataFrame:
    cat = category.strip().lower()
    mask = df.apply(
        lambda r: cat in {str(x).lower() for x in r["meal_types"]}
        or cat in {str(x).lower() for x in r["tags"]},
        axis=1,
    ).astype(bool)
    return df[mask]


# ──────────────────────────────────────────────────────────────────────
#  Scorer
# ──────────────────────────────────────────────────────────────────────
class EngagementScorer:
    def __init__(
        self,
        source: EngagementSource,
        cache=None,
        trending_ttls: Dict[str, int] | None = None,
        popular_ttl: int = 900,
        viral_ttl: int = 120,
        default_ttl: int = 300,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._source = source
        self._cache = cache
        self._trending_ttls = trending_ttls or {"1h": 60, "6h": 180, "24h": 300, "7d": 900}
        self._popular_ttl = popular_ttl
        self._viral_ttl = viral_ttl
        self._default_ttl = default_ttl
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    # ─────────────────────────── listings ─────────────────────────── #
    def trending_recipes(self, window: str = "24h", limit: int = 10) -> List[TrendingRecipe]:
        return self._listing("trending", "recipes", window, limit, TrendingRecipe, "trending_score")

    def trending_by_category(
        self, category: str, window: str = "24h", limit: int = 10
    ) -> List[TrendingRecipe]:
        scope = f"category:{category.strip().lower()}"
        return self._listing("trending", scope, window, limit, TrendingRecipe, "trending_score")

    def popular_recipes(self, window: str = "30d", limit: int = 10) -> List[PopularRecipe]:
        return self._listing("popular", "recipes", window, limit, PopularRecipe, "popularity_score")

    def viral_recipes(
        self, window: str = "24h", limit: int = 10, min_threshold: float = 0.0
    ) -> List[ViralRecipe]:
        # threshold applied after the cached full list, so one key serves all cutoffs
        ranked = self._ranked("viral", "recipes", window, ViralRecipe, "viral_score")
        return [r for r in ranked if r.viral_score >= min_threshold][:max(limit, 0)]

    def top_rated_recipes(
        self, window: str = "30d", limit: int = 10, min_ratings: int = 5
    ) -> List[TopRatedRecipe]:
        df = self._load(window)
        if df.empty:
            return []
        df = df[df["rating_count"] >= min_ratings]
        df = df.sort_values(
            ["average_rating", "rating_count", "recipe_id"], ascending=[False, False, True]
        )
        return [
            TopRatedRecipe(
                recipe_id=r.recipe_id,
                recipe_name=r.recipe_name,
                average_rating=float(r.average_rating),
                rating_count=int(r.rating_count),
            )
            for r in df.head(max(limit, 0)).itertuples(index=False)
        ]

    def category_trends(self, window: str = "24h") -> List[CategoryTrend]:
        df = self._load(window)
        if df.empty:
            return []
        scored = score_frame(df, window)
        out: List[CategoryTrend] = []
        for cat in CATEGORIES:
            sub = _in_category(scored, cat)
            if sub.empty:
                continue
            top = sub.sort_values(["trending_score", "recipe_id"], ascending=[False, True]).iloc[0]
            mean_ratio = float(sub["momentum_ratio"].mean())
            if mean_ratio > CATEGORY_UP_RATIO:
                direction = "up"
            elif 0 < mean_ratio < CATEGORY_DOWN_RATIO:
                direction = "down"
            else:
                direction = "stable"
            out.append(
                CategoryTrend(
                    category=cat,
                    recipe_count=len(sub),
                    average_score=round(float(sub["trending_score"].mean()), 2),
                    top_recipe_id=str(top["recipe_id"]),
                    direction=direction,
                )
            )
        return out

    def engagement_stats(self, window: str = "24h") -> EngagementStats:
        df = self._load(window)
        if df.empty:
            return EngagementStats(window=window)
        rated = df["rating_count"].sum()
        avg = float((df["average_rating"] * df["rating_count"]).sum() / rated) if rated else 0.0
        busiest = df.sort_values(["recent_activity", "recipe_id"], ascending=[False, True]).iloc[0]
        return EngagementStats(
            window=window,
            recipe_count=len(df),
            total_views=int(df["views"].sum()),
            total_favorites=int(df["favorites"].sum()),
            total_shares=int(df["shares"].sum()),
            total_ratings=int(rated),
            average_rating=round(avg, 2),
            most_active_recipe_id=str(busiest["recipe_id"]),
        )

    def invalidate(self, kind: str | None = None, window: str | None = None) -> None:
        """Drop known cache keys (recipe scope and every category scope)."""
        if self._cache is None:
            return
        kinds = [kind] if kind else ["trending", "popular", "viral"]
        windows = [window] if window else KNOWN_WINDOWS + ["30d"]
        scopes = ["recipes"] + [f"category:{c}" for c in CATEGORIES]
        for k in kinds:
            for w in windows:
                for s in scopes:
                    try:
                        self._cache.delete(self.cache_key(k, s, w))
                    except Exception as e:
                        _LOG.warning("cache delete failed: %s", e)

    # ─────────────────────────── internals ────────────────────────── #
    @staticmethod
    def cache_key(kind: str, scope: str, window: str) -> str:
        return f"{kind}:{scope}:{window}"

    def _ttl(self, kind: str, window: str) -> int:
        if kind == "trending":
            return self._trending_ttls.get(window, self._default_ttl)
        if kind == "popular":
            return self._popular_ttl
        if kind == "viral":
            return self._viral_ttl
        return self._default_ttl

    def _listing(
        self, kind: str, scope: str, window: str, limit: int, model: Type[T], score_col: str
    ) -> List[T]:
        return self._ranked(kind, scope, window, model, score_col)[:max(limit, 0)]

    def _ranked(self, kind: str, scope: str, window: str, model: Type[T], score_col: str) -> List[T]:
        window_hours(window)  # reject bad windows before touching the cache
        key = self.cache_key(kind, scope, window)

        cached = self._cache_get(key, model)
        if cached is not None:
            _LOG.debug("score cache hit %s", key)
            return cached

        _LOG.debug("score cache miss %s", key)
        df = self._fetch(window)
        if df is None:
            # outage: nothing cached so the next call retries the source
            return []
        if scope.startswith("category:") and not df.empty:
            df = _in_category(df, scope.split(":", 1)[1])

        items: List[T] = []
        if not df.empty:
            scored = score_frame(df, window).sort_values(
                [score_col, "recipe_id"], ascending=[False, True]
            )
            fields = set(model.model_fields)
            items = [
                model(**{k: v for k, v in row.items() if k in fields})
                for row in scored.to_dict(orient="records")
            ]
        self._cache_set(key, kind, scope, window, items)
        return items

    def _fetch(self, window: str) -> pd.DataFrame | None:
        try:
            signals = self._source.signals(window)
        except Exception as e:
            _LOG.error("engagement source failed for window %s: %s", window, e)
            return None
        return signals_frame(signals)

    def _load(self, window: str) -> pd.DataFrame:
        df = self._fetch(window)
        return signals_frame([]) if df is None else df

    def _cache_get(self, key: str, model: Type[T]) -> List[T] | None:
        if self._cache is None:
            return None
        try:
            raw = self._cache.get(key)
        except Exception as e:
            _LOG.warning("score cache read failed for %s: %s", key, e)
            return None
        if not raw:
            return None
        try:
            record = CachedScoreRecord.model_validate_json(raw)
            return [model.model_validate(item) for item in record.payload]
        except (ValidationError, ValueError, TypeError) as e:
            _LOG.debug("malformed cache payload for %s treated as miss: %s", key, e)
            return None

    def _cache_set(self, key: str, kind: str, scope: str, window: str, items: List[BaseModel]) -> None:
        if self._cache is None:
            return
        ttl = self._ttl(kind, window)
        record = CachedScoreRecord(
            subject=scope,
            window=window,
            payload=[i.model_dump() for i in items],
            computed_at=self._clock(),
            ttl=ttl,
        )
        try:
            self._cache.set(key, record.model_dump_json(), ttl)
        except Exception as e:
            _LOG.warning("score cache write failed for %s: %s", key, e)
