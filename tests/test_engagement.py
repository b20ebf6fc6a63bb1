# tests/test_engagement.py
from __future__ import annotations

import math

import pytest

from core.catalog import InMemoryEngagementSource
from core.engagement import (
    EngagementScorer,
    popularity_score,
    share_velocity,
    trending_score,
    viral_score,
    window_decay,
)
from core.errors import PlanValidationError
from core.models.engagement import EngagementSignals
from services.cache import InMemoryScoreCache, NullScoreCache, RedisScoreCache, build_score_cache


def sig(recipe_id: str, **kw) -> EngagementSignals:
    kw.setdefault("meal_types", ["dinner"])
    return EngagementSignals(recipe_id=recipe_id, recipe_name=recipe_id, **kw)


SIGNALS = [
    sig("r-hot", views=900, favorites=80, shares=40, average_rating=4.7, rating_count=60,
        recent_activity=600, share_depth=2.0, avg_engagement_seconds=200, lifetime_days=30),
    sig("r-solid", views=700, favorites=50, shares=5, average_rating=4.5, rating_count=40,
        recent_activity=20, share_depth=1.0, lifetime_days=7),
    sig("r-new", views=40, favorites=2, shares=1, average_rating=3.0, rating_count=1,
        recent_activity=35, share_depth=1.0, lifetime_days=1, meal_types=["breakfast"]),
    sig("r-quiet", meal_types=["snack"], tags=["vegan"]),
    sig("r-tiny", views=100, shares=1, share_depth=1.0, meal_types=["snack"]),
]


class CountingSource:
    def __init__(self, signals):
        self.signals_ = list(signals)
        self.calls = 0

    def signals(self, window):
        self.calls += 1
        return list(self.signals_)


class BrokenSource:
    def signals(self, window):
        raise TimeoutError("engagement store timeout")


class BrokenCache:
    def get(self, key):
        raise ConnectionError("down")

    def set(self, key, value, ttl):
        raise ConnectionError("down")

    def delete(self, key):
        raise ConnectionError("down")


# ── single-recipe scores ─────────────────────────────────────────────
def test_scores_stay_in_bounds_for_extreme_inputs():
    huge = sig("x", views=10**9, favorites=10**9, shares=10**9, average_rating=5,
               rating_count=10**6, recent_activity=10**9, share_depth=50,
               avg_engagement_seconds=10**6, lifetime_days=1)
    for s in (huge, sig("zero")):
        for value in (trending_score(s, "1h"), popularity_score(s), viral_score(s)):
            assert 0.0 <= value <= 100.0


def test_zero_shares_means_zero_velocity_and_viral():
    s = sig("x", views=500, shares=0, share_depth=3.0, avg_engagement_seconds=300)
    assert share_velocity(s) == 0.0
    assert viral_score(s) == 0.0


def test_velocity_is_zero_without_views():
    assert share_velocity(sig("x", views=0, shares=3, share_depth=2.0)) == 0.0


def test_popularity_strictly_increasing_in_rating():
    for count in (0, 3, 200):
        scores = [
            popularity_score(sig("x", views=300, favorites=10, average_rating=r, rating_count=count))
            for r in (1.0, 2.5, 4.0, 5.0)
        ]
        assert all(a < b for a, b in zip(scores, scores[1:]))


def test_window_decay_strictly_decreasing():
    assert window_decay("1h") > window_decay("6h") > window_decay("24h") > window_decay("7d")
    assert math.isclose(window_decay("24h"), 0.5)


def test_bad_window_is_rejected():
    with pytest.raises(PlanValidationError):
        window_decay("fortnight")
    with pytest.raises(PlanValidationError):
        EngagementScorer(InMemoryEngagementSource(SIGNALS)).trending_recipes("0h")


def test_viral_example_scores_below_ten():
    assert viral_score(sig("x", shares=1, views=100, share_depth=1.0)) < 10


# ── listings ─────────────────────────────────────────────────────────
def test_trending_limit_and_descending_order():
    scorer = EngagementScorer(InMemoryEngagementSource(SIGNALS))
    top = scorer.trending_recipes("24h", limit=3)
    assert len(top) == 3
    scores = [t.trending_score for t in top]
    assert scores == sorted(scores, reverse=True)
    assert top[0].recipe_id == "r-hot"


def test_trend_labels():
    scorer = EngagementScorer(InMemoryEngagementSource(SIGNALS))
    by_id = {t.recipe_id: t for t in scorer.trending_recipes("24h", limit=10)}
    assert by_id["r-hot"].trend == "rising"       # 600/day vs 30/day lifetime
    assert by_id["r-solid"].trend == "declining"  # 20/day vs 100/day lifetime
    assert by_id["r-quiet"].trend == "stable"
    assert by_id["r-quiet"].momentum == 0.0


def test_ties_break_on_recipe_id():
    twins = [sig("b", views=10), sig("a", views=10)]
    got = EngagementScorer(InMemoryEngagementSource(twins)).popular_recipes(limit=5)
    assert [p.recipe_id for p in got] == ["a", "b"]


def test_viral_threshold_excludes_low_spreaders():
    scorer = EngagementScorer(InMemoryEngagementSource(SIGNALS))
    ids = [v.recipe_id for v in scorer.viral_recipes("24h", limit=10, min_threshold=10)]
    assert "r-tiny" not in ids
    assert "r-quiet" not in ids
    assert "r-hot" in ids


def test_category_listing_matches_meal_types_and_tags():
    scorer = EngagementScorer(InMemoryEngagementSource(SIGNALS))
    snacks = [t.recipe_id for t in scorer.trending_by_category("snack", limit=10)]
    assert sorted(snacks) == ["r-quiet", "r-tiny"]
    vegan = [t.recipe_id for t in scorer.trending_by_category("vegan", limit=10)]
    assert vegan == ["r-quiet"]


LISTINGS = [
    ("trending", lambda s, n: s.trending_recipes("24h", limit=n), "trending_score"),
    ("popular", lambda s, n: s.popular_recipes("30d", limit=n), "popularity_score"),
    ("viral", lambda s, n: s.viral_recipes("24h", limit=n, min_threshold=3), "viral_score"),
    ("category", lambda s, n: s.trending_by_category("snack", "24h", limit=n), "trending_score"),
]


@pytest.mark.parametrize("name,listing,score", LISTINGS, ids=[n for n, _, _ in LISTINGS])
@pytest.mark.parametrize("limit", [0, 1, 2, 50])
def test_every_listing_is_capped_and_descending(name, listing, score, limit):
    scorer = EngagementScorer(InMemoryEngagementSource(SIGNALS), InMemoryScoreCache())
    full = listing(scorer, 50)
    got = listing(scorer, limit)
    assert len(got) == min(limit, len(full))
    assert [r.recipe_id for r in got] == [r.recipe_id for r in full[:limit]]
    values = [getattr(r, score) for r in full]
    assert values == sorted(values, reverse=True)


def test_viral_threshold_applies_before_limit():
    scorer = EngagementScorer(InMemoryEngagementSource(SIGNALS))
    # r-hot ≈ 59, r-new = 10, r-tiny = 4, r-solid ≈ 2.9
    assert [v.recipe_id for v in scorer.viral_recipes("24h", limit=10, min_threshold=3)] == [
        "r-hot", "r-new", "r-tiny"
    ]
    assert [v.recipe_id for v in scorer.viral_recipes("24h", limit=2, min_threshold=3)] == ["r-hot", "r-new"]


def test_top_rated_respects_min_ratings():
    scorer = EngagementScorer(InMemoryEngagementSource(SIGNALS))
    got = scorer.top_rated_recipes(limit=5, min_ratings=5)
    assert [t.recipe_id for t in got] == ["r-hot", "r-solid"]


def test_stats_and_category_trends():
    scorer = EngagementScorer(InMemoryEngagementSource(SIGNALS))
    stats = scorer.engagement_stats("24h")
    assert stats.recipe_count == 5
    assert stats.total_shares == 47
    assert stats.most_active_recipe_id == "r-hot"

    trends = {c.category: c for c in scorer.category_trends("24h")}
    assert trends["dinner"].top_recipe_id == "r-hot"
    assert trends["snack"].recipe_count == 2


# ── cache behaviour ──────────────────────────────────────────────────
def test_cache_hit_skips_source_and_truncates_to_limit():
    source = CountingSource(SIGNALS)
    cache = InMemoryScoreCache()
    scorer = EngagementScorer(source, cache)

    first = scorer.trending_recipes("24h", limit=5)
    assert source.calls == 1
    assert "trending:recipes:24h" in cache.keys()

    again = scorer.trending_recipes("24h", limit=2)
    assert source.calls == 1
    assert [t.recipe_id for t in again] == [t.recipe_id for t in first[:2]]


def test_cache_entries_expire_with_window_ttl():
    now = [0.0]
    cache = InMemoryScoreCache(clock=lambda: now[0])
    source = CountingSource(SIGNALS)
    scorer = EngagementScorer(source, cache)

    scorer.trending_recipes("24h")
    now[0] = 299.0
    scorer.trending_recipes("24h")
    assert source.calls == 1
    now[0] = 301.0
    scorer.trending_recipes("24h")
    assert source.calls == 2


def test_malformed_payload_is_a_miss():
    cache = InMemoryScoreCache()
    cache.set("popular:recipes:30d", "{not json", 60)
    source = CountingSource(SIGNALS)
    got = EngagementScorer(source, cache).popular_recipes("30d", limit=3)
    assert source.calls == 1
    assert len(got) == 3


def test_cache_failures_are_swallowed():
    scorer = EngagementScorer(InMemoryEngagementSource(SIGNALS), BrokenCache())
    assert len(scorer.trending_recipes("24h", limit=2)) == 2
    scorer.invalidate()


def test_source_failure_returns_empty_results():
    scorer = EngagementScorer(BrokenSource(), InMemoryScoreCache())
    assert scorer.trending_recipes() == []
    assert scorer.viral_recipes() == []
    assert scorer.category_trends() == []
    assert scorer.engagement_stats().recipe_count == 0


def test_invalidate_drops_cached_keys():
    cache = InMemoryScoreCache()
    scorer = EngagementScorer(InMemoryEngagementSource(SIGNALS), cache)
    scorer.trending_recipes("24h")
    scorer.trending_by_category("snack", "24h")
    scorer.invalidate("trending", "24h")
    assert cache.keys() == []


def test_expired_entries_are_purged_on_write():
    now = [0.0]
    cache = InMemoryScoreCache(clock=lambda: now[0])
    scorer = EngagementScorer(InMemoryEngagementSource(SIGNALS), cache)
    for hours in range(1, 501):
        scorer.trending_recipes(f"{hours}h")
    assert len(cache.keys()) == 500

    now[0] = 10_000.0
    scorer.trending_recipes("24h")
    assert cache.keys() == ["trending:recipes:24h"]


def test_in_memory_cache_is_capped():
    cache = InMemoryScoreCache(clock=lambda: 0.0, max_entries=3)
    for i, ttl in enumerate([50, 10, 30, 40]):
        cache.set(f"k{i}", "v", ttl)
    # k1 expires soonest so it makes room for k3
    assert cache.keys() == ["k0", "k2", "k3"]
    cache.set("k0", "w", 5)
    assert cache.get("k0") == "w"
    assert len(cache.keys()) == 3


def test_empty_listing_is_cached():
    source = CountingSource(SIGNALS)
    cache = InMemoryScoreCache()
    scorer = EngagementScorer(source, cache)
    assert scorer.trending_by_category("dessert", "24h") == []
    assert scorer.trending_by_category("dessert", "24h") == []
    assert source.calls == 1
    assert "trending:category:dessert:24h" in cache.keys()

    quiet = CountingSource([])
    scorer = EngagementScorer(quiet, InMemoryScoreCache())
    scorer.viral_recipes("24h")
    scorer.viral_recipes("24h")
    assert quiet.calls == 1


def test_source_outage_is_not_cached():
    cache = InMemoryScoreCache()
    assert EngagementScorer(BrokenSource(), cache).trending_recipes("24h") == []
    assert cache.keys() == []

    source = CountingSource(SIGNALS)
    assert EngagementScorer(source, cache).trending_recipes("24h", limit=1)[0].recipe_id == "r-hot"
    assert source.calls == 1


# ── backends ─────────────────────────────────────────────────────────
class FakeRedis:
    def __init__(self):
        self.data = {}

    def get(self, key):
        return self.data.get(key)

    def setex(self, key, ttl, value):
        self.data[key] = value

    def delete(self, key):
        self.data.pop(key, None)


def test_redis_cache_wraps_client_and_fails_soft():
    client = FakeRedis()
    cache = RedisScoreCache("redis://unused", client=client)
    assert cache.set("k", "v", 10) is True
    assert cache.get("k") == "v"

    broken = RedisScoreCache("redis://unused", client=BrokenCache())
    assert broken.get("k") is None
    assert broken.set("k", "v", 10) is False
    broken.delete("k")


def test_build_score_cache_backends():
    assert isinstance(build_score_cache("memory"), InMemoryScoreCache)
    assert isinstance(build_score_cache("none"), NullScoreCache)
    assert isinstance(build_score_cache("redis", None), InMemoryScoreCache)
