"""
Seed demo recipes, engagement counters and one customer's ratings.

Usage
-----

    # built-in demo catalogue
    python -m scripts.seed_recipes

    # custom recipe list (same schema as `_DEFAULT_RECIPES`) in a JSON file
    python -m scripts.seed_recipes --file path/to/recipes.json --customer c-demo
"""
from __future__ import annotations

import argparse
import asyncio
import json
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, List

from sqlalchemy.ext.asyncio import async_sessionmaker

from services.db import (
    Base,
    MealPlanRatingRow,
    RecipeEngagementRow,
    RecipeRow,
    engine,
)


def _r(id_, name, meal_type, kcal, p, c, f, prep, cook, tags, ingredients) -> dict[str, Any]:
    return {
        "id": id_,
        "name": name,
        "nutrition": {"calories": kcal, "protein": p, "carbs": c, "fat": f},
        "prep_time": prep,
        "cook_time": cook,
        "meal_types": [meal_type],
        "tags": tags,
        "ingredients": [{"name": n, "amount": a, "unit": u} for n, a, u in ingredients],
        "approved": True,
    }


# ────────────────────────────────────────────────────────────────────
_DEFAULT_RECIPES: List[dict[str, Any]] = [
    _r("b-oats", "Berry Protein Oats", "breakfast", 420, 28, 55, 10, 5, 5, ["american"],
       [("rolled oats", 60, "g"), ("blueberries", 80, "g"), ("greek yogurt", 150, "g")]),
    _r("b-omelette", "Spinach Feta Omelette", "breakfast", 390, 27, 8, 27, 5, 10, ["mediterranean"],
       [("eggs", 3, "pc"), ("spinach", 50, "g"), ("feta", 30, "g"), ("olive oil", 1, "tbsp")]),
    _r("b-asparagus", "Asparagus & Pea Frittata", "breakfast", 410, 26, 14, 26, 10, 20,
       ["french", "baked"],
       [("eggs", 3, "pc"), ("asparagus", 80, "g"), ("peas", 50, "g")]),
    _r("l-bowl", "Chicken Rice Bowl", "lunch", 620, 45, 70, 14, 15, 20, ["asian", "stir-fry"],
       [("chicken breast", 150, "g"), ("rice", 80, "g"), ("soy sauce", 1, "tbsp"),
        ("ginger", 5, "g")]),
    _r("l-salad", "Tomato Chickpea Salad", "lunch", 540, 22, 62, 20, 15, 0,
       ["mediterranean", "no-cook"],
       [("tomatoes", 150, "g"), ("chickpeas", 120, "g"), ("olive oil", 1, "tbsp"),
        ("cucumbers", 80, "g")]),
    _r("l-wrap", "Turkey Hummus Wrap", "lunch", 580, 38, 58, 18, 10, 0, ["american"],
       [("turkey breast", 120, "g"), ("tortilla", 1, "pc"), ("hummus", 40, "g")]),
    _r("d-salmon", "Baked Salmon & Sweet Potatoes", "dinner", 650, 42, 50, 28, 10, 30,
       ["american", "baked"],
       [("salmon fillet", 160, "g"), ("sweet potatoes", 200, "g"), ("broccoli", 100, "g")]),
    _r("d-curry", "Chickpea Spinach Curry", "dinner", 600, 24, 78, 18, 15, 30, ["indian"],
       [("chickpeas", 150, "g"), ("spinach", 100, "g"), ("rice", 70, "g"), ("garlic", 2, "clove")]),
    _r("d-stirfry", "Beef & Vegetable Stir-Fry", "dinner", 640, 44, 55, 24, 15, 15,
       ["chinese", "stir-fry"],
       [("beef strips", 150, "g"), ("bell peppers", 120, "g"), ("rice", 70, "g"),
        ("sesame oil", 1, "tsp")]),
    _r("s-yogurt", "Greek Yogurt & Walnuts", "snack", 220, 15, 12, 12, 3, 0, ["no-cook"],
       [("greek yogurt", 150, "g"), ("walnuts", 15, "g")]),
    _r("s-apple", "Apple & Peanut Butter", "snack", 200, 6, 24, 10, 3, 0, ["no-cook"],
       [("apples", 1, "pc"), ("peanut butter", 15, "g")]),
]

_ENGAGEMENT = {  # recipe_id -> (views, favorites, shares, avg rating, ratings, recent, depth)
    "b-oats": (820, 64, 12, 4.6, 41, 210, 1.4),
    "l-bowl": (1250, 90, 30, 4.4, 73, 380, 1.8),
    "d-salmon": (640, 58, 8, 4.8, 35, 60, 1.1),
    "d-curry": (300, 20, 2, 4.1, 12, 140, 1.0),
    "s-apple": (150, 6, 0, 3.9, 5, 10, 0.0),
}


async def _seed(recipes: list[dict[str, Any]], customer_id: str) -> None:
    eng = await engine()
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async_session = async_sessionmaker(eng, expire_on_commit=False)
    async with async_session() as db:
        for r in recipes:
            await db.merge(RecipeRow(**r))

        for window, scale, lifetime in (("24h", 0.1, 120), ("7d", 0.5, 120), ("30d", 1.0, 120)):
            for rid, (views, fav, shares, avg, n, recent, depth) in _ENGAGEMENT.items():
                db.add(
                    RecipeEngagementRow(
                        recipe_id=rid,
                        window=window,
                        views=int(views * scale),
                        favorites=int(fav * scale),
                        shares=int(shares * scale),
                        average_rating=avg,
                        rating_count=n,
                        recent_activity=int(recent * scale),
                        share_depth=depth,
                        avg_engagement_seconds=95.0,
                        lifetime_days=lifetime,
                    )
                )

        now = datetime.utcnow()
        for i, (rating, ids) in enumerate(
            [
                (5, ["b-oats", "l-bowl", "d-salmon"]),
                (4, ["b-oats", "l-bowl", "d-stirfry"]),
                (2, ["b-omelette", "l-salad", "d-curry"]),
            ]
        ):
            db.add(
                MealPlanRatingRow(
                    plan_id=f"seed-plan-{i + 1}",
                    customer_id=customer_id,
                    rating=rating,
                    recipe_ids=ids,
                    rated_at=now - timedelta(days=7 * i),
                )
            )
        await db.commit()
    print(f"✓ seeded {len(recipes)} recipes and 3 ratings for {customer_id}")


def _load_json(path: Path) -> list[dict[str, Any]]:
    data = json.loads(path.read_text())
    if not isinstance(data, list):
        raise ValueError("JSON file must contain a list of recipe dictionaries")
    return data


def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument(
        "--file",
        type=Path,
        help="optional JSON file with recipes to seed (overrides defaults)",
    )
    parser.add_argument("--customer", default="c-demo", help="customer id for demo ratings")
    args = parser.parse_args()

    recipes = _load_json(args.file) if args.file else _DEFAULT_RECIPES
    asyncio.run(_seed(recipes, args.customer))


if __name__ == "__main__":
    main()
