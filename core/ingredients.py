"""
core/ingredients.py
────────────────────────────────────────────────────────────────────────
Fold the recipes of a plan (or any slot list) into a shopping list.

Amounts are summed per (ingredient, unit); differing units are kept as
separate lines rather than converted.
"""

from __future__ import annotations

from typing import Iterable, List

import pandas as pd

from core.models.plan import MealSlot, ShoppingItem

# keyword → category, first hit wins
_CATEGORY_KEYWORDS: list[tuple[str, tuple[str, ...]]] = [
    ("frozen", ("frozen",)),
    ("meat", ("chicken", "beef", "pork", "turkey", "lamb", "salmon", "tuna", "fish",
              "shrimp", "prawn", "cod", "seafood", "bacon", "sausage")),
    ("produce", ("watermelon", "bell pepper", "eggplant", "sweet potato")),
    ("beverages", ("juice", "milk alternative", "coffee", "tea", "water", "broth")),
    ("dairy", ("milk", "cheese", "yogurt", "yoghurt", "butter", "cream", "egg",
               "paneer", "feta", "mozzarella", "parmesan")),
    ("spices", ("salt", "pepper", "cumin", "paprika", "turmeric", "cinnamon",
                "oregano", "chili", "chilli", "garam masala", "thyme", "basil",
                "rosemary", "herbs", "spice")),
    ("snacks", ("chips", "cracker", "granola bar", "chocolate", "popcorn")),
    ("produce", ("apple", "banana", "berries", "berry", "spinach", "kale", "lettuce",
                 "tomato", "onion", "garlic", "ginger", "carrot", "broccoli",
                 "zucchini", "squash", "pumpkin", "potato", "avocado", "lemon", "lime",
                 "cucumber", "mushroom", "asparagus", "peas", "cabbage", "orange",
                 "vegetable", "fruit", "herb", "cilantro", "parsley", "mint")),
    ("pantry", ("rice", "quinoa", "oats", "pasta", "flour", "oil", "vinegar", "sauce",
                "beans", "lentil", "chickpea", "bread", "tortilla", "honey", "sugar",
                "nuts", "almond", "seeds", "stock", "noodle")),
]


def categorize(ingredient: str) -> str:
    name = ingredient.lower()
    for category, keys in _CATEGORY_KEYWORDS:
        if any(k in name for k in keys):
            return category
    return "other"


def aggregate_ingredients(slots: Iterable[MealSlot]) -> List[ShoppingItem]:
    rows = [
        {
            "ingredient": ing.name.strip().lower(),
            "unit": ing.unit.strip().lower(),
            "amount": float(ing.amount),
            "recipe": slot.recipe.name,
        }
        for slot in slots
        for ing in slot.recipe.ingredients
    ]
    if not rows:
        return []

    df = pd.DataFrame(rows)
    keys = ["ingredient", "unit"]
    grouped = df.groupby(keys, sort=True)["amount"].sum().reset_index()
    used_in = df.groupby(keys)["recipe"].unique()
    return [
        ShoppingItem(
            ingredient=row.ingredient,
            total_amount=round(float(row.amount), 2),
            unit=row.unit,
            category=categorize(row.ingredient),
            used_in_recipes=sorted(used_in[(row.ingredient, row.unit)]),
        )
        for row in grouped.itertuples(index=False)
    ]
