from __future__ import annotations

from typing import List, Literal

from pydantic import BaseModel, Field

from core.models.plan import ShoppingItem

Weekday = Literal[
    "monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"
]
BatchMode = Literal["daily", "twice_weekly", "weekly"]


class LifestyleOptions(BaseModel):
    wake_time: str = "06:30"
    work_start: str = "09:00"
    workdays: List[Weekday] = Field(
        default_factory=lambda: ["monday", "tuesday", "wednesday", "thursday", "friday"]
    )
    workout_days: List[Weekday] = Field(
        default_factory=lambda: ["monday", "wednesday", "friday"]
    )
    workout_time: str = "18:00"
    batch_mode: BatchMode | None = None   # None → profile or "weekly"


class ScheduledMeal(BaseModel):
    day: Weekday
    plan_day: int
    meal_number: int
    meal_type: str
    recipe_id: str
    recipe_name: str
    time: str
    prep_method: Literal["fresh", "reheated", "assembled"]
    prep_minutes: int
    eating_minutes: int


class DaySchedule(BaseModel):
    day: Weekday
    plan_day: int
    meals: List[ScheduledMeal] = Field(default_factory=list)
    total_prep_minutes: int = 0


class PrepSession(BaseModel):
    day: Weekday
    start_time: str
    duration_minutes: int
    recipe_ids: List[str] = Field(default_factory=list)
    shared_ingredients: List[str] = Field(default_factory=list)
    cooking_methods: List[str] = Field(default_factory=list)


class ShoppingTrip(BaseModel):
    day: Weekday
    time: str
    purpose: str
    items: List[ShoppingItem] = Field(default_factory=list)
    categories: List[str] = Field(default_factory=list)


class WorkoutNutrition(BaseModel):
    day: Weekday
    workout_time: str
    pre_workout: str
    post_workout: str
    guidance: str


class HydrationReminder(BaseModel):
    day: Weekday
    time: str
    amount_ml: int
    message: str


class Notification(BaseModel):
    kind: Literal[
        "prep_reminder", "shopping_reminder", "meal_reminder",
        "workout_nutrition", "hydration",
    ]
    day: Weekday
    time: str
    message: str
    enabled: bool = True


class MealSchedule(BaseModel):
    customer_id: str
    plan_id: str
    week_index: int = 0
    batch_mode: BatchMode
    week: List[DaySchedule] = Field(default_factory=list)
    prep_sessions: List[PrepSession] = Field(default_factory=list)
    shopping_plan: List[ShoppingTrip] = Field(default_factory=list)
    workout_nutrition: List[WorkoutNutrition] = Field(default_factory=list)
    hydration_reminders: List[HydrationReminder] = Field(default_factory=list)
    notifications: List[Notification] = Field(default_factory=list)
    total_prep_time: int = 0
    efficiency_score: float = Field(0.0, ge=0, le=1)
    timing_conflicts: int = 0
    review_after_days: int = 7
