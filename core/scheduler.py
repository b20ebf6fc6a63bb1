"""
core/scheduler.py
────────────────────────────────────────────────────────────────────────
Turn a finished plan into one calendar week.

Responsibilities
----------------
1.   Place one week of plan slots on monday…sunday (plan days wrap) with a
     clock time, prep method and active minutes.
2.   Group recipes that share ingredients or a cooking method into
     batch-cook sessions.
3.   Shopping trips from the aggregated ingredient list.
4.   Workout-nutrition windows + hydration for performance goals.
5.   Notification list (prep / shopping / meal reminders …).

Efficiency = 1 − redundant active cooking ÷ all-fresh cooking, minus a
small penalty per timing conflict.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime, timedelta
from itertools import combinations
from typing import Dict, List, Tuple

from core.errors import PlanValidationError
from core.ingredients import aggregate_ingredients
from core.models.plan import MealPlan, MealSlot
from core.models.preferences import CustomerPreferenceProfile
from core.models.recipe import Recipe
from core.models.schedule import (
    DaySchedule,
    HydrationReminder,
    LifestyleOptions,
    MealSchedule,
    Notification,
    PrepSession,
    ScheduledMeal,
    ShoppingTrip,
    WorkoutNutrition,
)
from core.nutrition_targets import is_performance_goal
from core.optimizer import validate_plan

_LOG = logging.getLogger(__name__)

WEEKDAYS = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]

EATING_MINUTES = {"snack": 5, "breakfast": 15, "lunch": 20, "dinner": 30}
COOKING_METHODS = (
    "baked", "grilled", "roasted", "stir-fry", "slow-cooker", "steamed",
    "boiled", "sauteed", "raw", "no-cook",
)
# too common to count as a shared batch ingredient
STAPLES = frozenset({"salt", "pepper", "black pepper", "water", "olive oil", "oil"})

PRIMARY_PREP = ("sunday", "10:00")
REFRESH_PREP = ("wednesday", "19:00")
DAILY_PREP_TIME = "17:00"
MAX_PRIMARY_SESSION_MINUTES = 180
BATCH_PARALLEL_FACTOR = 0.8
CONFLICT_GAP_MINUTES = 90
CONFLICT_PENALTY = 0.05
HYDRATION_ML = 500


# ──────────────────────────────── time helpers ─────────────────────── #
def _minutes(hhmm: str) -> int:
    t = datetime.strptime(hhmm, "%H:%M")
    return t.hour * 60 + t.minute


def _shift(hhmm: str, minutes: int) -> str:
    base = datetime.strptime(hhmm, "%H:%M")
    return (base + timedelta(minutes=minutes)).strftime("%H:%M")


def _shift_day(day: str, hhmm: str, minutes: int) -> Tuple[str, str]:
    """Like `_shift`, but past midnight moves to the neighbouring weekday."""
    offset, rest = divmod(_minutes(hhmm) + minutes, 24 * 60)
    return WEEKDAYS[(WEEKDAYS.index(day) + offset) % 7], f"{rest // 60:02d}:{rest % 60:02d}"


def _prev_day(day: str) -> str:
    return WEEKDAYS[(WEEKDAYS.index(day) - 1) % 7]


def cooking_method(recipe: Recipe) -> str:
    haystack = set(recipe.tags) | {w for w in recipe.name.lower().replace(",", " ").split()}
    for m in COOKING_METHODS:
        if m in haystack:
            return m
    return "stovetop"


def prep_minutes(recipe: Recipe, method: str) -> int:
    if method == "fresh":
        return recipe.prep_time + recipe.cook_time
    if method == "reheated":
        return max(5, round(0.2 * recipe.prep_time))
    return max(3, round(0.1 * recipe.prep_time))


class _UnionFind:
    def __init__(self, n: int) -> None:
        self.parent = list(range(n))

    def find(self, i: int) -> int:
        while self.parent[i] != i:
            self.parent[i] = self.parent[self.parent[i]]
            i = self.parent[i]
        return i

    def union(self, a: int, b: int) -> None:
        ra, rb = self.find(a), self.find(b)
        if ra != rb:
            self.parent[max(ra, rb)] = min(ra, rb)


# ──────────────────────────────────────────────────────────────────────
#  Scheduler
# ──────────────────────────────────────────────────────────────────────
class MealPlanScheduler:
    def create_intelligent_schedule(
        self,
        plan: MealPlan,
        customer_id: str,
        profile: CustomerPreferenceProfile | None = None,
        lifestyle: LifestyleOptions | None = None,
        week_index: int = 0,
    ) -> MealSchedule:
        """
        Plans longer than a week are scheduled one calendar week at a time:
        `week_index` 0 covers plan days 1-7, 1 covers days 8-14 and so on.
        """
        validate_plan(plan)
        weeks = math.ceil(plan.days / 7)
        if not 0 <= week_index < weeks:
            raise PlanValidationError(
                f"week_index {week_index} out of range for a {plan.days}-day plan (0-{weeks - 1})",
                "week_index",
            )
        life = lifestyle or LifestyleOptions()
        mode = life.batch_mode or (
            profile.cooking_preferences.batch_cook_frequency if profile else "weekly"
        )

        week, slots_by_day = self._week(plan, life, mode, week_index)
        conflicts = sum(self._conflicts(d) for d in week)

        sessions = self._prep_sessions(slots_by_day, mode)
        trips = self._shopping(slots_by_day, sessions)

        workout: List[WorkoutNutrition] = []
        hydration: List[HydrationReminder] = []
        if is_performance_goal(plan.fitness_goal):
            workout, hydration = self._workout_support(life)

        total, efficiency = self._efficiency(week, slots_by_day, sessions, conflicts)
        notifications = self._notifications(week, sessions, trips, workout, hydration)

        _LOG.debug(
            "schedule for plan %s: %d sessions, efficiency %.2f", plan.id, len(sessions), efficiency
        )
        return MealSchedule(
            customer_id=customer_id,
            plan_id=plan.id,
            week_index=week_index,
            batch_mode=mode,
            week=week,
            prep_sessions=sessions,
            shopping_plan=trips,
            workout_nutrition=workout,
            hydration_reminders=hydration,
            notifications=notifications,
            total_prep_time=total,
            efficiency_score=efficiency,
            timing_conflicts=conflicts,
        )

    # ─────────────────────────────── week ─────────────────────────── #
    def _week(
        self, plan: MealPlan, life: LifestyleOptions, mode: str, week_index: int = 0
    ) -> Tuple[List[DaySchedule], Dict[str, List[MealSlot]]]:
        by_plan_day: Dict[int, List[MealSlot]] = {}
        for s in plan.ordered_meals():
            by_plan_day.setdefault(s.day, []).append(s)

        week: List[DaySchedule] = []
        slots_by_day: Dict[str, List[MealSlot]] = {}
        for i, day in enumerate(WEEKDAYS):
            plan_day = ((week_index * 7 + i) % plan.days) + 1
            slots = by_plan_day.get(plan_day, [])
            slots_by_day[day] = slots
            meals: List[ScheduledMeal] = []
            prev_main: str | None = None
            for s in slots:
                method = self._prep_method(s.meal_type, mode)
                meals.append(
                    ScheduledMeal(
                        day=day,
                        plan_day=plan_day,
                        meal_number=s.meal_number,
                        meal_type=s.meal_type,
                        recipe_id=s.recipe.id,
                        recipe_name=s.recipe.name,
                        time=self._meal_time(s.meal_type, day, prev_main, life),
                        prep_method=method,
                        prep_minutes=prep_minutes(s.recipe, method),
                        eating_minutes=EATING_MINUTES.get(s.meal_type, 20),
                    )
                )
                if s.meal_type != "snack":
                    prev_main = s.meal_type
            week.append(
                DaySchedule(
                    day=day,
                    plan_day=plan_day,
                    meals=meals,
                    total_prep_minutes=sum(m.prep_minutes for m in meals),
                )
            )
        return week, slots_by_day

    @staticmethod
    def _prep_method(meal_type: str, mode: str) -> str:
        if mode == "daily":
            return "fresh"
        return "assembled" if meal_type in ("breakfast", "snack") else "reheated"

    @staticmethod
    def _meal_time(meal_type: str, day: str, prev_main: str | None, life: LifestyleOptions) -> str:
        if meal_type == "breakfast":
            return _shift(life.wake_time, 30)
        if meal_type == "lunch":
            return _shift(life.work_start, 240) if day in life.workdays else "12:00"
        if meal_type == "dinner":
            return "18:00"
        # snacks sit after the last main meal
        return {None: "10:00", "breakfast": "10:00", "lunch": "15:30"}.get(prev_main, "20:30")

    @staticmethod
    def _conflicts(day: DaySchedule) -> int:
        times = sorted(_minutes(m.time) for m in day.meals)
        return sum(1 for a, b in zip(times, times[1:]) if b - a < CONFLICT_GAP_MINUTES)

    # ─────────────────────────── batch cooking ────────────────────── #
    @staticmethod
    def _group(recipes: List[Recipe]) -> List[List[Recipe]]:
        uf = _UnionFind(len(recipes))
        ingredients = [set(r.ingredient_names) - STAPLES for r in recipes]
        methods = [cooking_method(r) for r in recipes]
        for i in range(len(recipes)):
            for j in range(i + 1, len(recipes)):
                if methods[i] == methods[j] or ingredients[i] & ingredients[j]:
                    uf.union(i, j)
        groups: Dict[int, List[Recipe]] = {}
        for i, r in enumerate(recipes):
            groups.setdefault(uf.find(i), []).append(r)
        return [groups[k] for k in sorted(groups)]

    def _session(self, day: str, start: str, group: List[Recipe]) -> PrepSession:
        ing_sets = [set(r.ingredient_names) - STAPLES for r in group]
        shared = sorted({
            name
            for a, b in combinations(ing_sets, 2)
            for name in a & b
        })
        return PrepSession(
            day=day,
            start_time=start,
            duration_minutes=max(1, round(BATCH_PARALLEL_FACTOR * sum(r.total_time for r in group))),
            recipe_ids=[r.id for r in group],
            shared_ingredients=shared,
            cooking_methods=sorted({cooking_method(r) for r in group}),
        )

    def _prep_sessions(self, slots_by_day: Dict[str, List[MealSlot]], mode: str) -> List[PrepSession]:
        if mode == "daily":
            out = []
            for day in WEEKDAYS:
                uniq = list({s.recipe.id: s.recipe for s in slots_by_day[day]}.values())
                if uniq:
                    out.append(self._session(day, DAILY_PREP_TIME, uniq))
            return out

        uniq = list(
            {s.recipe.id: s.recipe for d in WEEKDAYS for s in slots_by_day[d]}.values()
        )
        sessions: List[PrepSession] = []
        used = {PRIMARY_PREP[0]: 0, REFRESH_PREP[0]: 0}
        for n, group in enumerate(self._group(uniq)):
            draft = self._session(PRIMARY_PREP[0], PRIMARY_PREP[1], group)
            if mode == "twice_weekly":
                day, start = PRIMARY_PREP if n % 2 == 0 else REFRESH_PREP
            elif used[PRIMARY_PREP[0]] + draft.duration_minutes <= MAX_PRIMARY_SESSION_MINUTES \
                    or used[PRIMARY_PREP[0]] == 0:
                day, start = PRIMARY_PREP
            else:
                day, start = REFRESH_PREP
            start_day, start_time = _shift_day(day, start, used[day])
            sessions.append(draft.model_copy(update={"day": start_day, "start_time": start_time}))
            used[day] += draft.duration_minutes
        return sessions

    # ───────────────────────────── shopping ───────────────────────── #
    @staticmethod
    def _shopping(
        slots_by_day: Dict[str, List[MealSlot]], sessions: List[PrepSession]
    ) -> List[ShoppingTrip]:
        all_slots = [s for d in WEEKDAYS for s in slots_by_day[d]]
        items = aggregate_ingredients(all_slots)
        if not all_slots:
            return []
        first_day = sessions[0].day if sessions else "monday"
        trips = [
            ShoppingTrip(
                day=_prev_day(first_day),
                time="09:00",
                purpose="weekly shop",
                items=items,
                categories=sorted({i.category for i in items}),
            )
        ]
        produce = [i for i in items if i.category == "produce"]
        if produce and any(s.day == REFRESH_PREP[0] for s in sessions):
            trips.append(
                ShoppingTrip(
                    day=_prev_day(REFRESH_PREP[0]),
                    time="18:00",
                    purpose="fresh produce top-up",
                    items=produce,
                    categories=["produce"],
                )
            )
        return trips

    # ───────────────────────────── workouts ───────────────────────── #
    @staticmethod
    def _workout_support(
        life: LifestyleOptions,
    ) -> Tuple[List[WorkoutNutrition], List[HydrationReminder]]:
        workout, hydration = [], []
        for day in life.workout_days:
            workout.append(
                WorkoutNutrition(
                    day=day,
                    workout_time=life.workout_time,
                    pre_workout=_shift(life.workout_time, -60),
                    post_workout=_shift(life.workout_time, 30),
                    guidance="carbs + moderate protein before; protein + carbs within 30 min after",
                )
            )
            hydration.append(
                HydrationReminder(
                    day=day,
                    time=_shift(life.workout_time, -30),
                    amount_ml=HYDRATION_ML,
                    message=f"Drink {HYDRATION_ML} ml of water before training",
                )
            )
        return workout, hydration

    # ──────────────────────────── efficiency ──────────────────────── #
    @staticmethod
    def _efficiency(
        week: List[DaySchedule],
        slots_by_day: Dict[str, List[MealSlot]],
        sessions: List[PrepSession],
        conflicts: int,
    ) -> Tuple[int, float]:
        all_slots = [s for d in WEEKDAYS for s in slots_by_day[d]]
        unique = {s.recipe.id: s.recipe.total_time for s in all_slots}
        baseline = sum(s.recipe.total_time for s in all_slots)
        minimal = sum(unique.values())

        per_meal = sum(m.prep_minutes for d in week for m in d.meals)
        batch = sum(unique[rid] for sess in sessions for rid in sess.recipe_ids)
        fresh_only = all(m.prep_method == "fresh" for d in week for m in d.meals)
        # daily sessions are the fresh cooking itself, not extra work
        actual = per_meal if fresh_only else per_meal + batch
        redundant = max(0, actual - minimal)

        efficiency = 1.0 - (redundant / baseline if baseline > 0 else 0.0)
        efficiency -= CONFLICT_PENALTY * conflicts
        return int(actual), float(min(1.0, max(0.0, efficiency)))

    # ─────────────────────────── notifications ────────────────────── #
    @staticmethod
    def _notifications(
        week: List[DaySchedule],
        sessions: List[PrepSession],
        trips: List[ShoppingTrip],
        workout: List[WorkoutNutrition],
        hydration: List[HydrationReminder],
    ) -> List[Notification]:
        out: List[Notification] = []
        for s in sessions:
            day, time = _shift_day(s.day, s.start_time, -60)
            out.append(Notification(
                kind="prep_reminder", day=day, time=time,
                message=f"Prep session in 1 hour: {len(s.recipe_ids)} recipe(s), ~{s.duration_minutes} min",
            ))
        for t in trips:
            out.append(Notification(
                kind="shopping_reminder", day=t.day, time=t.time,
                message=f"Shopping: {t.purpose} ({len(t.items)} items)",
            ))
        for d in week:
            for m in d.meals:
                day, time = _shift_day(d.day, m.time, -15)
                out.append(Notification(
                    kind="meal_reminder", day=day, time=time,
                    message=f"{m.meal_type.title()} in 15 min: {m.recipe_name}",
                    enabled=False,
                ))
        for w in workout:
            out.append(Notification(
                kind="workout_nutrition", day=w.day, time=w.pre_workout,
                message="Pre-workout snack time",
            ))
        for h in hydration:
            out.append(Notification(kind="hydration", day=h.day, time=h.time, message=h.message))
        return out
