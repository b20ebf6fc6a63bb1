# tests/test_nutrition_targets.py
from __future__ import annotations

import math
import pytest

from core.errors import PlanValidationError
from core.nutrition_targets import GoalTargetCalculator, goal_key, is_performance_goal

calc = GoalTargetCalculator()


# ── targets ──────────────────────────────────────────────────────────
def test_maintenance_targets_split_kcal_by_profile():
    t = calc.targets("maintenance", 2000)
    assert t["kcal"] == 2000
    assert math.isclose(t["protein_g"], 125.0)     # 25 % / 4 kcal
    assert math.isclose(t["carbs_g"], 225.0)       # 45 % / 4 kcal
    assert math.isclose(t["fat_g"], 66.7)          # 30 % / 9 kcal
    assert t["fiber_g"] == 28.0
    assert t["sodium_mg"] == 2300


def test_goal_modifiers_order_kcal():
    gain = calc.targets("muscle_gain", 2000)["kcal"]
    loss = calc.targets("weight_loss", 2000)["kcal"]
    assert gain >= loss
    assert gain == 2300 and loss == 1700


def test_goal_aliases_and_unknown_fallback():
    assert goal_key("lose") == "weight_loss"
    assert goal_key("Muscle Gain") == "muscle_gain"
    assert goal_key("zen") == "general_health"
    assert goal_key(None) == "general_health"
    assert is_performance_goal("athletic-performance")
    assert not is_performance_goal("weight_loss")


def test_constraints_wrap_targets_with_tolerance():
    c = calc.constraints(calc.targets("maintenance", 2000))
    assert math.isclose(c.min_calories, 1800.0)
    assert math.isclose(c.max_calories, 2200.0)
    assert math.isclose(c.min_protein, 112.5)


def test_invalid_tolerance_rejected():
    with pytest.raises(PlanValidationError):
        GoalTargetCalculator(tolerance=1.5)


# ── progressive nudge ────────────────────────────────────────────────
def test_progressive_factor_monotone_and_bounded():
    loss = [calc.progressive_factor("weight_loss", w, 52) for w in range(1, 53)]
    gain = [calc.progressive_factor("muscle_gain", w, 52) for w in range(1, 53)]
    assert loss[0] == 1.0 and gain[0] == 1.0
    assert all(a >= b for a, b in zip(loss, loss[1:]))
    assert all(a <= b for a, b in zip(gain, gain[1:]))
    assert math.isclose(min(loss), 0.9)
    assert math.isclose(max(gain), 1.1)
    assert calc.progressive_factor("maintenance", 30, 52) == 1.0


def test_progressive_factor_rejects_bad_weeks():
    with pytest.raises(PlanValidationError):
        calc.progressive_factor("weight_loss", 0, 4)
    with pytest.raises(PlanValidationError):
        calc.progressive_factor("weight_loss", 5, 4)


def test_annotations_depend_on_goal():
    assert any(r.startswith("post_workout_carbs") for r in calc.timing_recommendations("muscle_gain"))
    assert calc.workout_notes("weight_loss") == []
    assert len(calc.workout_notes("athletic_performance")) == 3
