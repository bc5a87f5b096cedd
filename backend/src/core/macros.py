"""Macro Calculations - Pure functions for nutrition math.

All functions are pure: same input always produces same output, no side effects.
"""

from datetime import date

from .catalog import round_decimal
from .errors import CoachingInputError
from .models import (
    DailySummary,
    Food,
    FoodLog,
    MacroAxis,
    MacroTarget,
    Macros,
    MealSlot,
)


def calculate_daily_totals(logs: list[FoodLog]) -> Macros:
    """Sum the five macro fields across food logs.

    Args:
        logs: Food logs for one client and day, in any order

    Returns:
        Macros with the element-wise totals (all zero for no logs)
    """
    return Macros(
        kcal=sum(log.kcal for log in logs),
        p=sum(log.p for log in logs),
        c=sum(log.c for log in logs),
        f=sum(log.f for log in logs),
        fiber=sum(log.fiber for log in logs),
    )


def calculate_remaining(totals: Macros, target: MacroTarget | None) -> Macros:
    """Calculate target minus totals for every macro.

    No clamping: negative values mean the client is over target. A missing
    target counts as an all-zero target, so every remaining value is the
    negated total.
    """
    return Macros(
        **{
            axis.value: (target.macro(axis) if target else 0) - totals.get(axis)
            for axis in MacroAxis
        }
    )


def calculate_daily_summary(
    logs: list[FoodLog], target: MacroTarget | None, log_date: date
) -> DailySummary:
    """Calculate daily summary with totals, remaining and per-meal subtotals.

    Args:
        logs: Food logs for the day
        target: The day's macro target, if one is set
        log_date: Day being summarised

    Returns:
        DailySummary for display
    """
    totals = calculate_daily_totals(logs)

    by_meal: dict[MealSlot, Macros] = {}
    for slot in MealSlot:
        meal_logs = [log for log in logs if log.meal_key == slot]
        if meal_logs:
            by_meal[slot] = calculate_daily_totals(meal_logs)

    return DailySummary(
        log_date=log_date,
        totals=totals,
        remaining=calculate_remaining(totals, target),
        has_target=target is not None,
        by_meal=by_meal,
        entry_count=len(logs),
    )


def solve_quantity(food: Food, axis: MacroAxis, target_amount: float | None) -> float:
    """Derive the food quantity that yields a desired amount of one macro.

    Args:
        food: Food whose per-unit macros are used
        axis: Macro to solve for (any of the five)
        target_amount: Desired amount of that macro

    Returns:
        quantity = target_amount / food.macro[axis]

    Raises:
        CoachingInputError: If the target is missing or not positive, or the
            food has no positive value for the chosen macro
    """
    if target_amount is None or target_amount <= 0:
        raise CoachingInputError("Enter the macro target")

    per_unit = food.macro(axis)
    if not per_unit or per_unit <= 0:
        raise CoachingInputError("That food does not contain that macro")

    return target_amount / per_unit


def macros_for_quantity(food: Food, qty: float) -> Macros:
    """Multiply per-unit macros by quantity, rounded half-up to 2 decimals."""
    return Macros(**{axis.value: round_decimal(food.macro(axis) * qty, 2) for axis in MacroAxis})


def build_food_log(
    food: Food,
    qty: float | None,
    client_id: str,
    log_date: date,
    meal_key: MealSlot,
) -> FoodLog:
    """Build the food log row to persist for a quantity of food.

    This is the single place where log macros are derived from the food, for
    both directly entered and solved quantities.

    Raises:
        CoachingInputError: If the quantity is missing or not positive
    """
    if qty is None or qty <= 0:
        raise CoachingInputError("Invalid quantity")

    macros = macros_for_quantity(food, qty)
    return FoodLog(
        client_id=client_id,
        date=log_date,
        meal_key=meal_key,
        food_id=food.id,
        qty=qty,
        unit=food.unit,
        **macros.model_dump(),
    )
