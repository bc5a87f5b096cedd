"""Macro Split Allocation - distribute a daily target across meal slots.

All functions are pure: same input always produces same output, no side effects.
"""

from .catalog import round_half_up
from .models import MacroAxis, MacroSplitTemplate, MacroTarget, MealAllocation, MealSlot


def allocate_split(template: MacroSplitTemplate, target: MacroTarget) -> list[MealAllocation]:
    """Turn a daily macro target into per-meal sub-targets.

    Each meal slot and macro axis is computed independently as
    round(target[axis] * weight[axis] / 100), halves rounded up. Weights are not
    required to sum to 100 per axis.

    Args:
        template: Split template mapping meal slot to percentage weights
        target: The day's macro target

    Returns:
        One allocation per meal slot in the template, in display order
    """
    allocations = []
    for slot in MealSlot:
        weights = template.split.get(slot)
        if weights is None:
            continue
        values = {
            axis.value: round_half_up(target.macro(axis) * (weights.weight(axis) / 100))
            for axis in MacroAxis
        }
        allocations.append(
            MealAllocation(meal_key=slot, label=slot.label, weights=weights, **values)
        )
    return allocations


def split_axis_totals(template: MacroSplitTemplate) -> dict[MacroAxis, float]:
    """Sum each axis across meal slots. Informational; ~100 is expected."""
    return {
        axis: sum(weights.weight(axis) for weights in template.split.values())
        for axis in MacroAxis
    }
