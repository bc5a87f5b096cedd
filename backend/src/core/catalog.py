"""Catalog helpers - normalise food and exercise form input.

All functions are pure: same input always produces same output, no side effects.
"""

import math
import re
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from .errors import CoachingInputError
from .models import Exercise, ExerciseCategory, Food, FoodType, MacroAxis


_SLUG_PATTERN = re.compile(r"[^a-z0-9]+")


def parse_number(value: Any) -> float | None:
    """Parse a user-entered number.

    Accepts numbers or strings; a decimal comma is treated as a decimal point.

    Args:
        value: Raw form value

    Returns:
        The parsed number, or None when blank or not a finite number
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else None

    text = str(value).strip()
    if not text:
        return None
    try:
        parsed = float(text.replace(",", ".", 1))
    except ValueError:
        return None
    return parsed if math.isfinite(parsed) else None


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves going up (37.5 -> 38, 12.5 -> 13)."""
    return math.floor(value + 0.5)


def round_decimal(value: float, places: int) -> float:
    """Round to a number of decimal places with halves going up (7.25 -> 7.3)."""
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def slugify(text: str) -> str:
    """Turn a display name into a stable lowercase id."""
    normalized = _SLUG_PATTERN.sub("_", text.strip().lower()).strip("_")
    return normalized or "item"


def parse_muscles(text: str) -> list[str]:
    """Split a comma separated muscle list, dropping blanks."""
    return [item.strip() for item in text.split(",") if item.strip()]


def build_food(
    name: str,
    unit: str,
    macros: dict[str, Any],
    owner_id: str,
    food_id: str | None = None,
    food_type: str = FoodType.MIXED.value,
    is_public: bool = False,
) -> Food:
    """Validate a food form and build the Food to persist.

    Args:
        name: Display name
        unit: Measurement unit the macros refer to
        macros: Raw values keyed by macro axis (kcal, p, c, f, fiber)
        owner_id: Owner of the new food
        food_id: Explicit id; derived from the name when absent
        food_type: Food classification
        is_public: Whether other users can see the food

    Raises:
        CoachingInputError: If name/unit are blank or any macro is invalid
    """
    name = name.strip()
    unit = unit.strip()
    if not name or not unit:
        raise CoachingInputError("Name and unit are required")

    values = {axis.value: parse_number(macros.get(axis.value)) for axis in MacroAxis}
    if any(value is None or value < 0 for value in values.values()):
        raise CoachingInputError("Invalid macros")

    try:
        kind = FoodType(food_type)
    except ValueError:
        raise CoachingInputError(f"Unknown food type: {food_type}") from None

    return Food(
        id=slugify(food_id or name),
        owner_id=owner_id,
        is_public=is_public,
        food_name=name,
        unit=unit,
        type=kind,
        **values,
    )


def build_exercise(
    name: str,
    category: str,
    muscles: str,
    owner_id: str,
    exercise_id: str | None = None,
    equipment: str | None = None,
    is_public: bool = False,
) -> Exercise:
    """Validate an exercise form and build the Exercise to persist.

    Raises:
        CoachingInputError: If the name is blank or the category is unknown
    """
    name = name.strip()
    if not name:
        raise CoachingInputError("Name is required")
    try:
        kind = ExerciseCategory(category)
    except ValueError:
        raise CoachingInputError(f"Unknown category: {category}") from None

    return Exercise(
        id=slugify(exercise_id or name),
        owner_id=owner_id,
        is_public=is_public,
        name=name,
        category=kind,
        muscles=parse_muscles(muscles),
        equipment=equipment or None,
    )
