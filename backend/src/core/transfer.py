"""Import/Export - JSON and CSV row codecs for foods, targets and food logs.

Rows are flat dicts shaped like the stored entities. Parsing never touches
the store; the shell writes whatever these functions return.
"""

import csv
import io
import json
from datetime import date
from typing import Any, Iterable

from pydantic import BaseModel

from .catalog import parse_number, slugify
from .errors import CoachingInputError
from .models import Food, FoodLog, FoodType, MacroAxis, MacroTarget, MealSlot


def parse_csv(text: str) -> list[dict[str, str]]:
    """Parse CSV text with a header row into string rows.

    Comma delimited, double-quote escaped; quoted values may contain commas,
    quotes and newlines. Empty lines are skipped and short rows are padded
    with empty strings.
    """
    reader = csv.reader(io.StringIO(text, newline=""))
    records = [record for record in reader if record]
    if not records:
        return []

    headers = [header.strip() for header in records[0]]
    return [
        {header: record[index] if index < len(record) else "" for index, header in enumerate(headers)}
        for record in records[1:]
    ]


def stringify_csv(rows: list[dict[str, Any]], columns: list[str] | None = None) -> str:
    """Render rows as CSV text with a header row.

    Columns default to every key seen, in first-seen order. None renders as an
    empty cell; cells containing a comma, quote or newline are quoted.
    """
    if not columns:
        columns = []
        for row in rows:
            for key in row:
                if key not in columns:
                    columns.append(key)

    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(columns)
    for row in rows:
        writer.writerow(["" if row.get(column) is None else row.get(column) for column in columns])
    return buffer.getvalue().rstrip("\n")


def load_rows(text: str, filename: str) -> list[dict[str, Any]]:
    """Decode an uploaded file: `.json` files hold an array, anything else is CSV.

    Raises:
        CoachingInputError: If the file cannot be decoded
    """
    if filename.lower().endswith(".json"):
        try:
            rows = json.loads(text)
        except json.JSONDecodeError:
            raise CoachingInputError("Invalid file") from None
        if not isinstance(rows, list) or not all(isinstance(row, dict) for row in rows):
            raise CoachingInputError("Invalid file")
        return rows

    try:
        return parse_csv(text)
    except csv.Error:
        raise CoachingInputError("Invalid file") from None


def dump_rows(items: Iterable[BaseModel], fmt: str) -> str:
    """Encode entities as JSON (indented) or CSV text."""
    rows = [item.model_dump(mode="json") for item in items]
    if fmt == "json":
        return json.dumps(rows, indent=2)
    if fmt == "csv":
        return stringify_csv(rows)
    raise CoachingInputError(f"Unknown format: {fmt}")


def _macros(row: dict[str, Any]) -> dict[str, float]:
    return {axis.value: parse_number(row.get(axis.value)) or 0 for axis in MacroAxis}


def _is_true(value: Any) -> bool:
    return value is True or value == 1 or str(value).strip().lower() in ("true", "1")


def food_from_row(row: dict[str, Any], owner_id: str) -> Food:
    """Normalise an imported food row. `name` is accepted for `food_name`."""
    name = row.get("food_name") or row.get("name") or ""
    kind = row.get("type") or FoodType.MIXED.value
    return Food(
        id=slugify(row.get("id") or name or "food"),
        owner_id=owner_id,
        is_public=_is_true(row.get("is_public")),
        food_name=name,
        unit=row.get("unit") or "",
        type=kind,
        **_macros(row),
    )


def target_from_row(row: dict[str, Any], client_id: str, default_date: date) -> MacroTarget:
    """Normalise an imported macro target row for the viewing client."""
    return MacroTarget(
        client_id=client_id,
        date=row.get("date") or default_date,
        notes=row.get("notes") or None,
        **_macros(row),
    )


def food_log_from_row(row: dict[str, Any], client_id: str, default_date: date) -> FoodLog:
    """Normalise an imported food log row. Macros are taken as given."""
    return FoodLog(
        client_id=client_id,
        date=row.get("date") or default_date,
        meal_key=row.get("meal_key") or MealSlot.EXTRA.value,
        food_id=row.get("food_id") or row.get("food") or "",
        qty=parse_number(row.get("qty")) or 0,
        unit=row.get("unit") or "",
        **_macros(row),
    )
