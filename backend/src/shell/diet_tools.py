"""Diet Tools - foods, food logs, macro targets and macro splits."""

import logging
from datetime import date, datetime

from ..core.capabilities import Capability
from ..core.catalog import build_food, parse_number
from ..core.errors import CoachingInputError
from ..core.macros import build_food_log, calculate_daily_summary, solve_quantity
from ..core.models import (
    ClientMacroSplit,
    Food,
    FoodLog,
    MacroAxis,
    MacroSplitTemplate,
    MacroTarget,
    MealSlot,
    Profile,
)
from ..core.splits import allocate_split, split_axis_totals
from ..core.transfer import (
    dump_rows,
    food_from_row,
    food_log_from_row,
    load_rows,
    target_from_row,
)
from .mcp_server import (
    CLIENT_MACRO_SPLITS,
    FOOD_LOGS,
    FOODS,
    MACRO_SPLIT_TEMPLATES,
    MACRO_TARGETS,
    TOOL_ERRORS,
    capabilities_for,
    current_profile,
    get_store,
    managed_client,
    mcp,
    viewing_client,
)
from .store import Write, load_models, natural_key, to_row


logger = logging.getLogger(__name__)


def parse_day(date_str: str | None) -> date:
    """Parse a YYYY-MM-DD date, defaulting to today."""
    if not date_str:
        return date.today()
    try:
        return date.fromisoformat(date_str)
    except ValueError:
        raise CoachingInputError("Invalid date format. Use YYYY-MM-DD.") from None


def _load_target(client_id: str, day: date) -> MacroTarget | None:
    rows = get_store().query(
        MACRO_TARGETS,
        [("client_id", "==", client_id), ("date", "==", day.isoformat())],
        limit=1,
    )
    targets = load_models(MacroTarget, rows)
    return targets[0] if targets else None


def _load_logs(client_id: str, day: date) -> list[FoodLog]:
    rows = get_store().query(
        FOOD_LOGS,
        [("client_id", "==", client_id), ("date", "==", day.isoformat())],
        order_by="created_at",
        descending=True,
    )
    return load_models(FoodLog, rows)


def _active_template(client_id: str) -> MacroSplitTemplate | None:
    store = get_store()
    rows = store.query(
        CLIENT_MACRO_SPLITS, [("client_id", "==", client_id), ("active", "==", True)], limit=1
    )
    if not rows:
        return None
    template_row = store.get(MACRO_SPLIT_TEMPLATES, rows[0]["template_id"])
    return MacroSplitTemplate.model_validate(template_row) if template_row else None


def _visible_foods(profile: Profile, active_client: str | None) -> list[tuple[Food, bool]]:
    """Foods the profile may view, each with whether it may be edited."""
    # Firestore cannot OR owner and visibility filters, so filter in memory
    foods = load_models(Food, get_store().query(FOODS, order_by="food_name"))
    visible = []
    for food in foods:
        granted = capabilities_for(profile, food.owner_id, active_client, food.is_public)
        if Capability.VIEW in granted:
            visible.append((food, Capability.EDIT in granted))
    return visible


# ==================== Food Catalog ====================


@mcp.tool()
def list_foods(query: str | None = None, client_id: str | None = None) -> dict:
    """List foods visible to the user, optionally filtered by name.

    Args:
        query: Case-insensitive substring of the food name
        client_id: Viewing client (coaches)

    Returns:
        Foods with per-unit macros and whether the user can edit each one
    """
    profile = current_profile()
    try:
        active_client = managed_client(profile, client_id)
        foods = _visible_foods(profile, active_client)
    except TOOL_ERRORS as e:
        return {"error": str(e)}

    needle = (query or "").lower()
    return {
        "foods": [
            {**food.model_dump(mode="json"), "can_edit": can_edit}
            for food, can_edit in foods
            if needle in food.food_name.lower()
        ]
    }


@mcp.tool()
def save_food(
    name: str,
    unit: str,
    kcal: float | str,
    p: float | str,
    c: float | str,
    f: float | str,
    fiber: float | str,
    food_type: str = "mixed",
    is_public: bool = False,
    food_id: str | None = None,
    client_id: str | None = None,
) -> dict:
    """Create or update a food. Macros are per one unit.

    Coaches working with a client create the food on the client's behalf.

    Args:
        name: Display name (e.g., "Rice")
        unit: Unit the macros refer to (e.g., "g", "100g", "slice")
        kcal: Energy per unit
        p: Protein grams per unit
        c: Carbohydrate grams per unit
        f: Fat grams per unit
        fiber: Fiber grams per unit
        food_type: mixed, protein, carb or fat
        is_public: Share with every user
        food_id: Id of the food to edit; derived from the name for new foods
        client_id: Viewing client (coaches)

    Returns:
        The saved food
    """
    profile = current_profile()
    store = get_store()
    try:
        active_client = managed_client(profile, client_id)
        food = build_food(
            name,
            unit,
            {"kcal": kcal, "p": p, "c": c, "f": f, "fiber": fiber},
            owner_id=active_client or profile.id,
            food_id=food_id,
            food_type=food_type,
            is_public=is_public,
        )

        existing = store.get(FOODS, food.id)
        if existing is not None:
            current = Food.model_validate(existing)
            granted = capabilities_for(profile, current.owner_id, active_client)
            if Capability.EDIT not in granted:
                return {"error": "You cannot edit this food."}
            food = food.model_copy(update={"owner_id": current.owner_id})

        store.upsert(FOODS, to_row(food), ("id",))
    except TOOL_ERRORS as e:
        return {"error": str(e)}

    return {"food": food.model_dump(mode="json"), "updated": existing is not None}


@mcp.tool()
def delete_food(food_id: str, client_id: str | None = None) -> dict:
    """Delete a food the user owns (or manages through the viewing client).

    Args:
        food_id: Id of the food
        client_id: Viewing client (coaches)

    Returns:
        Confirmation or error
    """
    profile = current_profile()
    store = get_store()
    try:
        active_client = managed_client(profile, client_id)
        row = store.get(FOODS, food_id)
        if row is None:
            return {"error": "Food not found."}
        food = Food.model_validate(row)
        if Capability.EDIT not in capabilities_for(profile, food.owner_id, active_client):
            return {"error": "You cannot delete this food."}
        store.delete(FOODS, food_id)
    except TOOL_ERRORS as e:
        return {"error": str(e)}

    return {"success": True}


# ==================== Food Logs ====================


@mcp.tool()
def log_food(
    food_id: str,
    meal: str = "breakfast",
    qty: float | str | None = None,
    macro: str | None = None,
    macro_amount: float | str | None = None,
    date_str: str | None = None,
    client_id: str | None = None,
) -> dict:
    """Log a quantity of food, or the quantity needed to reach a macro amount.

    Pass either qty, or macro plus macro_amount (inverse mode, e.g. macro="c",
    macro_amount=50 logs whatever quantity gives 50 g of carbohydrate).

    Args:
        food_id: Food to log
        meal: breakfast, lunch, dinner, snack or extra
        qty: Quantity in the food's unit
        macro: Macro to solve for: kcal, p, c, f or fiber
        macro_amount: Desired amount of that macro
        date_str: Date in YYYY-MM-DD format (defaults to today)
        client_id: Viewing client (coaches)

    Returns:
        The created log and the updated daily summary
    """
    profile = current_profile()
    store = get_store()
    try:
        client = viewing_client(profile, client_id)
        day = parse_day(date_str)
        try:
            meal_key = MealSlot(meal)
        except ValueError:
            raise CoachingInputError(f"Unknown meal: {meal}") from None

        row = store.get(FOODS, food_id)
        if row is None:
            raise CoachingInputError("Select a food")
        food = Food.model_validate(row)
        granted = capabilities_for(
            profile, food.owner_id, managed_client(profile, client_id), food.is_public
        )
        if Capability.VIEW not in granted:
            raise CoachingInputError("Select a food")

        quantity = parse_number(qty)
        if macro is not None:
            try:
                axis = MacroAxis(macro)
            except ValueError:
                raise CoachingInputError(f"Unknown macro: {macro}") from None
            quantity = solve_quantity(food, axis, parse_number(macro_amount))

        log = build_food_log(food, quantity, client, day, meal_key)
        log = log.model_copy(update={"created_at": datetime.utcnow()})
        created = store.insert(FOOD_LOGS, to_row(log))[0]
        logs = _load_logs(client, day)
        target = _load_target(client, day)
    except TOOL_ERRORS as e:
        return {"error": str(e)}

    summary = calculate_daily_summary(logs, target, day)
    return {"entry": created, "daily_summary": summary.model_dump(mode="json")}


@mcp.tool()
def delete_food_log(log_id: str, client_id: str | None = None) -> dict:
    """Delete a food log entry.

    Args:
        log_id: Id of the log entry
        client_id: Viewing client (coaches)

    Returns:
        Confirmation or error
    """
    profile = current_profile()
    store = get_store()
    try:
        client = viewing_client(profile, client_id)
        row = store.get(FOOD_LOGS, log_id)
        if row is None or row.get("client_id") != client:
            return {"error": "Entry not found."}
        store.delete(FOOD_LOGS, log_id)
    except TOOL_ERRORS as e:
        return {"error": str(e)}

    return {"success": True}


@mcp.tool()
def get_day(date_str: str | None = None, client_id: str | None = None) -> dict:
    """Get a day's food logs, totals, remaining macros and per-meal split.

    Args:
        date_str: Date in YYYY-MM-DD format (defaults to today)
        client_id: Viewing client (coaches)

    Returns:
        Entries, target, summary and meal allocations of the active split
    """
    profile = current_profile()
    try:
        client = viewing_client(profile, client_id)
        day = parse_day(date_str)
        logs = _load_logs(client, day)
        target = _load_target(client, day)
        template = _active_template(client)
    except TOOL_ERRORS as e:
        return {"error": str(e)}

    summary = calculate_daily_summary(logs, target, day)
    result = {
        "date": day.isoformat(),
        "entries": [log.model_dump(mode="json") for log in logs],
        "target": target.model_dump(mode="json") if target else None,
        "summary": summary.model_dump(mode="json"),
        "split": [],
    }
    if target is None:
        result["warning"] = "No macro target set for this day."
    if template and target:
        result["split_template"] = template.name
        result["split"] = [
            allocation.model_dump(mode="json") for allocation in allocate_split(template, target)
        ]
    return result


# ==================== Macro Targets ====================


@mcp.tool()
def set_macro_target(
    kcal: float | str,
    p: float | str,
    c: float | str,
    f: float | str,
    fiber: float | str,
    notes: str = "",
    date_str: str | None = None,
    client_id: str | None = None,
) -> dict:
    """Set the macro target for a day (replaces any existing target).

    Args:
        kcal: Energy target
        p: Protein grams
        c: Carbohydrate grams
        f: Fat grams
        fiber: Fiber grams
        notes: Free-text notes
        date_str: Date in YYYY-MM-DD format (defaults to today)
        client_id: Viewing client (coaches)

    Returns:
        The stored target
    """
    profile = current_profile()
    try:
        client = viewing_client(profile, client_id)
        day = parse_day(date_str)
        values = {"kcal": kcal, "p": p, "c": c, "f": f, "fiber": fiber}
        parsed = {key: parse_number(value) for key, value in values.items()}
        if any(value is None or value < 0 for value in parsed.values()):
            raise CoachingInputError("Invalid macros")

        target = MacroTarget(client_id=client, date=day, notes=notes, **parsed)
        stored = get_store().upsert(MACRO_TARGETS, to_row(target), ("client_id", "date"))
    except TOOL_ERRORS as e:
        return {"error": str(e)}

    return {"target": stored}


# ==================== Macro Splits ====================


@mcp.tool()
def list_split_templates(client_id: str | None = None) -> dict:
    """List macro split templates and which one is active for the client.

    Args:
        client_id: Viewing client (coaches)

    Returns:
        Templates with per-axis percentage totals and the active template id
    """
    profile = current_profile()
    try:
        client = viewing_client(profile, client_id)
        rows = get_store().query(MACRO_SPLIT_TEMPLATES, order_by="created_at", descending=True)
        templates = load_models(MacroSplitTemplate, rows)
        active = _active_template(client)
    except TOOL_ERRORS as e:
        return {"error": str(e)}

    return {
        "templates": [
            {
                **template.model_dump(mode="json"),
                "axis_totals": {
                    axis.value: total for axis, total in split_axis_totals(template).items()
                },
            }
            for template in templates
        ],
        "active_template_id": active.id if active else None,
    }


@mcp.tool()
def create_split_template(
    name: str,
    split: dict[str, dict[str, float]],
    goal: str | None = None,
) -> dict:
    """Create a macro split template (coaches only).

    Args:
        name: Template name (e.g., "Cut 4 meals")
        split: Meal slot -> percentage per macro, e.g.
            {"breakfast": {"kcal": 25, "p": 25, "c": 25, "f": 25, "fiber": 25}, ...}
        goal: Optional goal tag (e.g., "cut", "maint")

    Returns:
        The created template
    """
    profile = current_profile()
    if Capability.MANAGE_TEMPLATES not in capabilities_for(profile, None, None):
        return {"error": "Only coaches can create templates."}

    try:
        template = MacroSplitTemplate(
            name=name.strip(),
            goal=goal,
            meals_count=max(len(split), 1),
            split=split,
            created_by=profile.id,
            is_public=True,
            created_at=datetime.utcnow(),
        )
        created = get_store().insert(MACRO_SPLIT_TEMPLATES, to_row(template))[0]
    except TOOL_ERRORS as e:
        return {"error": str(e)}

    return {"template": created}


@mcp.tool()
def activate_split_template(template_id: str, client_id: str | None = None) -> dict:
    """Make a split template the client's active one.

    Any other active template for the client is deactivated in the same
    atomic write.

    Args:
        template_id: Template to activate
        client_id: Viewing client (coaches)

    Returns:
        The active template id
    """
    profile = current_profile()
    store = get_store()
    try:
        client = viewing_client(profile, client_id)
        if store.get(MACRO_SPLIT_TEMPLATES, template_id) is None:
            return {"error": "Template not found."}

        active_rows = store.query(
            CLIENT_MACRO_SPLITS, [("client_id", "==", client), ("active", "==", True)]
        )
        writes = [
            Write("update", CLIENT_MACRO_SPLITS, row["id"], {"active": False})
            for row in active_rows
            if row.get("template_id") != template_id
        ]
        chosen = to_row(ClientMacroSplit(client_id=client, template_id=template_id, active=True))
        chosen["id"] = natural_key(chosen, ("client_id", "template_id"))
        writes.append(Write("set", CLIENT_MACRO_SPLITS, chosen["id"], chosen))
        store.commit(writes)
    except TOOL_ERRORS as e:
        return {"error": str(e)}

    logger.info("Activated split %s for %s", template_id, client[:8])
    return {"active_template_id": template_id}


# ==================== Import / Export ====================


@mcp.tool()
def export_diet_data(
    kind: str,
    fmt: str = "json",
    date_str: str | None = None,
    client_id: str | None = None,
) -> dict:
    """Export foods, the day's target or the day's logs as JSON or CSV text.

    Args:
        kind: foods, targets or logs
        fmt: json or csv
        date_str: Date in YYYY-MM-DD format (defaults to today)
        client_id: Viewing client (coaches)

    Returns:
        Suggested filename and file content
    """
    if kind not in ("foods", "targets", "logs"):
        return {"error": "kind must be foods, targets or logs."}

    profile = current_profile()
    try:
        day = parse_day(date_str)
        if kind == "foods":
            items = [food for food, _ in _visible_foods(profile, managed_client(profile, client_id))]
        elif kind == "targets":
            target = _load_target(viewing_client(profile, client_id), day)
            items = [target] if target else []
        else:
            items = _load_logs(viewing_client(profile, client_id), day)
        content = dump_rows(items, fmt)
    except TOOL_ERRORS as e:
        return {"error": str(e)}

    return {"filename": f"{kind}-{day.isoformat()}.{fmt}", "content": content}


@mcp.tool()
def import_diet_data(
    kind: str,
    filename: str,
    content: str,
    date_str: str | None = None,
    client_id: str | None = None,
) -> dict:
    """Import foods, targets or logs from JSON or CSV text.

    Numbers may use a decimal comma. Rows without a date use date_str. All
    rows are written together or not at all.

    Args:
        kind: foods, targets or logs
        filename: Original file name; ".json" selects JSON, anything else CSV
        content: File content
        date_str: Default date in YYYY-MM-DD format (defaults to today)
        client_id: Viewing client (coaches)

    Returns:
        Number of imported rows
    """
    if kind not in ("foods", "targets", "logs"):
        return {"error": "kind must be foods, targets or logs."}

    profile = current_profile()
    store = get_store()
    try:
        rows = load_rows(content, filename)
        day = parse_day(date_str)

        if kind == "foods":
            active_client = managed_client(profile, client_id)
            owner = active_client or profile.id
            writes = []
            for food in (food_from_row(row, owner) for row in rows):
                existing = store.get(FOODS, food.id)
                if existing is not None:
                    current_owner = existing.get("owner_id")
                    if Capability.EDIT not in capabilities_for(profile, current_owner, active_client):
                        raise CoachingInputError(f"You cannot edit food: {food.id}")
                    food = food.model_copy(update={"owner_id": current_owner})
                writes.append(Write("set", FOODS, food.id, to_row(food)))
        elif kind == "targets":
            client = viewing_client(profile, client_id)
            writes = []
            for target in (target_from_row(row, client, day) for row in rows):
                target_row = to_row(target)
                target_row["id"] = natural_key(target_row, ("client_id", "date"))
                writes.append(Write("set", MACRO_TARGETS, target_row["id"], target_row))
        else:
            client = viewing_client(profile, client_id)
            now = datetime.utcnow()
            writes = []
            for log in (food_log_from_row(row, client, day) for row in rows):
                log_row = to_row(log.model_copy(update={"created_at": now}))
                log_row["id"] = store.new_key(FOOD_LOGS)
                writes.append(Write("set", FOOD_LOGS, log_row["id"], log_row))

        store.commit(writes)
    except TOOL_ERRORS as e:
        return {"error": str(e)}

    logger.info("Imported %d %s rows for %s", len(writes), kind, profile.id[:8])
    return {"success": True, "imported": len(writes)}
