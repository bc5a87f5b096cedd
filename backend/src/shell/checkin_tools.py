"""Check-in Tools - weekly body metrics and training adherence."""

import logging

from ..core.catalog import parse_number, round_half_up
from ..core.models import Checkin, PlanStatus, TrainingPlan, TrainingSession, WorkoutLog
from ..core.reports import start_of_week, weekly_adherence
from .diet_tools import parse_day
from .mcp_server import (
    CHECKINS,
    TOOL_ERRORS,
    TRAINING_PLANS,
    TRAINING_SESSIONS,
    WORKOUT_LOGS,
    current_profile,
    get_store,
    mcp,
    viewing_client,
)
from .store import load_models, to_row


logger = logging.getLogger(__name__)

CHECKIN_LIMIT = 12


def _planned_sessions(client_id: str) -> int:
    """Number of sessions in the client's active plan (0 without one)."""
    store = get_store()
    plans = load_models(
        TrainingPlan,
        store.query(
            TRAINING_PLANS,
            [("client_id", "==", client_id), ("status", "==", PlanStatus.ACTIVE.value)],
        ),
    )
    if not plans:
        return 0
    rows = store.query(TRAINING_SESSIONS, [("plan_id", "==", plans[0].id)])
    return len(load_models(TrainingSession, rows))


@mcp.tool()
def save_checkin(
    week_start: str | None = None,
    weight: float | str | None = None,
    waist: float | str | None = None,
    sleep: float | str | None = None,
    steps: float | str | None = None,
    stress: float | str | None = None,
    hunger: float | str | None = None,
    energy: float | str | None = None,
    performance: float | str | None = None,
    notes: str = "",
    client_id: str | None = None,
) -> dict:
    """Save the weekly check-in. Saving again for the same week replaces it.

    Args:
        week_start: Any day of the week (YYYY-MM-DD); normalised to Monday.
            Defaults to this week.
        weight: Body weight
        waist: Waist circumference
        sleep: Average hours of sleep
        steps: Average daily steps
        stress: Stress rating
        hunger: Hunger rating
        energy: Energy rating
        performance: Training performance rating
        notes: Free-text notes
        client_id: Viewing client (coaches)

    Returns:
        The saved check-in
    """
    profile = current_profile()
    try:
        client = viewing_client(profile, client_id)
        parsed_steps = parse_number(steps)
        checkin = Checkin(
            client_id=client,
            week_start=start_of_week(parse_day(week_start)),
            weight=parse_number(weight),
            waist=parse_number(waist),
            sleep=parse_number(sleep),
            steps=round_half_up(parsed_steps) if parsed_steps is not None else None,
            stress=parse_number(stress),
            hunger=parse_number(hunger),
            energy=parse_number(energy),
            performance=parse_number(performance),
            notes=notes,
        )
        saved = get_store().upsert(CHECKINS, to_row(checkin), ("client_id", "week_start"))
    except TOOL_ERRORS as e:
        return {"error": str(e)}

    logger.info("Saved check-in %s for %s", checkin.week_start, client[:8])
    return {"checkin": saved}


@mcp.tool()
def list_checkins(client_id: str | None = None) -> dict:
    """List recent check-ins, newest first, with training adherence per week.

    Adherence compares sessions completed that week with the number of
    sessions in the active plan; it shows "-" when no plan is active.

    Args:
        client_id: Viewing client (coaches)

    Returns:
        Check-ins with an adherence summary like "3/4 (75%)"
    """
    profile = current_profile()
    store = get_store()
    try:
        client = viewing_client(profile, client_id)
        checkins = load_models(
            Checkin,
            store.query(
                CHECKINS,
                [("client_id", "==", client)],
                order_by="week_start",
                descending=True,
                limit=CHECKIN_LIMIT,
            ),
        )
        planned = _planned_sessions(client)
        logs = load_models(
            WorkoutLog,
            store.query(WORKOUT_LOGS, [("client_id", "==", client)]),
        ) if checkins and planned else []
    except TOOL_ERRORS as e:
        return {"error": str(e)}

    result = []
    for checkin in checkins:
        adherence = weekly_adherence(logs, checkin.week_start, planned)
        result.append({
            **checkin.model_dump(mode="json"),
            "adherence": adherence.describe() if adherence else "-",
        })
    return {"checkins": result}
