"""Training Sequencing - next session, session recording and plan templates.

All functions are pure: same input always produces same output, no side effects.
Time and id generation are passed in by the caller.
"""

from datetime import date, datetime
from typing import Callable

from .catalog import parse_number, round_half_up
from .errors import CoachingInputError
from .models import (
    PerformanceInput,
    PlanStatus,
    TemplatePayload,
    TemplatePlan,
    TrainingBlock,
    TrainingPlan,
    TrainingSession,
    TrainingTemplate,
    WorkoutLog,
)


def default_plan(plans: list[TrainingPlan]) -> TrainingPlan | None:
    """The active plan, else the first plan listed (newest first)."""
    for plan in plans:
        if plan.status == PlanStatus.ACTIVE:
            return plan
    return plans[0] if plans else None


def sort_sessions(sessions: list[TrainingSession]) -> list[TrainingSession]:
    """Order sessions by session_order, breaking ties by id."""
    return sorted(sessions, key=lambda s: (s.session_order, s.id or ""))


def latest_log(logs: list[WorkoutLog]) -> WorkoutLog | None:
    """Return the most recently completed log, or None.

    Logs without a completion timestamp sort after every timestamped log.
    """
    if not logs:
        return None
    stamped = [log for log in logs if log.completed_at is not None]
    if not stamped:
        return logs[0]
    return max(stamped, key=lambda log: log.completed_at)


def next_session(
    sessions: list[TrainingSession], last_log: WorkoutLog | None
) -> TrainingSession | None:
    """Determine the next prescribed session.

    Sessions form a cycle ordered by session_order. With no history (or a last
    log without a session order) the first session is next. Otherwise the first
    session whose order is strictly greater than the last logged order is next,
    wrapping to the first session once the cycle is complete.

    Args:
        sessions: Sessions of one plan, in any order
        last_log: Most recently completed workout log for the plan

    Returns:
        The next session, or None if the plan has no sessions
    """
    ordered = sort_sessions(sessions)
    if not ordered:
        return None
    if last_log is None or not last_log.session_order:
        return ordered[0]

    for session in ordered:
        if session.session_order > last_log.session_order:
            return session
    return ordered[0]


def build_session_logs(
    session: TrainingSession,
    inputs: list[PerformanceInput | None],
    client_id: str,
    plan_id: str,
    today: date,
    completed_at: datetime,
) -> list[WorkoutLog]:
    """Build workout log rows for a completed session.

    Each prescribed exercise is paired with the input at the same position.
    A row is kept only when both sets and reps are present and positive; other
    rows are dropped silently.

    Args:
        session: The session being completed
        inputs: Actual performance, one entry per prescribed exercise
        client_id: Client who trained
        plan_id: Plan the session belongs to
        today: Date to record
        completed_at: Completion timestamp shared by every row

    Returns:
        Rows to insert together as one batch

    Raises:
        CoachingInputError: If no exercise has valid sets and reps
    """
    rows = []
    for index, exercise in enumerate(session.exercises):
        entry = inputs[index] if index < len(inputs) else None
        if entry is None:
            continue

        sets = parse_number(entry.sets)
        reps = parse_number(entry.reps)
        if not sets or not reps or sets <= 0 or reps <= 0:
            continue

        rows.append(
            WorkoutLog(
                client_id=client_id,
                plan_id=plan_id,
                session_id=session.id,
                session_order=session.session_order,
                exercise_id=exercise.exercise_id,
                exercise_name=exercise.name,
                sets=round_half_up(sets),
                reps=round_half_up(reps),
                load=parse_number(entry.load) or 0,
                rpe=parse_number(entry.rpe),
                notes=entry.notes,
                date=today,
                completed_at=completed_at,
            )
        )

    if not rows:
        raise CoachingInputError("Complete at least one exercise")
    return rows


# ==================== Templates ====================


def snapshot_plan(
    plan: TrainingPlan,
    blocks: list[TrainingBlock],
    sessions: list[TrainingSession],
) -> TemplatePayload:
    """Capture a plan with its blocks and sessions as a template payload."""
    return TemplatePayload(
        plan=TemplatePlan(name=plan.name, notes=plan.notes, status=plan.status),
        blocks=list(blocks),
        sessions=list(sessions),
    )


def instantiate_template(
    template: TrainingTemplate,
    client_id: str,
    coach_id: str | None,
    new_id: Callable[[str], str],
) -> tuple[TrainingPlan, list[TrainingBlock], list[TrainingSession]]:
    """Create a fresh draft plan for a client from a training template.

    Block ids are remapped to new ids and sessions follow their block. A
    session whose block is not in the template keeps its original block id.

    Args:
        template: Template to apply
        client_id: Client who receives the plan
        coach_id: Coach applying the template, if any
        new_id: Returns a new row id for the given entity name

    Returns:
        Tuple of (plan, blocks, sessions), all with ids assigned
    """
    plan = TrainingPlan(
        id=new_id("training_plans"),
        client_id=client_id,
        coach_id=coach_id,
        name=template.title,
        status=PlanStatus.DRAFT,
        notes=template.description,
    )

    block_ids: dict[str, str] = {}
    blocks = []
    for block in template.payload.blocks:
        block_id = new_id("training_blocks")
        if block.id:
            block_ids[block.id] = block_id
        blocks.append(
            block.model_copy(update={"id": block_id, "plan_id": plan.id, "client_id": client_id})
        )

    sessions = []
    for session in template.payload.sessions:
        block_id = block_ids.get(session.block_id or "", session.block_id)
        sessions.append(
            session.model_copy(
                update={
                    "id": new_id("training_sessions"),
                    "plan_id": plan.id,
                    "block_id": block_id,
                    "client_id": client_id,
                }
            )
        )

    return plan, blocks, sessions
