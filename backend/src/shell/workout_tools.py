"""Workout Tools - plans, blocks, sessions, exercises, logging and analytics."""

import logging
from datetime import date, datetime

from ..core.capabilities import Capability
from ..core.catalog import build_exercise, parse_number, round_half_up
from ..core.errors import CoachingInputError
from ..core.models import (
    Exercise,
    PerformanceInput,
    Profile,
    SessionExercise,
    TrainingBlock,
    TrainingPlan,
    TrainingSession,
    TrainingTemplate,
    WorkoutLog,
)
from ..core.reports import personal_records, rpe_trend, volume_by_muscle
from ..core.training import (
    build_session_logs,
    default_plan,
    instantiate_template,
    latest_log,
    next_session,
    snapshot_plan,
    sort_sessions,
)
from .mcp_server import (
    EXERCISES,
    TOOL_ERRORS,
    TRAINING_BLOCKS,
    TRAINING_PLANS,
    TRAINING_SESSIONS,
    TRAINING_TEMPLATES,
    WORKOUT_LOGS,
    capabilities_for,
    current_profile,
    get_store,
    managed_client,
    mcp,
    viewing_client,
)
from .store import Write, load_models, to_row


logger = logging.getLogger(__name__)

# History window used for sequencing and analytics
LOG_LIMIT = 200


def _load_plans(client_id: str) -> list[TrainingPlan]:
    rows = get_store().query(
        TRAINING_PLANS, [("client_id", "==", client_id)], order_by="created_at", descending=True
    )
    return load_models(TrainingPlan, rows)


def _load_plan(client_id: str, plan_id: str | None) -> TrainingPlan:
    """Load a plan of the client, or the client's default plan.

    Raises:
        CoachingInputError: If the plan does not exist or belongs to another client
    """
    if plan_id is None:
        plan = default_plan(_load_plans(client_id))
        if plan is None:
            raise CoachingInputError("No training plan yet")
        return plan

    row = get_store().get(TRAINING_PLANS, plan_id)
    if row is None or row.get("client_id") != client_id:
        raise CoachingInputError("Plan not found")
    return TrainingPlan.model_validate(row)


def _load_blocks(plan_id: str) -> list[TrainingBlock]:
    rows = get_store().query(TRAINING_BLOCKS, [("plan_id", "==", plan_id)], order_by="order")
    return load_models(TrainingBlock, rows)


def _load_sessions(plan_id: str) -> list[TrainingSession]:
    rows = get_store().query(TRAINING_SESSIONS, [("plan_id", "==", plan_id)])
    return sort_sessions(load_models(TrainingSession, rows))


def _load_logs(client_id: str, plan_id: str | None = None) -> list[WorkoutLog]:
    filters = [("client_id", "==", client_id)]
    if plan_id:
        filters.append(("plan_id", "==", plan_id))
    rows = get_store().query(
        WORKOUT_LOGS, filters, order_by="completed_at", descending=True, limit=LOG_LIMIT
    )
    return load_models(WorkoutLog, rows)


def _owned_row(entity: str, key: str, client_id: str) -> dict:
    row = get_store().get(entity, key)
    if row is None or row.get("client_id") != client_id:
        raise CoachingInputError("Not found")
    return row


def _visible_exercises(profile: Profile, active_client: str | None) -> list[tuple[Exercise, bool]]:
    exercises = load_models(Exercise, get_store().query(EXERCISES, order_by="name"))
    visible = []
    for exercise in exercises:
        granted = capabilities_for(profile, exercise.owner_id, active_client, exercise.is_public)
        if Capability.VIEW in granted:
            visible.append((exercise, Capability.EDIT in granted))
    return visible


def _logged_exercises(logs: list[WorkoutLog]) -> list[Exercise]:
    """Catalog entries for every exercise in the logs, whoever owns them."""
    store = get_store()
    exercise_ids = sorted({log.exercise_id for log in logs if log.exercise_id})
    rows = [store.get(EXERCISES, key) for key in exercise_ids]
    return load_models(Exercise, [row for row in rows if row is not None])


# ==================== Plans ====================


@mcp.tool()
def list_plans(client_id: str | None = None) -> dict:
    """List the client's training plans, newest first.

    Args:
        client_id: Viewing client (coaches)

    Returns:
        Plans and the id of the default (active) plan
    """
    profile = current_profile()
    try:
        plans = _load_plans(viewing_client(profile, client_id))
    except TOOL_ERRORS as e:
        return {"error": str(e)}

    selected = default_plan(plans)
    return {
        "plans": [plan.model_dump(mode="json") for plan in plans],
        "default_plan_id": selected.id if selected else None,
    }


@mcp.tool()
def get_plan(plan_id: str | None = None, client_id: str | None = None) -> dict:
    """Get a plan with its blocks and sessions (defaults to the active plan).

    Args:
        plan_id: Plan to show
        client_id: Viewing client (coaches)

    Returns:
        Plan, blocks ordered by order, sessions ordered by session_order
    """
    profile = current_profile()
    try:
        plan = _load_plan(viewing_client(profile, client_id), plan_id)
        blocks = _load_blocks(plan.id)
        sessions = _load_sessions(plan.id)
    except TOOL_ERRORS as e:
        return {"error": str(e)}

    return {
        "plan": plan.model_dump(mode="json"),
        "blocks": [block.model_dump(mode="json") for block in blocks],
        "sessions": [session.model_dump(mode="json") for session in sessions],
    }


@mcp.tool()
def save_plan(
    name: str,
    status: str = "draft",
    notes: str = "",
    plan_id: str | None = None,
    client_id: str | None = None,
) -> dict:
    """Create or update a training plan.

    Args:
        name: Plan name
        status: draft, active or paused
        notes: Free-text notes
        plan_id: Plan to edit; omit to create
        client_id: Viewing client (coaches)

    Returns:
        The saved plan
    """
    profile = current_profile()
    store = get_store()
    try:
        client = viewing_client(profile, client_id)
        plan = TrainingPlan(
            client_id=client,
            coach_id=profile.id if profile.is_coach else None,
            name=name.strip(),
            status=status,
            notes=notes,
        )
        if plan_id:
            _owned_row(TRAINING_PLANS, plan_id, client)
            patch = to_row(plan)
            for key in ("id", "created_at"):
                patch.pop(key, None)
            store.update(TRAINING_PLANS, plan_id, patch)
            saved = {**patch, "id": plan_id}
        else:
            plan = plan.model_copy(update={"created_at": datetime.utcnow()})
            saved = store.insert(TRAINING_PLANS, to_row(plan))[0]
    except TOOL_ERRORS as e:
        return {"error": str(e)}

    return {"plan": saved}


@mcp.tool()
def delete_plan(plan_id: str, client_id: str | None = None) -> dict:
    """Delete a training plan.

    Args:
        plan_id: Plan to delete
        client_id: Viewing client (coaches)
    """
    profile = current_profile()
    try:
        _owned_row(TRAINING_PLANS, plan_id, viewing_client(profile, client_id))
        get_store().delete(TRAINING_PLANS, plan_id)
    except TOOL_ERRORS as e:
        return {"error": str(e)}
    return {"success": True}


# ==================== Blocks & Sessions ====================


@mcp.tool()
def save_block(
    plan_id: str,
    title: str,
    order: int | str = 1,
    weeks: int | str = 4,
    goal: str = "",
    notes: str = "",
    block_id: str | None = None,
    client_id: str | None = None,
) -> dict:
    """Create or update a training block (a phase of a plan).

    Args:
        plan_id: Plan the block belongs to
        title: Block title (e.g., "Hypertrophy")
        order: Position of the block in the plan (positive)
        weeks: Duration in weeks (positive)
        goal: Optional goal
        notes: Optional notes
        block_id: Block to edit; omit to create
        client_id: Viewing client (coaches)

    Returns:
        The saved block
    """
    profile = current_profile()
    store = get_store()
    try:
        client = viewing_client(profile, client_id)
        _owned_row(TRAINING_PLANS, plan_id, client)
        if not title.strip():
            raise CoachingInputError("Title is required")
        block = TrainingBlock(
            id=block_id,
            plan_id=plan_id,
            client_id=client,
            title=title.strip(),
            order=_positive_int(order, "Invalid order or weeks"),
            weeks=_positive_int(weeks, "Invalid order or weeks"),
            goal=goal,
            notes=notes,
        )
        if block_id:
            _owned_row(TRAINING_BLOCKS, block_id, client)
            store.update(TRAINING_BLOCKS, block_id, to_row(block))
            saved = to_row(block)
        else:
            saved = store.insert(TRAINING_BLOCKS, to_row(block))[0]
    except TOOL_ERRORS as e:
        return {"error": str(e)}

    return {"block": saved}


@mcp.tool()
def delete_block(block_id: str, client_id: str | None = None) -> dict:
    """Delete a training block.

    Args:
        block_id: Block to delete
        client_id: Viewing client (coaches)
    """
    profile = current_profile()
    try:
        _owned_row(TRAINING_BLOCKS, block_id, viewing_client(profile, client_id))
        get_store().delete(TRAINING_BLOCKS, block_id)
    except TOOL_ERRORS as e:
        return {"error": str(e)}
    return {"success": True}


def _positive_int(value: int | str, message: str) -> int:
    parsed = parse_number(value)
    if not parsed or parsed <= 0:
        raise CoachingInputError(message)
    return round_half_up(parsed)


@mcp.tool()
def save_session(
    plan_id: str,
    block_id: str,
    session_order: int | str,
    exercises: list[dict],
    session_label: str = "",
    focus: str = "",
    notes: str = "",
    session_id: str | None = None,
    client_id: str | None = None,
) -> dict:
    """Create or update a training session.

    session_order is global within the plan and drives which session is next.

    Args:
        plan_id: Plan the session belongs to
        block_id: Block the session belongs to
        session_order: Position in the plan's session cycle (positive)
        exercises: Prescriptions, e.g. [{"exercise_id": "bench_press", "sets": 3,
            "reps": 10, "rpe": 8, "rest": "90s"}]
        session_label: Label (e.g., "Upper A")
        focus: Optional focus
        notes: Optional notes
        session_id: Session to edit; omit to create
        client_id: Viewing client (coaches)

    Returns:
        The saved session
    """
    profile = current_profile()
    store = get_store()
    try:
        client = viewing_client(profile, client_id)
        _owned_row(TRAINING_PLANS, plan_id, client)
        block = TrainingBlock.model_validate(_owned_row(TRAINING_BLOCKS, block_id, client))

        names = {
            exercise.id: exercise.name
            for exercise, _ in _visible_exercises(profile, managed_client(profile, client_id))
        }
        prescriptions = []
        for item in exercises:
            prescription = SessionExercise.model_validate(item)
            if not prescription.name:
                prescription.name = names.get(prescription.exercise_id, prescription.exercise_id)
            prescriptions.append(prescription)

        session = TrainingSession(
            id=session_id,
            plan_id=plan_id,
            block_id=block_id,
            client_id=client,
            block_title=block.title,
            session_order=_positive_int(session_order, "Invalid order"),
            session_label=session_label,
            focus=focus,
            notes=notes,
            exercises=prescriptions,
        )
        if session_id:
            _owned_row(TRAINING_SESSIONS, session_id, client)
            store.update(TRAINING_SESSIONS, session_id, to_row(session))
            saved = to_row(session)
        else:
            saved = store.insert(TRAINING_SESSIONS, to_row(session))[0]
    except TOOL_ERRORS as e:
        return {"error": str(e)}

    return {"session": saved}


@mcp.tool()
def delete_session(session_id: str, client_id: str | None = None) -> dict:
    """Delete a training session.

    Args:
        session_id: Session to delete
        client_id: Viewing client (coaches)
    """
    profile = current_profile()
    try:
        _owned_row(TRAINING_SESSIONS, session_id, viewing_client(profile, client_id))
        get_store().delete(TRAINING_SESSIONS, session_id)
    except TOOL_ERRORS as e:
        return {"error": str(e)}
    return {"success": True}


# ==================== Exercises ====================


@mcp.tool()
def list_exercises(client_id: str | None = None) -> dict:
    """List exercises visible to the user.

    Args:
        client_id: Viewing client (coaches)

    Returns:
        Exercises with category, muscles and whether the user can edit each one
    """
    profile = current_profile()
    try:
        exercises = _visible_exercises(profile, managed_client(profile, client_id))
    except TOOL_ERRORS as e:
        return {"error": str(e)}

    return {
        "exercises": [
            {**exercise.model_dump(mode="json"), "can_edit": can_edit}
            for exercise, can_edit in exercises
        ]
    }


@mcp.tool()
def save_exercise(
    name: str,
    category: str = "full",
    muscles: str = "",
    equipment: str = "",
    is_public: bool = False,
    exercise_id: str | None = None,
    client_id: str | None = None,
) -> dict:
    """Create or update an exercise.

    Args:
        name: Exercise name (e.g., "Bench Press")
        category: pull, push, legs, core or full
        muscles: Comma separated muscles (e.g., "chest, triceps")
        equipment: Optional equipment tag
        is_public: Share with every user
        exercise_id: Id of the exercise to edit; derived from the name for new ones
        client_id: Viewing client (coaches)

    Returns:
        The saved exercise
    """
    profile = current_profile()
    store = get_store()
    try:
        active_client = managed_client(profile, client_id)
        exercise = build_exercise(
            name,
            category,
            muscles,
            owner_id=active_client or profile.id,
            exercise_id=exercise_id,
            equipment=equipment,
            is_public=is_public,
        )
        existing = store.get(EXERCISES, exercise.id)
        if existing is not None:
            current = Exercise.model_validate(existing)
            if Capability.EDIT not in capabilities_for(profile, current.owner_id, active_client):
                return {"error": "You cannot edit this exercise."}
            exercise = exercise.model_copy(update={"owner_id": current.owner_id})
        store.upsert(EXERCISES, to_row(exercise), ("id",))
    except TOOL_ERRORS as e:
        return {"error": str(e)}

    return {"exercise": exercise.model_dump(mode="json")}


@mcp.tool()
def delete_exercise(exercise_id: str, client_id: str | None = None) -> dict:
    """Delete an exercise the user may edit.

    Args:
        exercise_id: Exercise to delete
        client_id: Viewing client (coaches)
    """
    profile = current_profile()
    store = get_store()
    try:
        active_client = managed_client(profile, client_id)
        row = store.get(EXERCISES, exercise_id)
        if row is None:
            return {"error": "Exercise not found."}
        exercise = Exercise.model_validate(row)
        if Capability.EDIT not in capabilities_for(profile, exercise.owner_id, active_client):
            return {"error": "You cannot delete this exercise."}
        store.delete(EXERCISES, exercise_id)
    except TOOL_ERRORS as e:
        return {"error": str(e)}
    return {"success": True}


# ==================== Logging ====================


@mcp.tool()
def get_next_session(plan_id: str | None = None, client_id: str | None = None) -> dict:
    """Show the next prescribed session of a plan (defaults to the active plan).

    Sessions cycle in session_order; after the last one the first comes again.

    Args:
        plan_id: Plan to use
        client_id: Viewing client (coaches)

    Returns:
        The plan id, next session and the most recent log
    """
    profile = current_profile()
    try:
        client = viewing_client(profile, client_id)
        plan = _load_plan(client, plan_id)
        sessions = _load_sessions(plan.id)
        last = latest_log(_load_logs(client, plan.id))
    except TOOL_ERRORS as e:
        return {"error": str(e)}

    upcoming = next_session(sessions, last)
    return {
        "plan_id": plan.id,
        "next_session": upcoming.model_dump(mode="json") if upcoming else None,
        "last_log": last.model_dump(mode="json") if last else None,
    }


@mcp.tool()
def record_session(
    performance: list[dict],
    plan_id: str | None = None,
    client_id: str | None = None,
) -> dict:
    """Record the next prescribed session as completed.

    Provide one entry per prescribed exercise, in order. Entries without
    positive sets and reps are skipped.

    Args:
        performance: Actual results, e.g. [{"sets": 3, "reps": 8, "load": "82,5",
            "rpe": 8, "notes": ""}, ...]
        plan_id: Plan to use (defaults to the active plan)
        client_id: Viewing client (coaches)

    Returns:
        Number of logged exercises and the session after this one
    """
    profile = current_profile()
    store = get_store()
    try:
        client = viewing_client(profile, client_id)
        plan = _load_plan(client, plan_id)
        sessions = _load_sessions(plan.id)
        session = next_session(sessions, latest_log(_load_logs(client, plan.id)))
        if session is None:
            raise CoachingInputError("The plan has no sessions")

        inputs = [PerformanceInput.model_validate(item) if item else None for item in performance]
        logs = build_session_logs(
            session, inputs, client, plan.id, date.today(), datetime.utcnow()
        )
        created = store.insert(WORKOUT_LOGS, [to_row(log) for log in logs])
    except TOOL_ERRORS as e:
        return {"error": str(e)}

    logger.info("Recorded session %s for %s", session.session_order, client[:8])
    upcoming = next_session(sessions, logs[0])
    return {
        "logged": len(created),
        "session_order": session.session_order,
        "next_session": upcoming.model_dump(mode="json") if upcoming else None,
    }


@mcp.tool()
def get_training_analytics(client_id: str | None = None) -> dict:
    """Personal records, weekly RPE trend and volume per muscle.

    Uses the most recent logs across every plan of the client.

    Args:
        client_id: Viewing client (coaches)

    Returns:
        Top 6 personal records, 4-week RPE trend and top 8 muscles by sets
    """
    profile = current_profile()
    try:
        client = viewing_client(profile, client_id)
        logs = _load_logs(client)
        exercises = _logged_exercises(logs)
    except TOOL_ERRORS as e:
        return {"error": str(e)}

    return {
        "personal_records": [r.model_dump(mode="json") for r in personal_records(logs)],
        "rpe_trend": [week.model_dump(mode="json") for week in rpe_trend(logs, date.today())],
        "volume_by_muscle": [v.model_dump(mode="json") for v in volume_by_muscle(logs, exercises)],
    }


# ==================== Templates ====================


@mcp.tool()
def list_training_templates() -> dict:
    """List training templates, newest first."""
    current_profile()
    try:
        rows = get_store().query(TRAINING_TEMPLATES, order_by="created_at", descending=True)
    except TOOL_ERRORS as e:
        return {"error": str(e)}

    return {
        "templates": [
            {
                "id": template.id,
                "title": template.title,
                "goal": template.goal,
                "level": template.level,
                "frequency": template.frequency,
                "sessions": len(template.payload.sessions),
            }
            for template in load_models(TrainingTemplate, rows)
        ]
    }


@mcp.tool()
def create_training_template(
    plan_id: str,
    title: str = "",
    goal: str = "",
    level: str = "",
    equipment: str = "",
    frequency: int | None = None,
    description: str = "",
    client_id: str | None = None,
) -> dict:
    """Save a client's plan, with its blocks and sessions, as a template (coaches only).

    Args:
        plan_id: Plan to capture
        title: Template title (defaults to the plan name)
        goal: Optional goal
        level: Optional level
        equipment: Optional equipment
        frequency: Sessions per week
        description: Optional description
        client_id: Viewing client (coaches)

    Returns:
        The created template id
    """
    profile = current_profile()
    if Capability.MANAGE_TEMPLATES not in capabilities_for(profile, None, None):
        return {"error": "Only coaches can create templates."}

    try:
        plan = _load_plan(viewing_client(profile, client_id), plan_id)
        payload = snapshot_plan(plan, _load_blocks(plan.id), _load_sessions(plan.id))
        template = TrainingTemplate(
            title=title or plan.name,
            goal=goal,
            level=level,
            equipment=equipment,
            frequency=frequency,
            description=description,
            created_by=profile.id,
            is_public=True,
            payload=payload,
            created_at=datetime.utcnow(),
        )
        created = get_store().insert(TRAINING_TEMPLATES, to_row(template))[0]
    except TOOL_ERRORS as e:
        return {"error": str(e)}

    return {"template_id": created["id"], "title": template.title}


@mcp.tool()
def apply_training_template(template_id: str, client_id: str | None = None) -> dict:
    """Create a new draft plan for the client from a template.

    The plan, its blocks and its sessions are written in one atomic batch.

    Args:
        template_id: Template to apply
        client_id: Viewing client (coaches)

    Returns:
        The new plan id and how many blocks and sessions were created
    """
    profile = current_profile()
    store = get_store()
    try:
        client = viewing_client(profile, client_id)
        row = store.get(TRAINING_TEMPLATES, template_id)
        if row is None:
            return {"error": "Template not found."}
        template = TrainingTemplate.model_validate(row)

        plan, blocks, sessions = instantiate_template(
            template,
            client,
            profile.id if profile.is_coach else None,
            store.new_key,
        )
        plan = plan.model_copy(update={"created_at": datetime.utcnow()})
        writes = [Write("set", TRAINING_PLANS, plan.id, to_row(plan))]
        writes += [Write("set", TRAINING_BLOCKS, block.id, to_row(block)) for block in blocks]
        writes += [
            Write("set", TRAINING_SESSIONS, session.id, to_row(session)) for session in sessions
        ]
        store.commit(writes)
    except TOOL_ERRORS as e:
        return {"error": str(e)}

    logger.info("Applied template %s for %s", template_id, client[:8])
    return {"plan_id": plan.id, "blocks": len(blocks), "sessions": len(sessions)}
