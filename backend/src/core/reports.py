"""Training Reports - Pure functions aggregating workout history.

All functions are pure: same input always produces same output, no side effects.
"""

from datetime import date, timedelta

from .catalog import round_decimal, round_half_up
from .models import Adherence, Exercise, MuscleVolume, PersonalRecord, RpeWeek, WorkoutLog


def start_of_week(day: date) -> date:
    """Return the Monday of the week containing `day`."""
    return day - timedelta(days=day.weekday())


def recent_week_starts(today: date, weeks: int = 4) -> list[date]:
    """Monday-aligned starts of the current week and the preceding ones, oldest first."""
    current = start_of_week(today)
    return [current - timedelta(weeks=offset) for offset in reversed(range(weeks))]


def personal_records(logs: list[WorkoutLog], limit: int = 6) -> list[PersonalRecord]:
    """Heaviest load per exercise across all logs.

    Logs are grouped by exercise name, falling back to exercise id. Logs with
    neither are ignored.

    Args:
        logs: Workout logs for a client, across plans
        limit: Number of records to return

    Returns:
        Records sorted by load, heaviest first
    """
    best: dict[str, float] = {}
    for log in logs:
        key = log.exercise_name or log.exercise_id
        if not key:
            continue
        if key not in best or log.load > best[key]:
            best[key] = log.load

    records = [PersonalRecord(name=name, load=load) for name, load in best.items()]
    records.sort(key=lambda record: record.load, reverse=True)
    return records[:limit]


def rpe_trend(logs: list[WorkoutLog], today: date, weeks: int = 4) -> list[RpeWeek]:
    """Average RPE per week for the most recent weeks.

    Each window runs Monday to Sunday inclusive. Only logs with an RPE count,
    an RPE of 0 included. Averages are rounded half-up to one decimal.
    A week with no qualifying logs reports an average of 0.

    Args:
        logs: Workout logs for a client
        today: Reference day; its week is the last window
        weeks: Number of windows

    Returns:
        One RpeWeek per window, oldest first
    """
    trend = []
    for week_start in recent_week_starts(today, weeks):
        week_end = week_start + timedelta(days=6)
        rated = [
            log.rpe for log in logs
            if log.rpe is not None and week_start <= log.date <= week_end
        ]
        avg = sum(rated) / (len(rated) or 1)
        trend.append(RpeWeek(week_start=week_start, avg=round_decimal(avg, 1), count=len(rated)))
    return trend


def volume_by_muscle(
    logs: list[WorkoutLog], exercises: list[Exercise], limit: int = 8
) -> list[MuscleVolume]:
    """Total sets per muscle.

    A log adds its sets to every muscle tagged on its exercise. Logs with no
    sets or an unknown exercise are ignored.

    Args:
        logs: Workout logs for a client
        exercises: Exercise catalog used to resolve muscles
        limit: Number of muscles to return

    Returns:
        Muscles sorted by accumulated sets, highest first
    """
    catalog = {exercise.id: exercise for exercise in exercises}
    volume: dict[str, int] = {}

    for log in logs:
        exercise = catalog.get(log.exercise_id or "")
        if exercise is None or log.sets <= 0:
            continue
        for muscle in exercise.muscles:
            volume[muscle] = volume.get(muscle, 0) + log.sets

    totals = [MuscleVolume(muscle=muscle, sets=sets) for muscle, sets in volume.items()]
    totals.sort(key=lambda item: item.sets, reverse=True)
    return totals[:limit]


def weekly_adherence(
    logs: list[WorkoutLog], week_start: date, planned_sessions: int
) -> Adherence | None:
    """Completed sessions in a week against the sessions in the active plan.

    A completed session is one distinct (session, completion) pair; a session
    logged with several exercises counts once.

    Args:
        logs: Workout logs for the client
        week_start: Monday of the week to measure
        planned_sessions: Number of sessions in the active plan

    Returns:
        Adherence capped at 100%, or None when nothing is planned
    """
    if planned_sessions <= 0:
        return None

    week_end = week_start + timedelta(days=6)
    completions = {
        (log.session_id, log.completed_at or log.date)
        for log in logs
        if week_start <= log.date <= week_end
    }
    completed = len(completions)
    percent = min(100, round_half_up(completed / planned_sessions * 100))

    return Adherence(
        week_start=week_start,
        completed=completed,
        planned=planned_sessions,
        percent=percent,
    )
