"""Core Data Models - Pydantic models for type safety.

Entities mirror the rows kept in the store. Enums are closed so that loosely
typed rows are rejected at the boundary instead of leaking into the core.
"""

from datetime import datetime
from datetime import date as DateType
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator


class ProfileRole(str, Enum):
    CLIENT = "client"
    COACH = "coach"
    ADMIN = "admin"


class MealSlot(str, Enum):
    """Meal slots in display order."""

    BREAKFAST = "breakfast"
    LUNCH = "lunch"
    DINNER = "dinner"
    SNACK = "snack"
    EXTRA = "extra"

    @property
    def label(self) -> str:
        return self.value.capitalize()


class MacroAxis(str, Enum):
    """The five tracked macros. Values match the row field names."""

    KCAL = "kcal"
    PROTEIN = "p"
    CARBS = "c"
    FAT = "f"
    FIBER = "fiber"


class PlanStatus(str, Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    PAUSED = "paused"


class ExerciseCategory(str, Enum):
    PULL = "pull"
    PUSH = "push"
    LEGS = "legs"
    CORE = "core"
    FULL = "full"


class FoodType(str, Enum):
    MIXED = "mixed"
    PROTEIN = "protein"
    CARB = "carb"
    FAT = "fat"


# ==================== Macros ====================


class Macros(BaseModel):
    """Five macro values. Remaining amounts may be negative."""

    kcal: float = 0
    p: float = 0
    c: float = 0
    f: float = 0
    fiber: float = 0

    def get(self, axis: MacroAxis) -> float:
        return getattr(self, axis.value)


class Profile(BaseModel):
    """User profile stored alongside the hashed API key."""

    id: str
    email: Optional[str] = None
    role: ProfileRole = ProfileRole.CLIENT
    display_name: Optional[str] = None
    api_key_hash: Optional[str] = Field(default=None, description="SHA256 hash of API key")
    created_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def is_coach(self) -> bool:
        return self.role in (ProfileRole.COACH, ProfileRole.ADMIN)


class CoachClient(BaseModel):
    coach_id: str
    client_id: str
    status: str = "active"
    created_at: datetime = Field(default_factory=datetime.utcnow)


class CoachPreference(BaseModel):
    """Last client a coach selected. Replaces app-wide active client state."""

    coach_id: str
    last_client_id: Optional[str] = None


# ==================== Diet ====================


class Food(BaseModel):
    """A food with macros defined per one unit of `unit`."""

    id: str = Field(min_length=1)
    owner_id: Optional[str] = None
    is_public: bool = False
    food_name: str = Field(min_length=1)
    unit: str = Field(min_length=1)
    kcal: float = Field(ge=0)
    p: float = Field(ge=0)
    c: float = Field(ge=0)
    f: float = Field(ge=0)
    fiber: float = Field(ge=0)
    type: FoodType = FoodType.MIXED

    def macro(self, axis: MacroAxis) -> float:
        return getattr(self, axis.value)


class FoodLog(BaseModel):
    """A logged food. Macro values are already multiplied by qty."""

    id: Optional[str] = None
    client_id: str
    date: DateType
    meal_key: MealSlot
    food_id: str
    qty: float = Field(gt=0)
    unit: str = ""
    kcal: float = 0
    p: float = 0
    c: float = 0
    f: float = 0
    fiber: float = 0
    created_at: Optional[datetime] = None


class MacroTarget(BaseModel):
    """Daily macro target, unique per (client_id, date)."""

    id: Optional[str] = None
    client_id: str
    date: DateType
    kcal: float = Field(default=0, ge=0)
    p: float = Field(default=0, ge=0)
    c: float = Field(default=0, ge=0)
    f: float = Field(default=0, ge=0)
    fiber: float = Field(default=0, ge=0)
    notes: Optional[str] = None

    def macro(self, axis: MacroAxis) -> float:
        return getattr(self, axis.value)


class SplitWeights(BaseModel):
    """Percentage weights for one meal slot. Missing axes count as 0%."""

    kcal: Optional[float] = None
    p: Optional[float] = None
    c: Optional[float] = None
    f: Optional[float] = None
    fiber: Optional[float] = None

    def weight(self, axis: MacroAxis) -> float:
        value = getattr(self, axis.value)
        return value if value is not None else 0


class MacroSplitTemplate(BaseModel):
    id: Optional[str] = None
    name: str = Field(min_length=1)
    goal: Optional[str] = None
    meals_count: int = Field(default=4, ge=1)
    split: dict[MealSlot, SplitWeights] = Field(default_factory=dict)
    created_by: Optional[str] = None
    is_public: bool = True
    created_at: Optional[datetime] = None


class ClientMacroSplit(BaseModel):
    client_id: str
    template_id: str
    active: bool = False


class MealAllocation(BaseModel):
    """Per-meal share of a daily target, rounded to whole numbers."""

    meal_key: MealSlot
    label: str
    weights: SplitWeights
    kcal: int
    p: int
    c: int
    f: int
    fiber: int


class DailySummary(BaseModel):
    """Summary of a day's intake calculated from food logs."""

    log_date: DateType
    totals: Macros
    remaining: Macros = Field(description="Negative if over target")
    has_target: bool = Field(description="False means remaining is measured against zero")
    by_meal: dict[MealSlot, Macros] = Field(default_factory=dict)
    entry_count: int = 0


# ==================== Training ====================


class TrainingPlan(BaseModel):
    id: Optional[str] = None
    client_id: str
    coach_id: Optional[str] = None
    name: str = Field(min_length=1)
    status: PlanStatus = PlanStatus.DRAFT
    notes: Optional[str] = None
    created_at: Optional[datetime] = None


class TrainingBlock(BaseModel):
    id: Optional[str] = None
    plan_id: Optional[str] = None
    client_id: Optional[str] = None
    title: str = Field(min_length=1)
    order: int = Field(default=1, gt=0)
    weeks: int = Field(default=4, gt=0)
    goal: Optional[str] = None
    notes: Optional[str] = None


class SessionExercise(BaseModel):
    """An exercise prescription inside a session."""

    exercise_id: str
    name: str = ""
    sets: int = Field(default=3, ge=0)
    reps: int = Field(default=10, ge=0)
    rpe: Optional[float] = None
    rest: Optional[str] = None
    notes: Optional[str] = None


class TrainingSession(BaseModel):
    id: Optional[str] = None
    plan_id: Optional[str] = None
    block_id: Optional[str] = None
    client_id: Optional[str] = None
    block_title: Optional[str] = None
    session_order: int = Field(gt=0)
    session_label: Optional[str] = None
    focus: Optional[str] = None
    notes: Optional[str] = None
    exercises: list[SessionExercise] = Field(default_factory=list)

    @field_validator("exercises", mode="before")
    @classmethod
    def _exercises_list(cls, value: Any) -> Any:
        return value if isinstance(value, list) else []


class Exercise(BaseModel):
    id: str = Field(min_length=1)
    owner_id: Optional[str] = None
    is_public: bool = False
    name: str = Field(min_length=1)
    category: ExerciseCategory = ExerciseCategory.FULL
    muscles: list[str] = Field(default_factory=list)
    equipment: Optional[str] = None


class WorkoutLog(BaseModel):
    """One exercise performed in a completed session."""

    id: Optional[str] = None
    client_id: str
    plan_id: Optional[str] = None
    session_id: Optional[str] = None
    session_order: Optional[int] = None
    exercise_id: Optional[str] = None
    exercise_name: Optional[str] = None
    sets: int = Field(default=0, ge=0)
    reps: int = Field(default=0, ge=0)
    load: float = 0
    rpe: Optional[float] = None
    notes: Optional[str] = None
    date: DateType
    completed_at: Optional[datetime] = None


class PerformanceInput(BaseModel):
    """Raw form values for one prescribed exercise. Numbers may be strings."""

    sets: Optional[float | str] = None
    reps: Optional[float | str] = None
    load: Optional[float | str] = None
    rpe: Optional[float | str] = None
    notes: Optional[str] = None


class TemplatePlan(BaseModel):
    name: str
    notes: Optional[str] = None
    status: PlanStatus = PlanStatus.DRAFT


class TemplatePayload(BaseModel):
    plan: Optional[TemplatePlan] = None
    blocks: list[TrainingBlock] = Field(default_factory=list)
    sessions: list[TrainingSession] = Field(default_factory=list)


class TrainingTemplate(BaseModel):
    id: Optional[str] = None
    title: str = Field(min_length=1)
    goal: Optional[str] = None
    level: Optional[str] = None
    equipment: Optional[str] = None
    frequency: Optional[int] = None
    description: Optional[str] = None
    created_by: Optional[str] = None
    is_public: bool = True
    payload: TemplatePayload = Field(default_factory=TemplatePayload)
    created_at: Optional[datetime] = None


class PersonalRecord(BaseModel):
    name: str
    load: float


class RpeWeek(BaseModel):
    week_start: DateType
    avg: float
    count: int


class MuscleVolume(BaseModel):
    muscle: str
    sets: int


# ==================== Check-ins ====================


class Checkin(BaseModel):
    """Weekly check-in, unique per (client_id, week_start)."""

    id: Optional[str] = None
    client_id: str
    week_start: DateType
    weight: Optional[float] = None
    waist: Optional[float] = None
    sleep: Optional[float] = None
    steps: Optional[int] = None
    stress: Optional[float] = None
    hunger: Optional[float] = None
    energy: Optional[float] = None
    performance: Optional[float] = None
    notes: Optional[str] = None


class Adherence(BaseModel):
    week_start: DateType
    completed: int
    planned: int
    percent: int

    def describe(self) -> str:
        return f"{self.completed}/{self.planned} ({self.percent}%)"
