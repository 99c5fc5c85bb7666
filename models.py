from __future__ import annotations

import datetime
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator


class MuscleGroup(str, Enum):
    GLUTEUS_MAXIMUS = "gluteusMaximus"
    GLUTEUS_MEDIUS = "gluteusMedius"
    POSTERIOR_CHAIN = "posteriorChain"
    HAMSTRINGS = "hamstrings"
    ADDUCTORS_INNER_THIGH = "adductorsInnerThigh"
    QUADRICEPS = "quadriceps"
    CALVES = "calves"
    DELTOIDS = "deltoids"
    ANTERIOR_DELTOID = "anteriorDeltoid"
    TRICEPS = "triceps"
    BICEPS = "biceps"
    PEC_MAJOR_UPPER = "pecMajorUpper"
    PEC_MAJOR_MID = "pecMajorMid"
    PEC_MAJOR_LOWER = "pecMajorLower"
    PEC_MINOR = "pecMinor"
    LATISSIMUS_DORSI = "latissimusDorsi"
    RHOMBOIDS = "rhomboids"
    LOWER_BACK = "lowerBack"
    LOWER_ABS = "lowerAbs"
    UPPER_ABS = "upperAbs"
    OBLIQUES = "obliques"
    TRANSVERSE_ABDOMINIS = "transverseAbdominis"


MUSCLE_GROUP_LABELS = {
    MuscleGroup.GLUTEUS_MAXIMUS: "Glutes (Gluteus Maximus)",
    MuscleGroup.GLUTEUS_MEDIUS: "Glutes (Gluteus Medius)",
    MuscleGroup.POSTERIOR_CHAIN: "Posterior Chain",
    MuscleGroup.HAMSTRINGS: "Hamstrings",
    MuscleGroup.ADDUCTORS_INNER_THIGH: "Adductors (Inner Thigh)",
    MuscleGroup.QUADRICEPS: "Quadriceps (Quads)",
    MuscleGroup.CALVES: "Calves",
    MuscleGroup.DELTOIDS: "Shoulders (Deltoids)",
    MuscleGroup.ANTERIOR_DELTOID: "Shoulders (Anterior Deltoid)",
    MuscleGroup.TRICEPS: "Arms (Triceps)",
    MuscleGroup.BICEPS: "Arms (Biceps)",
    MuscleGroup.PEC_MAJOR_UPPER: "Chest Upper",
    MuscleGroup.PEC_MAJOR_MID: "Chest Mid",
    MuscleGroup.PEC_MAJOR_LOWER: "Chest Lower",
    MuscleGroup.PEC_MINOR: "Chest Minor",
    MuscleGroup.LATISSIMUS_DORSI: "Back (Lats)",
    MuscleGroup.RHOMBOIDS: "Back (Rhomboids)",
    MuscleGroup.LOWER_BACK: "Back (Lower Back)",
    MuscleGroup.LOWER_ABS: "Core (Lower Abs)",
    MuscleGroup.UPPER_ABS: "Core (Upper Abs)",
    MuscleGroup.OBLIQUES: "Core (Obliques)",
    MuscleGroup.TRANSVERSE_ABDOMINIS: "Core (Transverse Abdominis)",
}


class TrainingDay(str, Enum):
    LEGS_GLUTES = "legsGlutesDay"
    SHOULDERS_ARMS = "shouldersArmsDay"
    BACK = "backDay"
    CHEST_ARMS = "chestArmsDay"
    GLUTES_HAMSTRINGS = "glutesHamstringsDay"
    ABS_CORE = "absCoreDay"


TRAINING_DAY_LABELS = {
    TrainingDay.LEGS_GLUTES: "Legs & Glutes Day",
    TrainingDay.SHOULDERS_ARMS: "Shoulders & Arms Day",
    TrainingDay.BACK: "Back Day",
    TrainingDay.CHEST_ARMS: "Chest & Arms Day",
    TrainingDay.GLUTES_HAMSTRINGS: "Glutes & Hamstrings Day",
    TrainingDay.ABS_CORE: "Abs / Core Day",
}


class WeightUnit(str, Enum):
    KG = "kg"
    LB = "lb"

    @classmethod
    def parse(cls, value: object) -> "WeightUnit":
        """Accept ``lb``/``lbs`` (any case) as pounds, everything else as kg."""
        if isinstance(value, WeightUnit):
            return value
        if str(value or "").strip().lower() in {"lb", "lbs"}:
            return cls.LB
        return cls.KG


class Exercise(BaseModel):
    """Catalog entry, either stored locally or returned by the search API."""

    id: Optional[str] = None
    name: str = Field(min_length=1)
    description: str = "No description provided."
    image_url: Optional[str] = None
    video_url: Optional[str] = None
    major_muscle_groups: list[MuscleGroup] = Field(default_factory=list)
    training_days: list[TrainingDay] = Field(default_factory=list)
    is_active: bool = True
    # only populated for results of the remote search API
    muscle: Optional[str] = None
    type: Optional[str] = None
    targets: Optional[list[str]] = None
    secondary_targets: Optional[list[str]] = None
    body_parts: Optional[list[str]] = None
    equipments: Optional[list[str]] = None

    @field_validator("is_active", mode="before")
    @classmethod
    def _null_is_active(cls, value):
        return True if value is None else value

    @field_validator("description", mode="before")
    @classmethod
    def _blank_description(cls, value):
        if value is None or not str(value).strip():
            return "No description provided."
        return value


class WorkoutSet(BaseModel):
    reps: int = Field(default=0, ge=0)
    weight: Optional[float] = Field(default=None, ge=0)
    weight_unit: WeightUnit = WeightUnit.KG

    @field_validator("weight_unit", mode="before")
    @classmethod
    def _normalise_unit(cls, value):
        return WeightUnit.parse(value)


class WorkoutExercise(BaseModel):
    exercise_id: str
    name: str = ""
    sets: list[WorkoutSet] = Field(default_factory=list)


class Workout(BaseModel):
    id: Optional[str] = None
    user_id: str
    date: datetime.datetime
    started_at: Optional[datetime.datetime] = None
    ended_at: Optional[datetime.datetime] = None
    duration_min: int = Field(gt=0)
    exercises: list[WorkoutExercise] = Field(default_factory=list)

    @staticmethod
    def derive_duration(
        started_at: datetime.datetime | None,
        ended_at: datetime.datetime | None,
        fallback_min: int | None = None,
    ) -> int:
        """Minutes between the timestamps, or ``fallback_min`` when unknown."""
        if started_at is not None and ended_at is not None:
            seconds = (ended_at - started_at).total_seconds()
            return max(1, round(seconds / 60))
        if fallback_min is None:
            raise ValueError("duration requires timestamps or a supplied value")
        return max(1, int(fallback_min))


class PlanDay(BaseModel):
    id: str
    day_label: str
    value: str
    focus: str
    exercises: list[str] = Field(default_factory=list)
    color: str = "#F2E8FF"


MEASUREMENT_FIELDS = (
    "weight_kg",
    "chest_cm",
    "waist_cm",
    "hips_cm",
    "thigh_cm",
    "arm_cm",
    "calf_cm",
)


class BodyMetrics(BaseModel):
    weight_kg: Optional[float] = Field(default=None, ge=0)
    chest_cm: Optional[float] = Field(default=None, ge=0)
    waist_cm: Optional[float] = Field(default=None, ge=0)
    hips_cm: Optional[float] = Field(default=None, ge=0)
    thigh_cm: Optional[float] = Field(default=None, ge=0)
    arm_cm: Optional[float] = Field(default=None, ge=0)
    calf_cm: Optional[float] = Field(default=None, ge=0)

    def metrics(self) -> dict[str, float | None]:
        return {name: getattr(self, name) for name in MEASUREMENT_FIELDS}


class Measurement(BodyMetrics):
    id: str
    user_id: str
    timestamp: datetime.datetime


class Goal(BodyMetrics):
    id: Optional[str] = None
    user_id: str
    updated_at: Optional[datetime.datetime] = None


@dataclass
class Removal:
    """One-slot undo buffer: the removed item and where it was."""

    removed: Any
    original_index: int
