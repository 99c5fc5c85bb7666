from __future__ import annotations

import datetime
import logging
from dataclasses import asdict, dataclass, field
from typing import Callable, List, Optional

from config import AppConfig
from errors import BackendError, ConfigurationError, ValidationError
from models import (
    Exercise,
    PlanDay,
    Removal,
    WeightUnit,
    Workout,
    WorkoutExercise,
    WorkoutSet,
)
from stats_service import exercise_volume, set_count
from tools import MathTools

logger = logging.getLogger(__name__)

SET_FIELDS = ("reps", "weight", "unit")


@dataclass
class SessionSet:
    reps: object = 0
    weight: object = 0
    unit: str = WeightUnit.KG.value


@dataclass
class SessionExercise:
    key: str
    exercise_id: str
    name: str
    sets: List[SessionSet] = field(default_factory=list)
    completed: bool = False
    expanded: bool = True


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class WorkoutSession:
    """In-progress workout: exercises, sets and the timer, held in memory."""

    RECENT_LIMIT = 10

    def __init__(
        self,
        backend,
        config: AppConfig | None = None,
        planner=None,
        clock: Callable[[], datetime.datetime] | None = None,
    ) -> None:
        self.backend = backend
        self.config = config or AppConfig()
        self.planner = planner
        self.clock = clock or _utcnow
        self.weight_unit = WeightUnit.parse(self.config.weight_unit).value
        self.catalog: Optional[List[Exercise]] = None
        self.selected_day: str = ""
        self.end()

    # lifecycle

    def start(self) -> None:
        self.started = True
        self.started_at = self.clock()

    def end(self) -> None:
        self.exercises: List[SessionExercise] = []
        self.started = False
        self.started_at: Optional[datetime.datetime] = None
        self.elapsed_seconds = 0
        self.undo: Optional[Removal] = None

    def start_from_plan(self, plan_day: PlanDay) -> None:
        self.selected_day = plan_day.value
        self.exercises = []
        self.undo = None
        self.start()

    def select_day(self, tag: str) -> None:
        self.selected_day = tag or ""

    def tick(self, seconds: int = 1) -> int:
        if self.started:
            self.elapsed_seconds += max(0, int(seconds))
        return self.elapsed_seconds

    # catalog

    def available_exercises(self) -> List[Exercise]:
        """Active exercises, loaded from the backend once."""
        if self.catalog is None:
            self.catalog = self.backend.list_active_exercises(100)
        return self.catalog

    def last_set_for(self, exercise_id: str) -> SessionSet:
        default = SessionSet(0, 0, self.weight_unit)
        try:
            workouts = self.backend.fetch_recent_workouts(
                self.RECENT_LIMIT, self.config.user_id
            )
        except BackendError as e:
            logger.warning("last set lookup for %s failed: %s", exercise_id, e)
            return default
        for workout in workouts:
            for ex in workout.exercises:
                if ex.exercise_id == exercise_id and ex.sets:
                    last = ex.sets[-1]
                    return SessionSet(
                        last.reps,
                        last.weight if last.weight is not None else 0,
                        last.weight_unit.value,
                    )
        return default

    # entries

    def _new_key(self, exercise_id: str) -> str:
        stamp = int(self.clock().timestamp() * 1000)
        keys = {e.key for e in self.exercises}
        while f"{exercise_id}-{stamp}" in keys:
            stamp += 1
        return f"{exercise_id}-{stamp}"

    def _entry(self, key: str) -> SessionExercise:
        for entry in self.exercises:
            if entry.key == key:
                return entry
        raise ValueError("exercise not found")

    def add_exercise(self, exercise_id: str) -> Optional[SessionExercise]:
        exercise = next(
            (e for e in self.available_exercises() if e.id == exercise_id), None
        )
        if exercise is None:
            return None
        entry = SessionExercise(
            key=self._new_key(exercise_id),
            exercise_id=exercise_id,
            name=exercise.name,
            sets=[self.last_set_for(exercise_id)],
        )
        self.exercises.append(entry)
        return entry

    def add_set(self, key: str) -> SessionExercise:
        entry = self._entry(key)
        if entry.sets:
            last = entry.sets[-1]
            entry.sets.append(SessionSet(last.reps, last.weight, last.unit))
        else:
            entry.sets.append(SessionSet(0, 0, self.weight_unit))
        entry.completed = False
        entry.expanded = True
        return entry

    def update_set(self, key: str, index: int, name: str, value) -> SessionSet:
        if name not in SET_FIELDS:
            raise ValidationError(f"Unknown set field {name}")
        entry = self._entry(key)
        if not 0 <= index < len(entry.sets):
            raise ValueError("set not found")
        if name == "unit":
            value = WeightUnit.parse(value).value
        setattr(entry.sets[index], name, value)
        return entry.sets[index]

    def remove_set(self, key: str, index: int) -> SessionExercise:
        entry = self._entry(key)
        entry.sets = [s for i, s in enumerate(entry.sets) if i != index]
        return entry

    def remove_exercise(self, key: str) -> Optional[Removal]:
        for index, entry in enumerate(self.exercises):
            if entry.key == key:
                self.exercises = [e for e in self.exercises if e.key != key]
                self.undo = Removal(entry, index)
                return self.undo
        return None

    def undo_remove(self) -> Optional[SessionExercise]:
        removal = self.undo
        if removal is None:
            return None
        entry = removal.removed
        if not any(e.key == entry.key for e in self.exercises):
            index = int(MathTools.clamp(removal.original_index, 0, len(self.exercises)))
            self.exercises.insert(index, entry)
        self.undo = None
        return entry

    def mark_complete(self, key: str) -> SessionExercise:
        entry = self._entry(key)
        entry.completed = True
        entry.expanded = False
        return entry

    def toggle_expanded(self, key: str) -> SessionExercise:
        entry = self._entry(key)
        entry.expanded = not entry.expanded
        return entry

    # completion

    def duration_minutes(self, now: datetime.datetime) -> int:
        if self.started_at is not None:
            return Workout.derive_duration(self.started_at, now)
        return max(1, int(self.elapsed_seconds / 60 + 0.5))

    @staticmethod
    def _payload_set(s: SessionSet) -> WorkoutSet:
        reps = max(0, MathTools.to_int(s.reps))
        weight = None
        if s.weight is not None and str(s.weight).strip():
            parsed = MathTools.to_number(s.weight, default=None)
            weight = max(0.0, parsed) if parsed is not None else None
        return WorkoutSet(reps=reps, weight=weight, weight_unit=s.unit)

    def build_workout(self, now: datetime.datetime | None = None) -> Workout:
        now = now or self.clock()
        return Workout(
            user_id=self.config.user_id,
            date=now,
            started_at=self.started_at or now,
            ended_at=now,
            duration_min=self.duration_minutes(now),
            exercises=[
                WorkoutExercise(
                    exercise_id=e.exercise_id,
                    name=e.name,
                    sets=[self._payload_set(s) for s in e.sets],
                )
                for e in self.exercises
            ],
        )

    def complete(self) -> str:
        """Save the session as a workout and reset; state survives a failure."""
        if not self.config.can_write:
            raise ConfigurationError(
                "Cannot save workout, missing settings: "
                + ", ".join(self.config.missing_credentials())
            )
        if not self.exercises:
            raise ValidationError("Add at least one exercise before saving")
        workout = self.build_workout()
        workout_id = self.backend.insert_workout(workout)
        if self.planner is not None and self.selected_day:
            try:
                self.planner.mark_completed(self.selected_day)
            except BackendError as e:
                # the workout is already saved; only the weekly tick is lost
                logger.warning("could not mark %s completed: %s", self.selected_day, e)
        self.end()
        return workout_id

    def state(self) -> dict:
        return {
            "started": self.started,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "elapsed_seconds": self.elapsed_seconds,
            "selected_day": self.selected_day,
            "can_undo": self.undo is not None,
            "exercises": [
                dict(
                    asdict(e),
                    volume=exercise_volume(e),
                )
                for e in self.exercises
            ],
            "total_sets": set_count(self),
        }
