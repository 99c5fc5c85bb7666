"""Backend adapters: one interface, a relational and a document implementation."""

from __future__ import annotations

import abc
import logging
import re
import sqlite3
from contextlib import contextmanager
from typing import Optional

from client import DocumentStoreClient
from config import AppConfig
from db import (
    ExerciseRepository,
    GoalRepository,
    MeasurementRepository,
    PlanDayRepository,
    WorkoutRepository,
    AsyncWorkoutRepository,
    new_id,
)
from errors import BackendError
from models import Exercise, Goal, Measurement, PlanDay, Workout

logger = logging.getLogger(__name__)

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def to_camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


def to_snake(name: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", name).lower()


def camel_keys(data: dict) -> dict:
    return {to_camel(k): v for k, v in data.items()}


def snake_keys(data: dict) -> dict:
    return {to_snake(k): v for k, v in data.items() if not k.startswith("_")}


class Backend(abc.ABC):
    """Operations the application needs from a data backend."""

    name = "backend"

    @abc.abstractmethod
    def search_exercises(self, query: str, limit: int = 50) -> list[Exercise]: ...

    @abc.abstractmethod
    def list_active_exercises(self, limit: int = 100) -> list[Exercise]: ...

    @abc.abstractmethod
    def fetch_exercise(self, exercise_id: str) -> Exercise: ...

    @abc.abstractmethod
    def insert_exercise(self, exercise: Exercise) -> str: ...

    @abc.abstractmethod
    def update_exercise(self, exercise: Exercise) -> None: ...

    @abc.abstractmethod
    def delete_exercise(self, exercise_id: str) -> None: ...

    @abc.abstractmethod
    def fetch_recent_workouts(
        self, limit: int = 10, user_id: str | None = None
    ) -> list[Workout]: ...

    @abc.abstractmethod
    def fetch_workout(self, workout_id: str) -> Workout: ...

    @abc.abstractmethod
    def insert_workout(self, workout: Workout) -> str: ...

    @abc.abstractmethod
    def delete_workout(self, workout_id: str) -> None: ...

    @abc.abstractmethod
    def fetch_measurements(self, user_id: str, limit: int = 20) -> list[Measurement]: ...

    @abc.abstractmethod
    def save_measurement(self, measurement: Measurement) -> str: ...

    @abc.abstractmethod
    def delete_measurement(self, measurement_id: str) -> None: ...

    @abc.abstractmethod
    def fetch_goal(self, user_id: str) -> Optional[Goal]: ...

    @abc.abstractmethod
    def upsert_goal(self, goal: Goal) -> str: ...

    @abc.abstractmethod
    def save_plan(self, user_id: str, days: list[PlanDay]) -> None: ...

    async def fetch_recent_workouts_async(
        self, limit: int = 10, user_id: str | None = None
    ) -> list[Workout]:
        return self.fetch_recent_workouts(limit, user_id)


def _workout_row(workout: Workout) -> dict:
    return {
        "user_id": workout.user_id,
        "date": workout.date.isoformat(),
        "started_at": workout.started_at.isoformat() if workout.started_at else None,
        "ended_at": workout.ended_at.isoformat() if workout.ended_at else None,
        "duration_min": workout.duration_min,
        "exercises": [
            {
                "exerciseId": ex.exercise_id,
                "name": ex.name,
                "sets": [
                    {
                        "reps": s.reps,
                        "weight": s.weight,
                        "weightUnit": s.weight_unit.value,
                    }
                    for s in ex.sets
                ],
            }
            for ex in workout.exercises
        ],
    }


def _entry_sets(entry: dict) -> list[dict]:
    """Sets of one exercise entry.

    Older workout documents store ``sets`` as a count with one
    ``repsPerSet``, ``weight`` and ``weightUnit`` for the whole entry.
    """
    sets = entry.get("sets")
    if isinstance(sets, list):
        return [
            {
                "reps": s.get("reps") or 0,
                "weight": s.get("weight"),
                "weight_unit": s.get("weightUnit") or s.get("weight_unit"),
            }
            for s in sets
            if isinstance(s, dict)
        ]
    if isinstance(sets, int) and not isinstance(sets, bool) and sets > 0:
        template = {
            "reps": entry.get("repsPerSet") or entry.get("reps_per_set") or 0,
            "weight": entry.get("weight"),
            "weight_unit": entry.get("weightUnit") or entry.get("weight_unit"),
        }
        return [dict(template) for _ in range(sets)]
    return []


def _entry_exercise_id(entry: dict) -> str:
    ref = entry.get("exercise")
    if isinstance(ref, dict):
        ref = ref.get("_ref") or ref.get("_id")
    return entry.get("exerciseId") or entry.get("exercise_id") or ref or ""


def _workout_from_row(row: dict) -> Workout:
    exercises = [
        {
            "exercise_id": _entry_exercise_id(ex),
            "name": ex.get("name") or "",
            "sets": _entry_sets(ex),
        }
        for ex in row.get("exercises") or []
    ]
    return Workout(
        id=row.get("id"),
        user_id=row.get("user_id") or "",
        date=row["date"],
        started_at=row.get("started_at"),
        ended_at=row.get("ended_at"),
        duration_min=row.get("duration_min") or 1,
        exercises=exercises,
    )


class RelationalBackend(Backend):
    """Adapter over the SQLite tables."""

    name = "relational"

    def __init__(self, db_path: str = "fitlog.db") -> None:
        self.db_path = db_path
        self.exercises = ExerciseRepository(db_path)
        self.workouts = WorkoutRepository(db_path)
        self.async_workouts = AsyncWorkoutRepository(db_path)
        self.measurements = MeasurementRepository(db_path)
        self.goals = GoalRepository(db_path)
        self.plan_days = PlanDayRepository(db_path)

    @contextmanager
    def _guard(self, operation: str):
        try:
            yield
        except sqlite3.Error as e:
            logger.warning("relational %s failed: %s", operation, e)
            raise BackendError(f"Database error during {operation}", operation) from e

    def search_exercises(self, query: str, limit: int = 50) -> list[Exercise]:
        with self._guard("search_exercises"):
            rows = self.exercises.search(query, limit)
        return [Exercise(**r) for r in rows]

    def list_active_exercises(self, limit: int = 100) -> list[Exercise]:
        with self._guard("list_active_exercises"):
            rows = self.exercises.fetch_active(limit)
        return [Exercise(**r) for r in rows]

    def fetch_exercise(self, exercise_id: str) -> Exercise:
        with self._guard("fetch_exercise"):
            row = self.exercises.fetch_detail(exercise_id)
        return Exercise(**row)

    def insert_exercise(self, exercise: Exercise) -> str:
        with self._guard("insert_exercise"):
            eid = self.exercises.add(
                exercise.name,
                exercise.description,
                [m.value for m in exercise.major_muscle_groups],
                [d.value for d in exercise.training_days],
                exercise.image_url,
                exercise.video_url,
                exercise.is_active,
                exercise_id=exercise.id,
            )
        logger.info("exercise %s saved", eid)
        return eid

    def update_exercise(self, exercise: Exercise) -> None:
        if not exercise.id:
            raise ValueError("exercise not found")
        with self._guard("update_exercise"):
            self.exercises.update(
                exercise.id,
                name=exercise.name,
                description=exercise.description,
                image_url=exercise.image_url,
                video_url=exercise.video_url,
                major_muscle_groups=[m.value for m in exercise.major_muscle_groups],
                training_days=[d.value for d in exercise.training_days],
                is_active=exercise.is_active,
            )

    def delete_exercise(self, exercise_id: str) -> None:
        with self._guard("delete_exercise"):
            self.exercises.delete(exercise_id)

    def fetch_recent_workouts(
        self, limit: int = 10, user_id: str | None = None
    ) -> list[Workout]:
        with self._guard("fetch_recent_workouts"):
            rows = self.workouts.fetch_recent(limit, user_id)
        return [_workout_from_row(r) for r in rows]

    async def fetch_recent_workouts_async(
        self, limit: int = 10, user_id: str | None = None
    ) -> list[Workout]:
        with self._guard("fetch_recent_workouts"):
            rows = await self.async_workouts.fetch_recent(limit, user_id)
        return [_workout_from_row(r) for r in rows]

    def fetch_workout(self, workout_id: str) -> Workout:
        with self._guard("fetch_workout"):
            row = self.workouts.fetch_detail(workout_id)
        return _workout_from_row(row)

    def insert_workout(self, workout: Workout) -> str:
        row = _workout_row(workout)
        with self._guard("insert_workout"):
            wid = self.workouts.create(
                row["user_id"],
                row["date"],
                row["duration_min"],
                row["exercises"],
                row["started_at"],
                row["ended_at"],
                workout_id=workout.id,
            )
        logger.info("workout %s saved", wid)
        return wid

    def delete_workout(self, workout_id: str) -> None:
        with self._guard("delete_workout"):
            self.workouts.delete(workout_id)

    def fetch_measurements(self, user_id: str, limit: int = 20) -> list[Measurement]:
        with self._guard("fetch_measurements"):
            rows = self.measurements.fetch_history(user_id, limit)
        return [Measurement(**r) for r in rows]

    def save_measurement(self, measurement: Measurement) -> str:
        row = measurement.model_dump()
        row["timestamp"] = measurement.timestamp.isoformat()
        with self._guard("save_measurement"):
            return self.measurements.upsert(row)

    def delete_measurement(self, measurement_id: str) -> None:
        with self._guard("delete_measurement"):
            self.measurements.delete(measurement_id)

    def fetch_goal(self, user_id: str) -> Optional[Goal]:
        with self._guard("fetch_goal"):
            row = self.goals.fetch(user_id)
        return Goal(**row) if row else None

    def upsert_goal(self, goal: Goal) -> str:
        with self._guard("upsert_goal"):
            return self.goals.upsert(goal.user_id, goal.metrics())

    def save_plan(self, user_id: str, days: list[PlanDay]) -> None:
        with self._guard("save_plan"):
            self.plan_days.replace_all(user_id, [d.model_dump() for d in days])


class DocumentBackend(Backend):
    """Adapter over the hosted document store; documents use camelCase fields."""

    name = "document"

    def __init__(self, client: DocumentStoreClient) -> None:
        self.client = client

    @staticmethod
    def _exercise_doc(exercise: Exercise) -> dict:
        doc = camel_keys(
            exercise.model_dump(
                mode="json",
                include={
                    "name",
                    "description",
                    "image_url",
                    "video_url",
                    "major_muscle_groups",
                    "training_days",
                    "is_active",
                },
            )
        )
        doc["_type"] = "exercise"
        return doc

    @staticmethod
    def _exercise_from_doc(doc: dict) -> Exercise:
        data = snake_keys(doc)
        data["id"] = doc.get("_id")
        return Exercise(**data)

    def search_exercises(self, query: str, limit: int = 50) -> list[Exercise]:
        docs = self.client.query(
            '*[_type == "exercise" && name match $pattern '
            "&& (!defined(isActive) || isActive == true)] "
            f"| order(name asc)[0...{int(limit)}]",
            {"pattern": f"*{query}*"},
        )
        return [self._exercise_from_doc(d) for d in docs or []]

    def list_active_exercises(self, limit: int = 100) -> list[Exercise]:
        docs = self.client.query(
            '*[_type == "exercise" && (!defined(isActive) || isActive == true)] '
            f"| order(name asc)[0...{int(limit)}]"
        )
        return [self._exercise_from_doc(d) for d in docs or []]

    def fetch_exercise(self, exercise_id: str) -> Exercise:
        doc = self.client.query(
            '*[_type == "exercise" && _id == $id][0]', {"id": exercise_id}
        )
        if not doc:
            raise ValueError("exercise not found")
        return self._exercise_from_doc(doc)

    def insert_exercise(self, exercise: Exercise) -> str:
        doc = self._exercise_doc(exercise)
        doc["_id"] = exercise.id or new_id()
        self.client.mutate([{"create": doc}])
        logger.info("exercise %s saved", doc["_id"])
        return doc["_id"]

    def update_exercise(self, exercise: Exercise) -> None:
        if not exercise.id:
            raise ValueError("exercise not found")
        fields = self._exercise_doc(exercise)
        fields.pop("_type")
        self.client.mutate([{"patch": {"id": exercise.id, "set": fields}}])

    def delete_exercise(self, exercise_id: str) -> None:
        self.client.mutate([{"delete": {"id": exercise_id}}])

    def fetch_recent_workouts(
        self, limit: int = 10, user_id: str | None = None
    ) -> list[Workout]:
        condition = '_type == "workout"'
        params = {}
        if user_id:
            condition += " && userId == $userId"
            params["userId"] = user_id
        docs = self.client.query(
            f"*[{condition}] | order(date desc)[0...{int(limit)}]", params
        )
        return [self._workout_from_doc(d) for d in docs or []]

    @staticmethod
    def _workout_from_doc(doc: dict) -> Workout:
        row = snake_keys(doc)
        row["id"] = doc.get("_id")
        return _workout_from_row(row)

    def fetch_workout(self, workout_id: str) -> Workout:
        doc = self.client.query(
            '*[_type == "workout" && _id == $id][0]', {"id": workout_id}
        )
        if not doc:
            raise ValueError("workout not found")
        return self._workout_from_doc(doc)

    def insert_workout(self, workout: Workout) -> str:
        doc = camel_keys(_workout_row(workout))
        for ex in doc["exercises"]:
            ex["_key"] = new_id()[:12]
            for s in ex["sets"]:
                s["_key"] = new_id()[:12]
        doc["_type"] = "workout"
        doc["_id"] = workout.id or new_id()
        self.client.mutate([{"create": doc}])
        logger.info("workout %s saved", doc["_id"])
        return doc["_id"]

    def delete_workout(self, workout_id: str) -> None:
        self.client.mutate([{"delete": {"id": workout_id}}])

    def fetch_measurements(self, user_id: str, limit: int = 20) -> list[Measurement]:
        docs = self.client.query(
            '*[_type == "measurement" && userId == $userId] '
            f"| order(timestamp desc)[0...{int(limit)}]",
            {"userId": user_id},
        )
        result = []
        for doc in docs or []:
            data = snake_keys(doc)
            data["id"] = doc.get("_id")
            result.append(Measurement(**data))
        return result

    def save_measurement(self, measurement: Measurement) -> str:
        doc = camel_keys(measurement.model_dump(mode="json", exclude={"id"}))
        doc["_type"] = "measurement"
        doc["_id"] = measurement.id
        self.client.mutate([{"createOrReplace": doc}])
        return measurement.id

    def delete_measurement(self, measurement_id: str) -> None:
        self.client.mutate([{"delete": {"id": measurement_id}}])

    def fetch_goal(self, user_id: str) -> Optional[Goal]:
        doc = self.client.query(
            '*[_type == "goal" && userId == $userId][0]', {"userId": user_id}
        )
        if not doc:
            return None
        data = snake_keys(doc)
        data["id"] = doc.get("_id")
        return Goal(**data)

    def upsert_goal(self, goal: Goal) -> str:
        # one deterministic id per user gives upsert semantics
        doc = camel_keys(goal.model_dump(mode="json", exclude={"id"}))
        doc["_type"] = "goal"
        doc["_id"] = f"goal-{goal.user_id}"
        self.client.mutate([{"createOrReplace": doc}])
        return doc["_id"]

    def save_plan(self, user_id: str, days: list[PlanDay]) -> None:
        doc = {
            "_id": f"weeklyPlan-{user_id}",
            "_type": "weeklyPlan",
            "userId": user_id,
            "days": [
                dict(camel_keys(d.model_dump()), _key=d.id) for d in days
            ],
        }
        self.client.mutate([{"createOrReplace": doc}])


def create_backend(config: AppConfig) -> Backend:
    """Select the backend adapter once, from configuration."""
    if config.backend == "document":
        client = DocumentStoreClient(
            config.sanity_project_id,
            config.sanity_dataset,
            config.sanity_api_version,
            config.sanity_token,
        )
        return DocumentBackend(client)
    return RelationalBackend(config.db_path)
