from __future__ import annotations

import logging
from typing import List, Optional

from client import ExerciseDbClient
from config import AppConfig
from errors import ConfigurationError, FitlogError, ValidationError
from models import Exercise, MuscleGroup, TrainingDay
from tools import confirmed

logger = logging.getLogger(__name__)

SOURCES = ("api", "local")


def filter_by_training_day(exercises: List[Exercise], tag: str | None) -> List[Exercise]:
    if not tag:
        return list(exercises)
    return [e for e in exercises if tag in {d.value for d in e.training_days}]


def filter_by_muscle_group(exercises: List[Exercise], group: str | None) -> List[Exercise]:
    if not group:
        return list(exercises)
    return [e for e in exercises if group in {m.value for m in e.major_muscle_groups}]


class CatalogService:
    """Exercise search over the remote API or the local catalog, plus edits.

    ``items`` holds the result of the last successful search; a failed
    search records ``error`` and leaves ``items`` as they were.
    """

    def __init__(
        self,
        backend,
        config: AppConfig | None = None,
        api: ExerciseDbClient | None = None,
        source: str = "local",
    ) -> None:
        self.backend = backend
        self.config = config or AppConfig()
        self.api = api or ExerciseDbClient(
            self.config.exercisedb_key,
            self.config.exercisedb_base_url,
            self.config.exercisedb_host,
        )
        self.source = source
        self.query = ""
        self.items: List[Exercise] = []
        self.error: Optional[str] = None
        self.last_deleted: Optional[Exercise] = None

    def set_source(self, source: str) -> None:
        if source not in SOURCES:
            raise ValidationError(f"Unknown source {source}")
        self.source = source

    def search(self, query: str, source: str | None = None) -> List[Exercise]:
        if source is not None:
            self.set_source(source)
        self.query = query or ""
        q = self.query.strip()
        if not q:
            self.items = []
            self.error = None
            return self.items
        try:
            if self.source == "api":
                results = self.api.search(q)
            else:
                results = self.backend.search_exercises(q, 50)
        except FitlogError as e:
            self.error = str(e)
            raise
        self.items = results
        self.error = None
        return self.items

    def add_exercise(
        self,
        name: str,
        major_muscle_groups: List[str],
        training_days: List[str],
        description: str = "",
        image_url: str | None = None,
        video_url: str | None = None,
    ) -> Exercise:
        if not (name or "").strip():
            raise ValidationError("Missing name")
        if not major_muscle_groups:
            raise ValidationError("Pick muscle groups")
        if not training_days:
            raise ValidationError("Pick training days")
        try:
            muscles = [MuscleGroup(m) for m in major_muscle_groups]
            days = [TrainingDay(d) for d in training_days]
        except ValueError as e:
            raise ValidationError(str(e)) from e
        if not self.config.can_write:
            raise ConfigurationError(
                "Cannot add exercise, missing settings: "
                + ", ".join(self.config.missing_credentials())
            )
        exercise = Exercise(
            name=name.strip(),
            description=(description or "").strip() or "No description provided.",
            image_url=image_url or None,
            video_url=video_url or None,
            major_muscle_groups=muscles,
            training_days=days,
            is_active=True,
        )
        exercise.id = self.backend.insert_exercise(exercise)
        if self.source == "local":
            self.items = self.backend.search_exercises(
                self.query.strip() or exercise.name, 50
            )
        return exercise

    def delete_exercise(self, exercise: Exercise, confirm=False) -> Exercise:
        if not exercise.id:
            raise ValidationError("This exercise has no id.")
        if not confirmed(confirm, f'Delete "{exercise.name}"?'):
            raise ValidationError("Deletion not confirmed")
        self.backend.delete_exercise(exercise.id)
        self.items = [e for e in self.items if e.id != exercise.id]
        self.last_deleted = exercise
        logger.info("exercise %s deleted", exercise.id)
        return exercise

    def delete_by_id(self, exercise_id: str, confirm=False) -> Exercise:
        exercise = next((e for e in self.items if e.id == exercise_id), None)
        if exercise is None:
            exercise = self.backend.fetch_exercise(exercise_id)
        return self.delete_exercise(exercise, confirm)

    def undo_delete(self) -> Optional[Exercise]:
        exercise = self.last_deleted
        if exercise is None:
            return None
        restored = exercise.model_copy(update={"is_active": True})
        self.backend.insert_exercise(restored)
        self.items = [restored] + [e for e in self.items if e.id != restored.id]
        self.last_deleted = None
        return restored

    def filtered(
        self, training_day: str | None = None, muscle_group: str | None = None
    ) -> List[Exercise]:
        return filter_by_muscle_group(
            filter_by_training_day(self.items, training_day), muscle_group
        )
