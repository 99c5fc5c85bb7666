from __future__ import annotations

import datetime
import logging
from typing import Callable, Optional

from pydantic import ValidationError as SchemaError

from config import AppConfig
from db import new_id
from errors import ValidationError
from models import MEASUREMENT_FIELDS, BodyMetrics, Goal, Measurement
from secure_store import SecureStore
from stats_service import measurement_change_summary
from tools import MathTools, confirmed

logger = logging.getLogger(__name__)

MEASUREMENTS_KEY = "body_measurements_v1"
GOAL_KEY = "body_goal_v1"
HISTORY_LIMIT = 20

FIELD_LABELS = {
    "weight_kg": "Weight",
    "chest_cm": "Chest",
    "waist_cm": "Waist",
    "hips_cm": "Hips",
    "thigh_cm": "Thigh",
    "arm_cm": "Arm",
    "calf_cm": "Calf",
}


def parse_metrics(form: dict) -> BodyMetrics:
    """Validate a form of text fields; blanks become ``None``."""
    values = {}
    for name in MEASUREMENT_FIELDS:
        raw = form.get(name)
        if raw is None or str(raw).strip() == "":
            values[name] = None
            continue
        number = MathTools.to_number(raw, default=None)
        if number is None:
            raise ValidationError(f"{FIELD_LABELS[name]} must be a number")
        if number < 0:
            raise ValidationError(f"{FIELD_LABELS[name]} cannot be negative")
        values[name] = number
    return BodyMetrics(**values)


class ProfileService:
    """Body measurement history (newest first) and the single body goal."""

    def __init__(
        self,
        store: SecureStore,
        backend=None,
        config: AppConfig | None = None,
        clock: Callable[[], datetime.datetime] | None = None,
    ) -> None:
        self.store = store
        self.backend = backend
        self.config = config or AppConfig()
        self.clock = clock or (
            lambda: datetime.datetime.now(datetime.timezone.utc)
        )
        self.history: list[Measurement] = []
        self.form: dict[str, str] = {name: "" for name in MEASUREMENT_FIELDS}
        self.goal: Optional[Goal] = None
        self.load()

    @property
    def user_id(self) -> str:
        return self.config.user_id

    @property
    def mirrored(self) -> bool:
        return self.backend is not None and self.config.can_write

    def load(self) -> None:
        blob = self.store.get_json(MEASUREMENTS_KEY, {})
        if not isinstance(blob, dict):
            blob = {}
        try:
            self.history = [Measurement(**m) for m in blob.get("history") or []]
        except (SchemaError, TypeError) as e:
            logger.debug("stored measurements are malformed: %s", e)
            self.history = []
        form = blob.get("form")
        if isinstance(form, dict):
            self.form.update(
                {k: str(v) for k, v in form.items() if k in MEASUREMENT_FIELDS}
            )
        raw_goal = self.store.get_json(GOAL_KEY)
        try:
            self.goal = Goal(**raw_goal) if isinstance(raw_goal, dict) else None
        except SchemaError as e:
            logger.debug("stored goal is malformed: %s", e)
            self.goal = None

    def _save_blob(self, history: list[Measurement], form: dict) -> None:
        self.store.set_json(
            MEASUREMENTS_KEY,
            {
                "history": [m.model_dump(mode="json") for m in history],
                "form": form,
            },
        )

    def update_form(self, **fields) -> dict:
        form = dict(self.form)
        for name, value in fields.items():
            if name not in MEASUREMENT_FIELDS:
                raise ValidationError(f"Unknown measurement {name}")
            form[name] = "" if value is None else str(value)
        self._save_blob(self.history, form)
        self.form = form
        return form

    def add_measurement(self, form: dict | None = None) -> Measurement:
        metrics = parse_metrics(self.form if form is None else form)
        if all(v is None for v in metrics.metrics().values()):
            raise ValidationError("Enter at least one measurement")
        measurement = Measurement(
            id=new_id(),
            user_id=self.user_id,
            timestamp=self.clock(),
            **metrics.metrics(),
        )
        if self.mirrored:
            self.backend.save_measurement(measurement)
        history = [measurement] + self.history[: HISTORY_LIMIT - 1]
        self._save_blob(history, self.form)
        self.history = history
        logger.info("measurement %s saved", measurement.id)
        return measurement

    def delete_measurement(self, measurement_id: str, confirm=False) -> Measurement:
        measurement = next((m for m in self.history if m.id == measurement_id), None)
        if measurement is None:
            raise ValueError("measurement not found")
        if not confirmed(confirm, "Delete this measurement?"):
            raise ValidationError("Deletion not confirmed")
        if self.mirrored:
            self.backend.delete_measurement(measurement_id)
        history = [m for m in self.history if m.id != measurement_id]
        self._save_blob(history, self.form)
        self.history = history
        return measurement

    def save_goal(self, form: dict) -> Goal:
        metrics = parse_metrics(form)
        goal = Goal(
            id=self.goal.id if self.goal else None,
            user_id=self.user_id,
            updated_at=self.clock(),
            **metrics.metrics(),
        )
        if self.mirrored:
            goal.id = self.backend.upsert_goal(goal)
        self.store.set_json(GOAL_KEY, goal.model_dump(mode="json"))
        self.goal = goal
        return goal

    def change_summary(self) -> Optional[dict]:
        return measurement_change_summary(self.history)

    def state(self) -> dict:
        return {
            "history": [m.model_dump(mode="json") for m in self.history],
            "form": self.form,
            "goal": self.goal.model_dump(mode="json") if self.goal else None,
            "change": self.change_summary(),
            "mirrored": self.mirrored,
        }
