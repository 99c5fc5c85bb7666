from __future__ import annotations

import datetime
import logging
import time
from typing import Callable, Optional

from pydantic import ValidationError as SchemaError

from config import AppConfig
from errors import ValidationError
from models import PlanDay, Removal, TRAINING_DAY_LABELS
from secure_store import SecureStore
from stats_service import week_start
from tools import MathTools, SlugTools, confirmed, pick_color

logger = logging.getLogger(__name__)

PLAN_KEY = "weekly_plan_v1"
COMPLETED_KEY = "weekly_completed_{week}"

DEFAULT_PLAN = [
    {
        "id": "plan-mon",
        "day_label": "Monday",
        "value": "legsGlutesDay",
        "focus": "Legs / Glutes",
        "exercises": [
            "Hip thrusts - 4x20",
            "Cable kickbacks - 3x12",
            "Squats (Smith) - 4x10",
        ],
        "color": "#F2E8FF",
    },
    {
        "id": "plan-tue",
        "day_label": "Tuesday",
        "value": "shouldersArmsDay",
        "focus": "Shoulders / Arms",
        "exercises": [
            "Pushup machine - 4x10",
            "Arnold press - 4x10",
            "Cable curl - 4x15",
        ],
        "color": "#E8F3FF",
    },
    {
        "id": "plan-wed",
        "day_label": "Wednesday",
        "value": "backDay",
        "focus": "Back",
        "exercises": [
            "Lat pulldown - 4x20",
            "Cable row - 4x20",
            "Upright row - 3x12",
        ],
        "color": "#E9FBF2",
    },
    {
        "id": "plan-thu",
        "day_label": "Thursday",
        "value": "chestArmsDay",
        "focus": "Chest / Arms",
        "exercises": [
            "Incline bench - 4x10",
            "Chest fly - 4x12",
            "Triceps dips - 4x15",
        ],
        "color": "#FFF4E5",
    },
    {
        "id": "plan-fri",
        "day_label": "Friday",
        "value": "glutesHamstringsDay",
        "focus": "Glutes / Hamstrings",
        "exercises": [
            "Bulgarian split squat - 3x10",
            "Romanian deadlift - 4x12",
            "Sumo squat - 3x15",
        ],
        "color": "#E8F7FF",
    },
    {
        "id": "plan-sat",
        "day_label": "Saturday",
        "value": "absCoreDay",
        "focus": "Abs / Core",
        "exercises": [
            "Captain's chair - 3x30",
            "Cable crunch - 3x30",
            "Plank - 3x30 sec",
        ],
        "color": "#FFF0F2",
    },
]


def default_plan() -> list[PlanDay]:
    return [PlanDay(**day) for day in DEFAULT_PLAN]


def split_exercises(text) -> list[str]:
    """Split free text on newlines, trimming and dropping blank lines."""
    if isinstance(text, (list, tuple)):
        lines = text
    else:
        lines = str(text or "").splitlines()
    return [line.strip() for line in lines if line and line.strip()]


class WeeklyPlanService:
    """Editable weekly schedule kept in the secure store.

    Every edit writes the whole plan; when ``mirror`` is set and the
    configuration can write, the list is also written to the backend.
    """

    def __init__(
        self,
        store: SecureStore,
        backend=None,
        user_id: str = "demo-user",
        mirror: bool = False,
        clock: Callable[[], float] | None = None,
        config: AppConfig | None = None,
    ) -> None:
        self.store = store
        self.backend = backend
        self.user_id = user_id
        self.mirror = mirror
        self.config = config
        self.clock = clock or time.time
        self.undo: Optional[Removal] = None
        self.days: list[PlanDay] = self.load()

    def _now_ms(self) -> int:
        return int(self.clock() * 1000)

    def load(self) -> list[PlanDay]:
        raw = self.store.get_json(PLAN_KEY)
        if not isinstance(raw, list) or not raw:
            return default_plan()
        try:
            return [PlanDay(**item) for item in raw]
        except (SchemaError, TypeError) as e:
            logger.debug("stored plan is malformed, using default: %s", e)
            return default_plan()

    @property
    def mirrored(self) -> bool:
        """Mirror only when enabled and the backend accepts writes."""
        if not self.mirror or self.backend is None:
            return False
        return self.config is None or self.config.can_write

    def _persist(self, days: list[PlanDay]) -> None:
        if self.mirrored:
            self.backend.save_plan(self.user_id, days)
        self.store.set_json(PLAN_KEY, [d.model_dump() for d in days])
        self.days = days

    def upsert_day(
        self,
        day_label: str = "",
        focus: str = "",
        exercises="",
        value: str = "",
        color: str = "",
        day_id: str | None = None,
    ) -> PlanDay:
        now_ms = self._now_ms()
        label = (day_label or "").strip() or "New Day"
        day = PlanDay(
            id=day_id or f"plan-{now_ms}",
            day_label=label,
            value=SlugTools.first_slug([value, day_label, focus], now_ms),
            focus=(focus or "").strip() or "Training Day",
            exercises=split_exercises(exercises),
            color=(color or "").strip() or pick_color(label),
        )
        days = list(self.days)
        for i, existing in enumerate(days):
            if existing.id == day.id:
                days[i] = day
                break
        else:
            days.append(day)
        self._persist(days)
        logger.info("plan day %s saved", day.id)
        return day

    def delete_day(self, day_id: str, confirm=False) -> Optional[Removal]:
        index = next((i for i, d in enumerate(self.days) if d.id == day_id), None)
        if index is None:
            return None
        day = self.days[index]
        if not confirmed(confirm, f"Delete {day.day_label}?"):
            raise ValidationError("Deletion not confirmed")
        days = self.days[:index] + self.days[index + 1 :]
        self._persist(days)
        self.undo = Removal(day, index)
        return self.undo

    def undo_delete(self) -> Optional[PlanDay]:
        removal = self.undo
        if removal is None:
            return None
        day = removal.removed
        if not any(d.id == day.id for d in self.days):
            days = list(self.days)
            index = int(MathTools.clamp(removal.original_index, 0, len(days)))
            days.insert(index, day)
            self._persist(days)
        self.undo = None
        return day

    def find_by_value(self, value: str) -> Optional[PlanDay]:
        return next((d for d in self.days if d.value == value), None)

    def day_options(self) -> list[dict]:
        """Built-in training-day options merged with the plan's tags."""
        options = [
            {"value": tag.value, "label": label}
            for tag, label in TRAINING_DAY_LABELS.items()
        ]
        for day in self.days:
            match = next((o for o in options if o["value"] == day.value), None)
            if match is not None:
                match["label"] = day.focus
            else:
                options.append({"value": day.value, "label": day.focus})
        return options

    @staticmethod
    def week_key(today: datetime.date | None = None) -> str:
        return week_start(today or datetime.date.today()).isoformat()

    def completed_days(self, today: datetime.date | None = None) -> list[str]:
        key = COMPLETED_KEY.format(week=self.week_key(today))
        raw = self.store.get_json(key, [])
        return [tag for tag in raw if isinstance(tag, str)] if isinstance(raw, list) else []

    def mark_completed(self, tag: str, today: datetime.date | None = None) -> list[str]:
        done = self.completed_days(today)
        if tag and tag not in done:
            done.append(tag)
            key = COMPLETED_KEY.format(week=self.week_key(today))
            self.store.set_json(key, done)
        return done
