from __future__ import annotations

import calendar
import datetime
import math
from typing import Dict, List, Optional

from models import MEASUREMENT_FIELDS, Workout
from errors import ValidationError
from tools import MathTools, confirmed


def _get(obj, name: str, default=None):
    if isinstance(obj, dict):
        return obj.get(name, default)
    return getattr(obj, name, default)


def _round(value: float) -> int:
    return int(math.floor(value + 0.5))


def local_datetime(value: datetime.datetime) -> datetime.datetime:
    """Naive local time for ``value``; naive inputs are taken as local already."""
    if value.tzinfo is not None:
        return value.astimezone().replace(tzinfo=None)
    return value


def local_date(value: datetime.datetime | datetime.date) -> datetime.date:
    if isinstance(value, datetime.datetime):
        return local_datetime(value).date()
    return value


def week_start(day: datetime.date) -> datetime.date:
    """Sunday starting the week that contains ``day``."""
    return day - datetime.timedelta(days=(day.weekday() + 1) % 7)


def set_volume(workout_set) -> float:
    """reps x weight for one set; missing or unparseable values count as 0."""
    return MathTools.to_number(_get(workout_set, "reps")) * MathTools.to_number(
        _get(workout_set, "weight")
    )


def exercise_volume(exercise) -> float:
    return sum(set_volume(s) for s in _get(exercise, "sets") or [])


def workout_volume(workout) -> float:
    return sum(exercise_volume(ex) for ex in _get(workout, "exercises") or [])


def set_count(workout) -> int:
    return sum(len(_get(ex, "sets") or []) for ex in _get(workout, "exercises") or [])


def totals(workouts: List[Workout]) -> Dict[str, int]:
    """Count, total minutes and average minutes of ``workouts``."""
    count = len(workouts)
    total = sum(w.duration_min for w in workouts)
    average = _round(total / count) if count else 0
    return {"count": count, "total_minutes": total, "average_minutes": average}


def weekly_summary(
    workouts: List[Workout], now: datetime.datetime | None = None
) -> Dict[str, float]:
    """Volume and set count of workouts dated within the last seven days."""
    now = local_datetime(now or datetime.datetime.now())
    cutoff = now - datetime.timedelta(days=7)
    recent = [w for w in workouts if local_datetime(w.date) >= cutoff]
    return {
        "workouts": len(recent),
        "volume": sum(workout_volume(w) for w in recent),
        "sets": sum(set_count(w) for w in recent),
    }


def workout_card_summary(workout: Workout) -> dict:
    exercises = [
        {
            "name": ex.name,
            "sets": len(ex.sets),
            "volume": exercise_volume(ex),
        }
        for ex in workout.exercises
    ]
    return {
        "id": workout.id,
        "date": workout.date.isoformat(),
        "duration_min": workout.duration_min,
        "exercises": exercises,
        "total_sets": sum(e["sets"] for e in exercises),
        "total_volume": sum(e["volume"] for e in exercises),
    }


def exercise_breakdown(workouts: List[Workout]) -> Dict[str, Dict[str, float]]:
    """Sets and volume per exercise name across ``workouts``."""
    breakdown: Dict[str, Dict[str, float]] = {}
    for workout in workouts:
        for ex in workout.exercises:
            entry = breakdown.setdefault(ex.name, {"sets": 0, "volume": 0.0})
            entry["sets"] += len(ex.sets)
            entry["volume"] += exercise_volume(ex)
    return breakdown


def summary_line(exercise_count: int, total_sets: int) -> str:
    return f"{exercise_count} exercises | {total_sets} sets"


def workout_summary_line(workout: Workout) -> str:
    return summary_line(len(workout.exercises), set_count(workout))


def _workout_days(workouts: List[Workout]) -> set[datetime.date]:
    return {local_date(w.date) for w in workouts}


def _day_cell(day: datetime.date, days: set, today: datetime.date) -> dict:
    return {
        "date": day.isoformat(),
        "day": day.day,
        "has_workout": day in days,
        "is_today": day == today,
    }


def week_view(
    workouts: List[Workout], today: datetime.date | None = None
) -> List[dict]:
    today = today or datetime.date.today()
    start = week_start(today)
    days = _workout_days(workouts)
    return [
        _day_cell(start + datetime.timedelta(days=i), days, today) for i in range(7)
    ]


def month_view(
    workouts: List[Workout],
    year: int,
    month: int,
    today: datetime.date | None = None,
) -> List[dict]:
    today = today or datetime.date.today()
    days = _workout_days(workouts)
    length = calendar.monthrange(year, month)[1]
    return [
        _day_cell(datetime.date(year, month, d), days, today)
        for d in range(1, length + 1)
    ]


def year_view(workouts: List[Workout], year: int) -> List[dict]:
    counts = [0] * 12
    for workout in workouts:
        day = local_date(workout.date)
        if day.year == year:
            counts[day.month - 1] += 1
    return [
        {"month": i + 1, "label": calendar.month_abbr[i + 1], "count": counts[i]}
        for i in range(12)
    ]


def streaks(
    workouts: List[Workout], today: datetime.date | None = None
) -> Dict[str, int]:
    """Return current and record streaks of consecutive workout days."""
    if not workouts:
        return {"current": 0, "record": 0}
    dates = sorted(_workout_days(workouts))
    record = 1
    current = 1
    for i in range(1, len(dates)):
        if (dates[i] - dates[i - 1]).days == 1:
            current += 1
        else:
            record = max(record, current)
            current = 1
    record = max(record, current)
    if ((today or datetime.date.today()) - dates[-1]).days > 1:
        current = 0
    return {"current": current, "record": record}


def streak_label(days: int) -> str:
    return f"{days} day streak"


def _unit(field: str) -> str:
    return "kg" if field.endswith("_kg") else "cm"


def measurement_change_summary(history: list) -> Optional[Dict[str, dict]]:
    """Change from the oldest to the latest of a newest-first history.

    Returns ``None`` for fewer than two entries. Fields missing at either end
    are left out.
    """
    if len(history) < 2:
        return None
    latest, oldest = history[0], history[-1]
    summary = {}
    for field in MEASUREMENT_FIELDS:
        new, old = _get(latest, field), _get(oldest, field)
        if new is None or old is None:
            continue
        diff = float(new) - float(old)
        if diff > 0:
            tone, arrow = "up", "↑"
        elif diff < 0:
            tone, arrow = "down", "↓"
        else:
            tone, arrow = "flat", "→"
        summary[field] = {
            "diff": round(diff, 1),
            "tone": tone,
            "text": f"{arrow} {abs(diff):.1f} {_unit(field)}",
        }
    return summary


class StatisticsService:
    """Compute history statistics from the most recent saved workouts."""

    RECENT_LIMIT = 10

    def __init__(self, backend, user_id: str | None = None) -> None:
        self.backend = backend
        self.user_id = user_id

    def recent(self) -> List[Workout]:
        return self.backend.fetch_recent_workouts(self.RECENT_LIMIT, self.user_id)

    async def recent_async(self) -> List[Workout]:
        return await self.backend.fetch_recent_workouts_async(
            self.RECENT_LIMIT, self.user_id
        )

    @staticmethod
    def overview(
        workouts: List[Workout], now: datetime.datetime | None = None
    ) -> dict:
        now = now or datetime.datetime.now()
        today = local_date(now)
        streak = streaks(workouts, today)
        return {
            "totals": totals(workouts),
            "week": weekly_summary(workouts, now),
            "streak": dict(streak, label=streak_label(streak["current"])),
            "calendar": week_view(workouts, today),
            "breakdown": exercise_breakdown(workouts),
            "workouts": [workout_card_summary(w) for w in workouts],
        }

    def dashboard(self, now: datetime.datetime | None = None) -> dict:
        return self.overview(self.recent(), now)

    def delete_workout(self, workout_id: str, confirm=False) -> None:
        if not confirmed(confirm, "Delete this workout?"):
            raise ValidationError("Deletion not confirmed")
        self.backend.delete_workout(workout_id)
