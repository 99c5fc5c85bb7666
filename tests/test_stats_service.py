import datetime
import os
import sys
import unittest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from models import Workout
from stats_service import (
    StatisticsService,
    exercise_breakdown,
    exercise_volume,
    measurement_change_summary,
    month_view,
    set_volume,
    streak_label,
    streaks,
    summary_line,
    totals,
    week_start,
    week_view,
    weekly_summary,
    workout_card_summary,
    workout_summary_line,
    year_view,
)


def make_workout(date, minutes=60, sets=((10, 20.0),), name="Squat"):
    return Workout(
        id=f"w-{date.isoformat()}",
        user_id="u1",
        date=date,
        duration_min=minutes,
        exercises=[
            {
                "exercise_id": name.lower(),
                "name": name,
                "sets": [{"reps": r, "weight": w} for r, w in sets],
            }
        ],
    )


class VolumeTestCase(unittest.TestCase):
    def test_set_and_exercise_volume(self) -> None:
        exercise = {"sets": [{"reps": 10, "weight": 20}, {"reps": 8, "weight": 0}]}
        self.assertEqual(exercise_volume(exercise), 200)
        self.assertEqual(set_volume({"reps": 10, "weight": None}), 0)
        self.assertEqual(set_volume({"reps": "10", "weight": "abc"}), 0)
        self.assertEqual(set_volume({"reps": "5", "weight": "12.5"}), 62.5)
        self.assertEqual(set_volume({"reps": "nan", "weight": "20"}), 0)
        self.assertEqual(set_volume({"reps": "3", "weight": "inf"}), 0)


class AggregationTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.now = datetime.datetime(2024, 6, 20, 12, 0)
        self.workouts = [
            make_workout(self.now, 60, ((10, 20.0), (8, 20.0))),
            make_workout(self.now - datetime.timedelta(days=10), 30, ((5, 100.0),), "Deadlift"),
        ]

    def test_totals(self) -> None:
        self.assertEqual(
            totals(self.workouts),
            {"count": 2, "total_minutes": 90, "average_minutes": 45},
        )
        self.assertEqual(totals([]), {"count": 0, "total_minutes": 0, "average_minutes": 0})

    def test_weekly_summary_excludes_old_workouts(self) -> None:
        week = weekly_summary(self.workouts, self.now)
        self.assertEqual(week, {"workouts": 1, "volume": 360.0, "sets": 2})

    def test_card_summary_and_breakdown(self) -> None:
        card = workout_card_summary(self.workouts[0])
        self.assertEqual(card["exercises"], [{"name": "Squat", "sets": 2, "volume": 360.0}])
        self.assertEqual(card["total_sets"], 2)
        breakdown = exercise_breakdown(self.workouts)
        self.assertEqual(breakdown["Deadlift"], {"sets": 1, "volume": 500.0})
        self.assertEqual(workout_summary_line(self.workouts[0]), "1 exercises | 2 sets")
        self.assertEqual(summary_line(3, 9), "3 exercises | 9 sets")

    def test_overview_is_deterministic(self) -> None:
        first = StatisticsService.overview(self.workouts, self.now)
        second = StatisticsService.overview(self.workouts, self.now)
        self.assertEqual(first, second)
        self.assertEqual(first["streak"]["label"], "1 day streak")


class CalendarTestCase(unittest.TestCase):
    def test_week_starts_on_sunday(self) -> None:
        self.assertEqual(week_start(datetime.date(2024, 6, 20)), datetime.date(2024, 6, 16))
        self.assertEqual(week_start(datetime.date(2024, 6, 16)), datetime.date(2024, 6, 16))
        cells = week_view([], datetime.date(2024, 6, 20))
        self.assertEqual(len(cells), 7)
        self.assertEqual(cells[0]["date"], "2024-06-16")
        self.assertEqual([c["is_today"] for c in cells].index(True), 4)

    def test_month_flags_only_the_workout_day(self) -> None:
        late = make_workout(datetime.datetime(2024, 6, 15, 23, 45))
        cells = month_view([late], 2024, 6, datetime.date(2024, 6, 1))
        self.assertEqual(len(cells), 30)
        flagged = [c["day"] for c in cells if c["has_workout"]]
        self.assertEqual(flagged, [15])

    def test_year_counts_current_year_only(self) -> None:
        workouts = [
            make_workout(datetime.datetime(2024, 1, 3, 8)),
            make_workout(datetime.datetime(2024, 1, 9, 8)),
            make_workout(datetime.datetime(2023, 1, 9, 8)),
        ]
        months = year_view(workouts, 2024)
        self.assertEqual(len(months), 12)
        self.assertEqual(months[0]["count"], 2)
        self.assertEqual(sum(m["count"] for m in months), 2)


class StreakTestCase(unittest.TestCase):
    def test_current_and_record(self) -> None:
        days = [1, 2, 3, 7, 8]
        workouts = [make_workout(datetime.datetime(2024, 5, d, 9)) for d in days]
        self.assertEqual(
            streaks(workouts, datetime.date(2024, 5, 9)), {"current": 2, "record": 3}
        )
        self.assertEqual(
            streaks(workouts, datetime.date(2024, 5, 12)), {"current": 0, "record": 3}
        )
        self.assertEqual(streaks([]), {"current": 0, "record": 0})
        self.assertEqual(streak_label(4), "4 day streak")


class MeasurementSummaryTestCase(unittest.TestCase):
    def test_weight_drop(self) -> None:
        summary = measurement_change_summary([{"weight_kg": 70}, {"weight_kg": 75}])
        self.assertEqual(summary["weight_kg"]["text"], "↓ 5.0 kg")
        self.assertEqual(summary["weight_kg"]["tone"], "down")
        self.assertNotIn("waist_cm", summary)

    def test_uses_oldest_and_latest(self) -> None:
        history = [
            {"waist_cm": 80.3, "arm_cm": 30},
            {"waist_cm": 90},
            {"waist_cm": 78, "arm_cm": 30},
        ]
        summary = measurement_change_summary(history)
        self.assertEqual(summary["waist_cm"]["text"], "↑ 2.3 cm")
        self.assertEqual(summary["arm_cm"]["text"], "→ 0.0 cm")
        self.assertEqual(summary["arm_cm"]["tone"], "flat")

    def test_single_entry_has_no_summary(self) -> None:
        self.assertIsNone(measurement_change_summary([{"weight_kg": 70}]))
        self.assertIsNone(measurement_change_summary([]))


if __name__ == "__main__":
    unittest.main()
