import datetime
import os
import sys

import pytest
from pydantic import ValidationError

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from models import (
    Exercise,
    MuscleGroup,
    MUSCLE_GROUP_LABELS,
    TrainingDay,
    TRAINING_DAY_LABELS,
    WeightUnit,
    Workout,
    WorkoutSet,
    Measurement,
)


def test_every_enum_value_has_a_label():
    assert set(MUSCLE_GROUP_LABELS) == set(MuscleGroup)
    assert set(TRAINING_DAY_LABELS) == set(TrainingDay)
    assert TRAINING_DAY_LABELS[TrainingDay.LEGS_GLUTES] == "Legs & Glutes Day"


def test_legacy_pound_unit_is_normalised():
    assert WorkoutSet(reps=5, weight=100, weight_unit="lbs").weight_unit is WeightUnit.LB
    assert WorkoutSet(reps=5, weight_unit="LB").weight_unit is WeightUnit.LB
    assert WorkoutSet(reps=5, weight_unit=None).weight_unit is WeightUnit.KG


def test_workout_set_rejects_negative_values():
    with pytest.raises(ValidationError):
        WorkoutSet(reps=-1)
    with pytest.raises(ValidationError):
        WorkoutSet(reps=1, weight=-5)


def test_exercise_defaults():
    ex = Exercise(name="Squat", is_active=None, description=None)
    assert ex.is_active is True
    assert ex.description == "No description provided."
    with pytest.raises(ValidationError):
        Exercise(name="")


def test_exercise_rejects_unknown_tags():
    with pytest.raises(ValidationError):
        Exercise(name="Curl", major_muscle_groups=["forearms"])


def test_derive_duration():
    start = datetime.datetime(2024, 5, 1, 10, 0)
    assert Workout.derive_duration(start, start + datetime.timedelta(minutes=44, seconds=40)) == 45
    assert Workout.derive_duration(start, start + datetime.timedelta(seconds=5)) == 1
    assert Workout.derive_duration(None, None, 30) == 30
    with pytest.raises(ValueError):
        Workout.derive_duration(None, None)


def test_workout_requires_positive_duration():
    with pytest.raises(ValidationError):
        Workout(user_id="u", date=datetime.datetime(2024, 1, 1), duration_min=0)


def test_measurement_fields():
    m = Measurement(
        id="m1",
        user_id="u",
        timestamp="2024-01-01T08:00:00",
        weight_kg=70.5,
    )
    assert m.metrics()["weight_kg"] == 70.5
    assert m.metrics()["waist_cm"] is None
