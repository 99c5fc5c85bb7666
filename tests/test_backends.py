import datetime
import os
import sqlite3
import sys

import pytest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from backends import (
    DocumentBackend,
    RelationalBackend,
    camel_keys,
    create_backend,
    snake_keys,
    to_camel,
    to_snake,
)
from config import AppConfig
from errors import BackendError
from models import Exercise, Goal, Measurement, PlanDay, Workout


class RecordingDocumentClient:
    def __init__(self, results=None):
        self.results = results
        self.queries = []
        self.mutations = []

    def query(self, groq, params=None):
        self.queries.append((groq, params or {}))
        return self.results

    def mutate(self, mutations):
        self.mutations.extend(mutations)
        return []


def _workout(day, user="u1", reps=10, weight=20.0):
    return Workout(
        user_id=user,
        date=datetime.datetime(2024, 3, day, 18, 0),
        duration_min=45,
        exercises=[
            {
                "exercise_id": "e1",
                "name": "Squat",
                "sets": [{"reps": reps, "weight": weight, "weight_unit": "lbs"}],
            }
        ],
    )


def test_case_mapping():
    assert to_camel("major_muscle_groups") == "majorMuscleGroups"
    assert to_snake("majorMuscleGroups") == "major_muscle_groups"
    assert camel_keys({"duration_min": 5}) == {"durationMin": 5}
    assert snake_keys({"_id": "x", "imageUrl": "u"}) == {"image_url": "u"}


def test_create_backend_selects_adapter(tmp_path):
    relational = create_backend(AppConfig(db_path=str(tmp_path / "f.db")))
    assert isinstance(relational, RelationalBackend)
    document = create_backend(AppConfig(backend="document", sanity_project_id="p"))
    assert isinstance(document, DocumentBackend)
    assert document.client.project_id == "p"


def test_relational_exercise_flow(tmp_path):
    backend = RelationalBackend(str(tmp_path / "f.db"))
    eid = backend.insert_exercise(
        Exercise(name="Hip thrust", major_muscle_groups=["gluteusMaximus"], training_days=["legsGlutesDay"])
    )
    found = backend.search_exercises("THRUST")
    assert [e.id for e in found] == [eid]
    assert found[0].training_days[0].value == "legsGlutesDay"
    updated = found[0].model_copy(update={"name": "Barbell hip thrust"})
    backend.update_exercise(updated)
    assert backend.list_active_exercises()[0].name == "Barbell hip thrust"
    assert backend.fetch_exercise(eid).name == "Barbell hip thrust"
    backend.delete_exercise(eid)
    assert backend.list_active_exercises() == []
    with pytest.raises(ValueError):
        backend.delete_exercise(eid)


def test_relational_workouts_keep_set_order(tmp_path):
    backend = RelationalBackend(str(tmp_path / "f.db"))
    workout = _workout(1)
    workout.exercises[0].sets.append(workout.exercises[0].sets[0].model_copy(update={"reps": 8}))
    wid = backend.insert_workout(workout)
    backend.insert_workout(_workout(2, user="other"))
    history = backend.fetch_recent_workouts(10, "u1")
    assert [w.id for w in history] == [wid]
    sets = history[0].exercises[0].sets
    assert [s.reps for s in sets] == [10, 8]
    assert sets[0].weight_unit.value == "lb"
    assert backend.fetch_workout(wid).duration_min == 45
    backend.delete_workout(wid)
    assert backend.fetch_recent_workouts(10, "u1") == []
    with pytest.raises(ValueError):
        backend.fetch_workout(wid)


@pytest.mark.asyncio
async def test_relational_async_history(tmp_path):
    backend = RelationalBackend(str(tmp_path / "f.db"))
    backend.insert_workout(_workout(1))
    backend.insert_workout(_workout(3))
    history = await backend.fetch_recent_workouts_async(10, "u1")
    assert [w.date.day for w in history] == [3, 1]


def test_relational_measurements_goal_and_plan(tmp_path):
    backend = RelationalBackend(str(tmp_path / "f.db"))
    backend.save_measurement(
        Measurement(id="m1", user_id="u1", timestamp="2024-01-01T08:00:00", weight_kg=70)
    )
    assert backend.fetch_measurements("u1")[0].weight_kg == 70
    backend.delete_measurement("m1")
    assert backend.fetch_measurements("u1") == []

    assert backend.fetch_goal("u1") is None
    gid = backend.upsert_goal(Goal(user_id="u1", weight_kg=65))
    assert backend.upsert_goal(Goal(user_id="u1", weight_kg=64)) == gid
    assert backend.fetch_goal("u1").weight_kg == 64

    backend.save_plan("u1", [PlanDay(id="d1", day_label="Mon", value="backDay", focus="Back")])
    assert backend.plan_days.fetch_all_days("u1")[0]["focus"] == "Back"


def test_relational_wraps_sqlite_errors(tmp_path, monkeypatch):
    backend = RelationalBackend(str(tmp_path / "f.db"))

    def broken(*args, **kwargs):
        raise sqlite3.OperationalError("disk I/O error")

    monkeypatch.setattr(backend.workouts, "fetch_recent", broken)
    with pytest.raises(BackendError) as exc:
        backend.fetch_recent_workouts()
    assert exc.value.operation == "fetch_recent_workouts"


def test_document_exercise_queries_and_mutations():
    client = RecordingDocumentClient(
        [
            {
                "_id": "ex1",
                "_type": "exercise",
                "name": "Lat pulldown",
                "majorMuscleGroups": ["latissimusDorsi"],
                "trainingDays": ["backDay"],
                "isActive": None,
            }
        ]
    )
    backend = DocumentBackend(client)
    found = backend.search_exercises("lat")
    assert found[0].id == "ex1"
    assert found[0].is_active is True
    groq, params = client.queries[0]
    assert params == {"pattern": "*lat*"}
    assert "[0...50]" in groq

    new_id = backend.insert_exercise(Exercise(name="Row", major_muscle_groups=["rhomboids"], training_days=["backDay"]))
    created = client.mutations[0]["create"]
    assert created["_id"] == new_id
    assert created["majorMuscleGroups"] == ["rhomboids"]
    assert created["_type"] == "exercise"

    backend.delete_exercise("ex1")
    assert client.mutations[-1] == {"delete": {"id": "ex1"}}


def test_document_workout_round_trip_shape():
    client = RecordingDocumentClient()
    backend = DocumentBackend(client)
    backend.insert_workout(_workout(4))
    doc = client.mutations[0]["create"]
    assert doc["_type"] == "workout"
    assert doc["durationMin"] == 45
    assert doc["userId"] == "u1"
    assert doc["exercises"][0]["sets"][0]["weightUnit"] == "lb"
    assert "_key" in doc["exercises"][0]

    client.results = [dict(doc)]
    history = backend.fetch_recent_workouts(10, "u1")
    assert history[0].id == doc["_id"]
    assert history[0].exercises[0].sets[0].reps == 10
    groq, params = client.queries[-1]
    assert "order(date desc)[0...10]" in groq
    assert params == {"userId": "u1"}

    client.results = dict(doc)
    assert backend.fetch_workout(doc["_id"]).duration_min == 45
    groq, params = client.queries[-1]
    assert params == {"id": doc["_id"]}
    client.results = None
    with pytest.raises(ValueError):
        backend.fetch_workout("missing")


def test_document_reads_legacy_set_counts():
    client = RecordingDocumentClient(
        [
            {
                "_id": "old1",
                "_type": "workout",
                "userId": "u1",
                "date": "2024-02-01T10:00:00Z",
                "durationMin": 50,
                "exercises": [
                    {
                        "_key": "k1",
                        "exercise": {"_type": "reference", "_ref": "ex-squat"},
                        "sets": 3,
                        "repsPerSet": 8,
                        "weight": 60,
                        "weightUnit": "kg",
                    },
                    {"_key": "k2", "exercise": {"_ref": "ex-plank"}, "sets": None},
                ],
            }
        ]
    )
    workout = DocumentBackend(client).fetch_recent_workouts(10, "u1")[0]
    squat, plank = workout.exercises
    assert squat.exercise_id == "ex-squat"
    assert [(s.reps, s.weight) for s in squat.sets] == [(8, 60.0)] * 3
    assert plank.exercise_id == "ex-plank"
    assert plank.sets == []


def test_document_goal_upsert_uses_one_document_per_user():
    client = RecordingDocumentClient()
    backend = DocumentBackend(client)
    assert backend.upsert_goal(Goal(user_id="u1", weight_kg=60)) == "goal-u1"
    backend.upsert_goal(Goal(user_id="u1", weight_kg=59))
    ids = [m["createOrReplace"]["_id"] for m in client.mutations]
    assert ids == ["goal-u1", "goal-u1"]
    assert client.mutations[-1]["createOrReplace"]["weightKg"] == 59
