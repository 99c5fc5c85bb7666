import datetime
import logging
from dataclasses import asdict
from typing import List, Optional, Union

from fastapi import APIRouter, Body, FastAPI, HTTPException
from pydantic import BaseModel, Field

from backends import Backend, create_backend
from catalog_service import CatalogService
from client import ExerciseDbClient
from config import APP_VERSION, AppConfig, AppContext
from errors import BackendError, ConfigurationError, FitlogError, ValidationError
from models import MUSCLE_GROUP_LABELS, TRAINING_DAY_LABELS
from planner_service import WeeklyPlanService
from profile_service import ProfileService
from secure_store import SecureStore
from session_service import WorkoutSession
from stats_service import (
    StatisticsService,
    month_view,
    week_view,
    workout_card_summary,
    workout_summary_line,
    year_view,
)

logger = logging.getLogger(__name__)

Number = Union[float, str, None]


class ExerciseForm(BaseModel):
    name: str = ""
    description: str = ""
    major_muscle_groups: List[str] = Field(default_factory=list)
    training_days: List[str] = Field(default_factory=list)
    image_url: Optional[str] = None
    video_url: Optional[str] = None


class PlanDayForm(BaseModel):
    day_label: str = ""
    focus: str = ""
    exercises: Union[str, List[str]] = ""
    value: str = ""
    color: str = ""


class MetricsForm(BaseModel):
    weight_kg: Number = None
    chest_cm: Number = None
    waist_cm: Number = None
    hips_cm: Number = None
    thigh_cm: Number = None
    arm_cm: Number = None
    calf_cm: Number = None


def http_error(e: Exception) -> HTTPException:
    """Translate a service error into the matching HTTP status."""
    if isinstance(e, ConfigurationError):
        return HTTPException(status_code=503, detail=str(e))
    if isinstance(e, BackendError):
        return HTTPException(status_code=502, detail=str(e))
    if isinstance(e, ValidationError):
        return HTTPException(status_code=400, detail=str(e))
    if isinstance(e, ValueError) and "not found" in str(e):
        return HTTPException(status_code=404, detail=str(e))
    return HTTPException(status_code=400, detail=str(e))


class FitlogAPI:
    """Provides REST endpoints for the catalog, sessions, plan and history."""

    def __init__(
        self,
        config: AppConfig | None = None,
        *,
        backend: Backend | None = None,
        store: SecureStore | None = None,
        exercise_api: ExerciseDbClient | None = None,
        clock=None,
    ) -> None:
        self.config = config or AppConfig.load()
        self.context = AppContext.from_config(self.config)
        self.backend = backend or create_backend(self.config)
        self.store = store or SecureStore()
        self.planner = WeeklyPlanService(
            self.store,
            self.backend,
            user_id=self.config.user_id,
            mirror=self.config.mirror_plan,
            config=self.config,
        )
        self.catalog = CatalogService(self.backend, self.config, exercise_api)
        self.session = WorkoutSession(
            self.backend, self.config, planner=self.planner, clock=clock
        )
        self.statistics = StatisticsService(self.backend, self.config.user_id)
        self.profile = ProfileService(
            self.store, self.backend, self.config, clock=clock
        )
        self.app = FastAPI(
            title="Fitlog API",
            description="REST API for workout logging, weekly plans and progress",
            version=APP_VERSION,
        )
        self._setup_routes()

    def _plan_state(self) -> dict:
        return {
            "days": [d.model_dump() for d in self.planner.days],
            "week": self.planner.week_key(),
            "completed": self.planner.completed_days(),
            "options": self.planner.day_options(),
            "can_undo": self.planner.undo is not None,
        }

    def _setup_routes(self) -> None:
        exercises_router = APIRouter(prefix="/exercises")
        session_router = APIRouter(prefix="/session")
        plan_router = APIRouter(prefix="/plan")
        history_router = APIRouter(prefix="/history")
        profile_router = APIRouter(prefix="/profile")

        @self.app.get("/config")
        def get_config():
            return {
                "backend": self.config.backend,
                "can_write": self.config.can_write,
                "missing": self.config.missing_credentials(),
                "theme": self.context.theme,
                "user_id": self.context.user_id,
            }

        @self.app.post("/theme/toggle")
        def toggle_theme():
            return {"theme": self.context.toggle_theme()}

        @self.app.get("/enums")
        def list_enums():
            return {
                "muscle_groups": [
                    {"value": k.value, "label": v} for k, v in MUSCLE_GROUP_LABELS.items()
                ],
                "training_days": [
                    {"value": k.value, "label": v}
                    for k, v in TRAINING_DAY_LABELS.items()
                ],
            }

        @exercises_router.get("/search")
        def search_exercises(query: str = "", source: str = "local"):
            try:
                items = self.catalog.search(query, source)
            except (ValueError, FitlogError) as e:
                raise http_error(e)
            return [e.model_dump(mode="json") for e in items]

        @exercises_router.get("")
        def list_exercises(training_day: str = None, muscle_group: str = None):
            return {
                "query": self.catalog.query,
                "source": self.catalog.source,
                "error": self.catalog.error,
                "items": [
                    e.model_dump(mode="json")
                    for e in self.catalog.filtered(training_day, muscle_group)
                ],
            }

        @exercises_router.get("/active")
        def list_active_exercises():
            try:
                items = self.session.available_exercises()
            except (ValueError, FitlogError) as e:
                raise http_error(e)
            return [e.model_dump(mode="json") for e in items]

        @exercises_router.get("/{exercise_id}")
        def get_exercise(exercise_id: str):
            try:
                exercise = self.backend.fetch_exercise(exercise_id)
            except (ValueError, FitlogError) as e:
                raise http_error(e)
            return exercise.model_dump(mode="json")

        @exercises_router.post("")
        def add_exercise(form: ExerciseForm):
            try:
                exercise = self.catalog.add_exercise(
                    form.name,
                    form.major_muscle_groups,
                    form.training_days,
                    form.description,
                    form.image_url,
                    form.video_url,
                )
            except (ValueError, FitlogError) as e:
                raise http_error(e)
            return exercise.model_dump(mode="json")

        @exercises_router.delete("/{exercise_id}")
        def delete_exercise(exercise_id: str, confirm: bool = False):
            try:
                self.catalog.delete_by_id(exercise_id, confirm)
            except (ValueError, FitlogError) as e:
                raise http_error(e)
            return {"status": "deleted"}

        @exercises_router.post("/undo")
        def undo_delete_exercise():
            try:
                restored = self.catalog.undo_delete()
            except (ValueError, FitlogError) as e:
                raise http_error(e)
            if restored is None:
                return {"status": "nothing to undo"}
            return restored.model_dump(mode="json")

        @session_router.get("")
        def get_session():
            return self.session.state()

        @session_router.post("/start")
        def start_session():
            self.session.start()
            return self.session.state()

        @session_router.post("/end")
        def end_session():
            self.session.end()
            return self.session.state()

        @session_router.post("/start_from_plan")
        def start_from_plan(day_id: str):
            day = next((d for d in self.planner.days if d.id == day_id), None)
            if day is None:
                raise HTTPException(status_code=404, detail="plan day not found")
            self.session.start_from_plan(day)
            return self.session.state()

        @session_router.post("/day")
        def select_day(tag: str = ""):
            self.session.select_day(tag)
            return self.session.state()

        @session_router.post("/tick")
        def tick(seconds: int = 1):
            return {"elapsed_seconds": self.session.tick(seconds)}

        @session_router.post("/exercises")
        def add_session_exercise(exercise_id: str):
            try:
                self.session.add_exercise(exercise_id)
            except (ValueError, FitlogError) as e:
                raise http_error(e)
            return self.session.state()

        @session_router.post("/exercises/{key}/sets")
        def add_session_set(key: str):
            try:
                self.session.add_set(key)
            except (ValueError, FitlogError) as e:
                raise http_error(e)
            return self.session.state()

        @session_router.put("/exercises/{key}/sets/{index}")
        def update_session_set(key: str, index: int, field: str, value: str = ""):
            try:
                updated = self.session.update_set(key, index, field, value)
            except (ValueError, FitlogError) as e:
                raise http_error(e)
            return asdict(updated)

        @session_router.delete("/exercises/{key}/sets/{index}")
        def remove_session_set(key: str, index: int):
            try:
                self.session.remove_set(key, index)
            except (ValueError, FitlogError) as e:
                raise http_error(e)
            return self.session.state()

        @session_router.delete("/exercises/{key}")
        def remove_session_exercise(key: str):
            if self.session.remove_exercise(key) is None:
                raise HTTPException(status_code=404, detail="exercise not found")
            return self.session.state()

        @session_router.post("/undo")
        def undo_session_removal():
            self.session.undo_remove()
            return self.session.state()

        @session_router.post("/exercises/{key}/complete")
        def complete_session_exercise(key: str):
            try:
                self.session.mark_complete(key)
            except (ValueError, FitlogError) as e:
                raise http_error(e)
            return self.session.state()

        @session_router.post("/exercises/{key}/toggle")
        def toggle_session_exercise(key: str):
            try:
                self.session.toggle_expanded(key)
            except (ValueError, FitlogError) as e:
                raise http_error(e)
            return self.session.state()

        @session_router.post("/complete")
        def complete_session():
            try:
                workout_id = self.session.complete()
            except (ValueError, FitlogError) as e:
                raise http_error(e)
            return {"id": workout_id}

        @plan_router.get("")
        def get_plan():
            return self._plan_state()

        @plan_router.post("/days")
        def create_plan_day(form: PlanDayForm):
            try:
                day = self.planner.upsert_day(**form.model_dump())
            except (ValueError, FitlogError) as e:
                raise http_error(e)
            return day.model_dump()

        @plan_router.put("/days/{day_id}")
        def update_plan_day(day_id: str, form: PlanDayForm):
            try:
                day = self.planner.upsert_day(day_id=day_id, **form.model_dump())
            except (ValueError, FitlogError) as e:
                raise http_error(e)
            return day.model_dump()

        @plan_router.get("/days/by_value/{tag}")
        def find_plan_day(tag: str):
            day = self.planner.find_by_value(tag)
            if day is None:
                raise HTTPException(status_code=404, detail="plan day not found")
            return day.model_dump()

        @plan_router.delete("/days/{day_id}")
        def delete_plan_day(day_id: str, confirm: bool = False):
            try:
                removal = self.planner.delete_day(day_id, confirm)
            except (ValueError, FitlogError) as e:
                raise http_error(e)
            if removal is None:
                raise HTTPException(status_code=404, detail="plan day not found")
            return self._plan_state()

        @plan_router.post("/undo")
        def undo_delete_plan_day():
            try:
                self.planner.undo_delete()
            except (ValueError, FitlogError) as e:
                raise http_error(e)
            return self._plan_state()

        @plan_router.post("/completed")
        def mark_plan_completed(tag: str):
            try:
                return {"completed": self.planner.mark_completed(tag)}
            except (ValueError, FitlogError) as e:
                raise http_error(e)

        @history_router.get("")
        def get_history():
            try:
                return self.statistics.dashboard()
            except (ValueError, FitlogError) as e:
                raise http_error(e)

        @history_router.get("/async")
        async def get_history_async():
            try:
                workouts = await self.statistics.recent_async()
            except (ValueError, FitlogError) as e:
                raise http_error(e)
            return self.statistics.overview(workouts)

        @history_router.get("/calendar")
        def get_calendar(view: str = "week", year: int = None, month: int = None):
            today = datetime.date.today()
            try:
                workouts = self.statistics.recent()
            except (ValueError, FitlogError) as e:
                raise http_error(e)
            if view == "week":
                return week_view(workouts, today)
            if view == "month":
                try:
                    return month_view(
                        workouts, year or today.year, month or today.month, today
                    )
                except (ValueError, FitlogError) as e:
                    raise http_error(e)
            if view == "year":
                return year_view(workouts, year or today.year)
            raise HTTPException(status_code=400, detail=f"unknown view {view}")

        @history_router.get("/{workout_id}")
        def get_workout(workout_id: str):
            try:
                workout = self.backend.fetch_workout(workout_id)
            except (ValueError, FitlogError) as e:
                raise http_error(e)
            summary = workout_card_summary(workout)
            summary["line"] = workout_summary_line(workout)
            return summary

        @history_router.delete("/{workout_id}")
        def delete_workout(workout_id: str, confirm: bool = False):
            try:
                self.statistics.delete_workout(workout_id, confirm)
            except (ValueError, FitlogError) as e:
                raise http_error(e)
            return {"status": "deleted"}

        @profile_router.get("")
        def get_profile():
            return self.profile.state()

        @profile_router.put("/form")
        def update_profile_form(form: MetricsForm):
            try:
                return self.profile.update_form(**form.model_dump(exclude_unset=True))
            except (ValueError, FitlogError) as e:
                raise http_error(e)

        @profile_router.post("/measurements")
        def add_measurement(form: Optional[MetricsForm] = Body(None)):
            try:
                measurement = self.profile.add_measurement(
                    form.model_dump() if form is not None else None
                )
            except (ValueError, FitlogError) as e:
                raise http_error(e)
            return measurement.model_dump(mode="json")

        @profile_router.delete("/measurements/{measurement_id}")
        def delete_measurement(measurement_id: str, confirm: bool = False):
            try:
                self.profile.delete_measurement(measurement_id, confirm)
            except (ValueError, FitlogError) as e:
                raise http_error(e)
            return {"status": "deleted"}

        @profile_router.put("/goal")
        def save_goal(form: MetricsForm):
            try:
                goal = self.profile.save_goal(form.model_dump())
            except (ValueError, FitlogError) as e:
                raise http_error(e)
            return goal.model_dump(mode="json")

        self.app.include_router(exercises_router)
        self.app.include_router(session_router)
        self.app.include_router(plan_router)
        self.app.include_router(history_router)
        self.app.include_router(profile_router)


def create_app() -> FastAPI:
    api = FitlogAPI()
    logger.info("serving %s backend for %s", api.backend.name, api.config.user_id)
    return api.app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(create_app, factory=True)
