import sqlite3
import aiosqlite
import json
import uuid
import datetime
from contextlib import contextmanager, asynccontextmanager
from typing import List, Tuple, Optional, Iterable


def _casefold(value):
    """Unicode-aware lower-casing for SQL; ``LOWER`` only folds ASCII."""
    return value.casefold() if isinstance(value, str) else value


def new_id() -> str:
    return uuid.uuid4().hex


class Database:
    """Provides SQLite connection management and schema initialization."""

    _TABLE_DEFINITIONS = {
        "exercises": (
            """CREATE TABLE exercises (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    description TEXT,
                    image_url TEXT,
                    video_url TEXT,
                    major_muscle_groups TEXT NOT NULL DEFAULT '[]',
                    training_days TEXT NOT NULL DEFAULT '[]',
                    is_active INTEGER DEFAULT 1
                );""",
            [
                "id",
                "name",
                "description",
                "image_url",
                "video_url",
                "major_muscle_groups",
                "training_days",
                "is_active",
            ],
        ),
        "workouts": (
            """CREATE TABLE workouts (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    date TEXT NOT NULL,
                    started_at TEXT,
                    ended_at TEXT,
                    duration_min INTEGER NOT NULL,
                    exercises TEXT NOT NULL DEFAULT '[]'
                );""",
            [
                "id",
                "user_id",
                "date",
                "started_at",
                "ended_at",
                "duration_min",
                "exercises",
            ],
        ),
        "measurements": (
            """CREATE TABLE measurements (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    timestamp TEXT NOT NULL,
                    weight_kg REAL,
                    chest_cm REAL,
                    waist_cm REAL,
                    hips_cm REAL,
                    thigh_cm REAL,
                    arm_cm REAL,
                    calf_cm REAL
                );""",
            [
                "id",
                "user_id",
                "timestamp",
                "weight_kg",
                "chest_cm",
                "waist_cm",
                "hips_cm",
                "thigh_cm",
                "arm_cm",
                "calf_cm",
            ],
        ),
        "goals": (
            """CREATE TABLE goals (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL UNIQUE,
                    updated_at TEXT,
                    weight_kg REAL,
                    chest_cm REAL,
                    waist_cm REAL,
                    hips_cm REAL,
                    thigh_cm REAL,
                    arm_cm REAL,
                    calf_cm REAL
                );""",
            [
                "id",
                "user_id",
                "updated_at",
                "weight_kg",
                "chest_cm",
                "waist_cm",
                "hips_cm",
                "thigh_cm",
                "arm_cm",
                "calf_cm",
            ],
        ),
        "plan_days": (
            """CREATE TABLE plan_days (
                    id TEXT NOT NULL,
                    user_id TEXT NOT NULL,
                    position INTEGER NOT NULL DEFAULT 0,
                    day_label TEXT NOT NULL,
                    value TEXT NOT NULL,
                    focus TEXT NOT NULL,
                    exercises TEXT NOT NULL DEFAULT '[]',
                    color TEXT,
                    PRIMARY KEY (user_id, id)
                );""",
            [
                "id",
                "user_id",
                "position",
                "day_label",
                "value",
                "focus",
                "exercises",
                "color",
            ],
        ),
    }

    _JSON_COLUMNS = {"major_muscle_groups", "training_days", "exercises"}

    # fill values for NOT NULL columns added to an existing table
    _MIGRATION_DEFAULTS = {
        "name": "''",
        "user_id": "''",
        "date": "''",
        "timestamp": "''",
        "duration_min": "1",
        "position": "0",
        "day_label": "''",
        "value": "''",
        "focus": "''",
        "major_muscle_groups": "'[]'",
        "training_days": "'[]'",
        "exercises": "'[]'",
    }

    def __init__(self, db_path: str = "fitlog.db") -> None:
        self._db_path = db_path
        self._ensure_schema()

    @contextmanager
    def _connection(self):
        connection = sqlite3.connect(self._db_path)
        connection.create_function("casefold", 1, _casefold, deterministic=True)
        try:
            yield connection
            connection.commit()
        finally:
            connection.close()

    def _ensure_schema(self) -> None:
        with self._connection() as conn:
            for table, (sql, columns) in self._TABLE_DEFINITIONS.items():
                self._ensure_table(conn, table, sql, columns)

    def _ensure_table(
        self, conn: sqlite3.Connection, table: str, sql: str, columns: List[str]
    ) -> None:
        cur = conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name=?;", (table,)
        )
        if cur.fetchone() is None:
            conn.execute(sql)
            return

        cur = conn.execute(f"PRAGMA table_info({table});")
        existing_cols = [row[1] for row in cur.fetchall()]
        if existing_cols == columns:
            return

        conn.execute(f"DROP TABLE IF EXISTS {table}_old;")
        conn.execute(f"ALTER TABLE {table} RENAME TO {table}_old;")
        conn.execute(sql)
        common = [c for c in existing_cols if c in columns]
        if common:
            cols = ", ".join(common)
            missing = [
                c
                for c in columns
                if c not in existing_cols and c in self._MIGRATION_DEFAULTS
            ]
            if missing:
                defaults = ", ".join(self._MIGRATION_DEFAULTS[c] for c in missing)
                conn.execute(
                    f"INSERT INTO {table} ({cols}, {', '.join(missing)}) "
                    f"SELECT {cols}, {defaults} FROM {table}_old;"
                )
            else:
                conn.execute(
                    f"INSERT INTO {table} ({cols}) SELECT {cols} FROM {table}_old;"
                )
        conn.execute(f"DROP TABLE {table}_old;")

    @classmethod
    def _row_dict(cls, columns: Iterable[str], row: Tuple) -> dict:
        result = {}
        for col, value in zip(columns, row):
            if col in cls._JSON_COLUMNS:
                value = json.loads(value) if value else []
            result[col] = value
        return result


class BaseRepository(Database):
    """Base repository providing helper methods."""

    def execute(self, query: str, params: Tuple = ()) -> int:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return cursor.rowcount

    def fetch_all(self, query: str, params: Tuple = ()) -> List[Tuple]:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return cursor.fetchall()

    def _exists(self, table: str, row_id: str) -> bool:
        rows = self.fetch_all(f"SELECT id FROM {table} WHERE id = ?;", (row_id,))
        return bool(rows)


class AsyncDatabase(Database):
    """Provides asynchronous connection management."""

    @asynccontextmanager
    async def _async_connection(self):
        conn = await aiosqlite.connect(self._db_path)
        try:
            yield conn
            await conn.commit()
        finally:
            await conn.close()


class AsyncBaseRepository(AsyncDatabase):
    """Asynchronous variant of BaseRepository using aiosqlite."""

    async def execute(self, query: str, params: Tuple = ()) -> int:
        async with self._async_connection() as conn:
            cursor = await conn.execute(query, params)
            await conn.commit()
            return cursor.rowcount

    async def fetch_all(self, query: str, params: Tuple = ()) -> List[Tuple]:
        async with self._async_connection() as conn:
            cursor = await conn.execute(query, params)
            rows = await cursor.fetchall()
            return rows


class ExerciseRepository(BaseRepository):
    """Repository for the exercise catalog table."""

    COLUMNS = Database._TABLE_DEFINITIONS["exercises"][1]

    def add(
        self,
        name: str,
        description: str | None = None,
        major_muscle_groups: Iterable[str] = (),
        training_days: Iterable[str] = (),
        image_url: str | None = None,
        video_url: str | None = None,
        is_active: bool | None = True,
        exercise_id: str | None = None,
    ) -> str:
        if not name or not name.strip():
            raise ValueError("name required")
        eid = exercise_id or new_id()
        self.execute(
            "INSERT INTO exercises (id, name, description, image_url, video_url, major_muscle_groups, training_days, is_active) VALUES (?, ?, ?, ?, ?, ?, ?, ?);",
            (
                eid,
                name.strip(),
                description,
                image_url,
                video_url,
                json.dumps(list(major_muscle_groups)),
                json.dumps(list(training_days)),
                None if is_active is None else int(is_active),
            ),
        )
        return eid

    def update(self, exercise_id: str, **fields) -> None:
        if not self._exists("exercises", exercise_id):
            raise ValueError("exercise not found")
        assignments = []
        params: list = []
        for col, value in fields.items():
            if col not in self.COLUMNS or col == "id":
                raise ValueError(f"unknown column {col}")
            if col in self._JSON_COLUMNS:
                value = json.dumps(list(value))
            elif col == "is_active" and value is not None:
                value = int(value)
            assignments.append(f"{col} = ?")
            params.append(value)
        if assignments:
            params.append(exercise_id)
            self.execute(
                f"UPDATE exercises SET {', '.join(assignments)} WHERE id = ?;",
                tuple(params),
            )

    def delete(self, exercise_id: str) -> None:
        if not self._exists("exercises", exercise_id):
            raise ValueError("exercise not found")
        self.execute("DELETE FROM exercises WHERE id = ?;", (exercise_id,))

    def fetch_detail(self, exercise_id: str) -> dict:
        rows = self.fetch_all(
            f"SELECT {', '.join(self.COLUMNS)} FROM exercises WHERE id = ?;",
            (exercise_id,),
        )
        if not rows:
            raise ValueError("exercise not found")
        return self._row_dict(self.COLUMNS, rows[0])

    def search(self, query: str, limit: int = 50) -> list[dict]:
        """Case-insensitive substring match over active (or unflagged) rows."""
        rows = self.fetch_all(
            f"SELECT {', '.join(self.COLUMNS)} FROM exercises "
            "WHERE casefold(name) LIKE ? AND (is_active IS NULL OR is_active = 1) "
            "ORDER BY name LIMIT ?;",
            (f"%{query.casefold()}%", limit),
        )
        return [self._row_dict(self.COLUMNS, r) for r in rows]

    def fetch_active(self, limit: int = 100) -> list[dict]:
        rows = self.fetch_all(
            f"SELECT {', '.join(self.COLUMNS)} FROM exercises "
            "WHERE is_active IS NULL OR is_active = 1 ORDER BY name LIMIT ?;",
            (limit,),
        )
        return [self._row_dict(self.COLUMNS, r) for r in rows]


class WorkoutRepository(BaseRepository):
    """Repository for completed workout sessions."""

    COLUMNS = Database._TABLE_DEFINITIONS["workouts"][1]

    def create(
        self,
        user_id: str,
        date: str,
        duration_min: int,
        exercises: list[dict],
        started_at: str | None = None,
        ended_at: str | None = None,
        workout_id: str | None = None,
    ) -> str:
        if duration_min <= 0:
            raise ValueError("duration must be positive")
        wid = workout_id or new_id()
        self.execute(
            "INSERT INTO workouts (id, user_id, date, started_at, ended_at, duration_min, exercises) VALUES (?, ?, ?, ?, ?, ?, ?);",
            (
                wid,
                user_id,
                date,
                started_at,
                ended_at,
                duration_min,
                json.dumps(exercises),
            ),
        )
        return wid

    def fetch_recent(self, limit: int = 10, user_id: str | None = None) -> list[dict]:
        query = f"SELECT {', '.join(self.COLUMNS)} FROM workouts"
        params: list = []
        if user_id:
            query += " WHERE user_id = ?"
            params.append(user_id)
        query += " ORDER BY date DESC LIMIT ?;"
        params.append(limit)
        rows = self.fetch_all(query, tuple(params))
        return [self._row_dict(self.COLUMNS, r) for r in rows]

    def fetch_detail(self, workout_id: str) -> dict:
        rows = self.fetch_all(
            f"SELECT {', '.join(self.COLUMNS)} FROM workouts WHERE id = ?;",
            (workout_id,),
        )
        if not rows:
            raise ValueError("workout not found")
        return self._row_dict(self.COLUMNS, rows[0])

    def delete(self, workout_id: str) -> None:
        if not self._exists("workouts", workout_id):
            raise ValueError("workout not found")
        self.execute("DELETE FROM workouts WHERE id = ?;", (workout_id,))


class AsyncWorkoutRepository(AsyncBaseRepository):
    """Async repository for reading workout history."""

    COLUMNS = WorkoutRepository.COLUMNS

    async def fetch_recent(
        self, limit: int = 10, user_id: str | None = None
    ) -> list[dict]:
        query = f"SELECT {', '.join(self.COLUMNS)} FROM workouts"
        params: list = []
        if user_id:
            query += " WHERE user_id = ?"
            params.append(user_id)
        query += " ORDER BY date DESC LIMIT ?;"
        params.append(limit)
        rows = await self.fetch_all(query, tuple(params))
        return [self._row_dict(self.COLUMNS, r) for r in rows]

    async def delete(self, workout_id: str) -> None:
        rows = await self.fetch_all(
            "SELECT id FROM workouts WHERE id = ?;", (workout_id,)
        )
        if not rows:
            raise ValueError("workout not found")
        await self.execute("DELETE FROM workouts WHERE id = ?;", (workout_id,))


class MeasurementRepository(BaseRepository):
    """Repository for body measurement snapshots."""

    COLUMNS = Database._TABLE_DEFINITIONS["measurements"][1]
    METRICS = COLUMNS[3:]

    def upsert(self, row: dict) -> str:
        mid = row.get("id") or new_id()
        values = [mid, row["user_id"], row["timestamp"]] + [
            row.get(col) for col in self.METRICS
        ]
        placeholders = ", ".join("?" for _ in self.COLUMNS)
        updates = ", ".join(f"{c}=excluded.{c}" for c in self.COLUMNS[1:])
        self.execute(
            f"INSERT INTO measurements ({', '.join(self.COLUMNS)}) VALUES ({placeholders}) "
            f"ON CONFLICT(id) DO UPDATE SET {updates};",
            tuple(values),
        )
        return mid

    def fetch_history(self, user_id: str, limit: int = 20) -> list[dict]:
        rows = self.fetch_all(
            f"SELECT {', '.join(self.COLUMNS)} FROM measurements "
            "WHERE user_id = ? ORDER BY timestamp DESC LIMIT ?;",
            (user_id, limit),
        )
        return [self._row_dict(self.COLUMNS, r) for r in rows]

    def delete(self, measurement_id: str) -> None:
        if not self._exists("measurements", measurement_id):
            raise ValueError("measurement not found")
        self.execute("DELETE FROM measurements WHERE id = ?;", (measurement_id,))


class GoalRepository(BaseRepository):
    """Repository for the single measurement goal of each user."""

    COLUMNS = Database._TABLE_DEFINITIONS["goals"][1]
    METRICS = COLUMNS[3:]

    def fetch(self, user_id: str) -> Optional[dict]:
        rows = self.fetch_all(
            f"SELECT {', '.join(self.COLUMNS)} FROM goals WHERE user_id = ?;",
            (user_id,),
        )
        return self._row_dict(self.COLUMNS, rows[0]) if rows else None

    def upsert(self, user_id: str, metrics: dict) -> str:
        """Update the user's goal if one exists, else insert it."""
        now = datetime.datetime.now(datetime.timezone.utc).isoformat()
        existing = self.fetch(user_id)
        values = [metrics.get(col) for col in self.METRICS]
        if existing:
            assignments = ", ".join(f"{c} = ?" for c in self.METRICS)
            self.execute(
                f"UPDATE goals SET updated_at = ?, {assignments} WHERE user_id = ?;",
                tuple([now] + values + [user_id]),
            )
            return existing["id"]
        gid = new_id()
        placeholders = ", ".join("?" for _ in self.COLUMNS)
        self.execute(
            f"INSERT INTO goals ({', '.join(self.COLUMNS)}) VALUES ({placeholders});",
            tuple([gid, user_id, now] + values),
        )
        return gid


class PlanDayRepository(BaseRepository):
    """Mirror of the weekly plan; always rewritten as a whole."""

    COLUMNS = Database._TABLE_DEFINITIONS["plan_days"][1]

    def replace_all(self, user_id: str, days: list[dict]) -> None:
        with self._connection() as conn:
            conn.execute("DELETE FROM plan_days WHERE user_id = ?;", (user_id,))
            for position, day in enumerate(days):
                conn.execute(
                    "INSERT INTO plan_days (id, user_id, position, day_label, value, focus, exercises, color) VALUES (?, ?, ?, ?, ?, ?, ?, ?);",
                    (
                        day["id"],
                        user_id,
                        position,
                        day["day_label"],
                        day["value"],
                        day["focus"],
                        json.dumps(day.get("exercises", [])),
                        day.get("color"),
                    ),
                )

    def fetch_all_days(self, user_id: str) -> list[dict]:
        rows = self.fetch_all(
            f"SELECT {', '.join(self.COLUMNS)} FROM plan_days WHERE user_id = ? ORDER BY position;",
            (user_id,),
        )
        return [self._row_dict(self.COLUMNS, r) for r in rows]
