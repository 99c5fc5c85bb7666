import os
import sys
import pytest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from db import AsyncBaseRepository, AsyncWorkoutRepository, WorkoutRepository

class NumberRepository(AsyncBaseRepository):
    async def init_db(self) -> None:
        async with self._async_connection() as conn:
            await conn.execute("CREATE TABLE IF NOT EXISTS numbers (val INTEGER)")
            await conn.commit()

    async def add(self, val: int) -> int:
        return await self.execute("INSERT INTO numbers (val) VALUES (?)", (val,))

    async def all(self):
        rows = await self.fetch_all("SELECT val FROM numbers")
        return [r[0] for r in rows]

@pytest.mark.asyncio
async def test_async_repository(tmp_path):
    repo = NumberRepository(str(tmp_path / "test.db"))
    await repo.init_db()
    await repo.add(5)
    assert await repo.all() == [5]


@pytest.mark.asyncio
async def test_async_workout_history(tmp_path):
    db_file = str(tmp_path / "workout.db")
    sync_repo = WorkoutRepository(db_file)
    old = sync_repo.create("u1", "2024-01-01T09:00:00", 30, [])
    new = sync_repo.create("u1", "2024-01-05T09:00:00", 40, [{"exerciseId": "e1", "name": "Row", "sets": []}])
    repo = AsyncWorkoutRepository(db_file)
    rows = await repo.fetch_recent(10, "u1")
    assert [r["id"] for r in rows] == [new, old]
    assert rows[0]["exercises"][0]["name"] == "Row"
    await repo.delete(old)
    assert [r["id"] for r in await repo.fetch_recent()] == [new]
    with pytest.raises(ValueError):
        await repo.delete(old)
