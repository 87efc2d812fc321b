from __future__ import annotations

import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Dict

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


class FakeRedis:
    """Just enough of ``redis.asyncio.Redis`` for locks and oauth state."""

    def __init__(self) -> None:
        self.store: Dict[str, Any] = {}

    async def set(self, name: str, value: Any, ex: int | None = None, nx: bool = False) -> bool | None:
        if nx and name in self.store:
            return None
        self.store[name] = value
        return True

    async def get(self, name: str) -> Any:
        return self.store.get(name)

    async def delete(self, *names: str) -> int:
        return sum(1 for name in names if self.store.pop(name, None) is not None)


@asynccontextmanager
async def _temp_database() -> AsyncIterator[Any]:
    from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
    from sqlalchemy.pool import StaticPool

    from musicmap.db import models  # noqa: F401
    from musicmap.db.base import Base

    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield async_sessionmaker(engine, expire_on_commit=False)
    finally:
        await engine.dispose()


@pytest.fixture
def temp_database():
    return _temp_database


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()
