from __future__ import annotations

import os
import tempfile
from datetime import datetime, timezone

# settings are read once at import time; point them at throwaway infra first
_TMP = tempfile.mkdtemp(prefix="attendance-tests-")
os.environ.setdefault("DATABASE_URL", f"sqlite+aiosqlite:///{_TMP}/app.db")
os.environ.setdefault("AUTH_JWKS_URL", "http://auth.invalid/.well-known/jwks.json")
os.environ["RL_ENABLED"] = "false"
os.environ["PUBLISH_EVENTS"] = "false"

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from attendance_svc.core.clock import Clock
from attendance_svc.db import configure_sqlite
from attendance_svc.models import Base

ZONE = "Europe/Istanbul"  # UTC+3 all year


class FixedClock(Clock):
    """Clock pinned to an instant that tests can move."""

    def __init__(self, instant: datetime, zone: str = ZONE, company_zones=None):
        super().__init__(zone, company_zones)
        self.instant = instant

    def now(self) -> datetime:
        return self.instant

    def set_local(self, *args) -> None:
        self.instant = self.local(datetime(*args)).astimezone(timezone.utc)


@pytest.fixture
def clock() -> FixedClock:
    c = FixedClock(datetime(2026, 2, 17))
    c.set_local(2026, 2, 17, 9, 0)
    return c


@pytest.fixture
async def engine(tmp_path):
    eng = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    configure_sqlite(eng)
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_maker):
    async with session_maker() as s:
        yield s
