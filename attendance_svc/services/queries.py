from __future__ import annotations
from typing import Iterable
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.clock import Clock, parse_date
from ..core.errors import InvalidInstant
from ..db import bounded
from ..schemas import CheckInRead, DayCount, RosterEntry
from . import ledger


def _check_range(start: str, end: str) -> None:
    if parse_date(start) > parse_date(end):
        raise InvalidInstant(f"range start {start} is after end {end}")


async def list_by_date(db: AsyncSession, company_id: str, day: str) -> list[CheckInRead]:
    parse_date(day)
    rows = await bounded("list_by_date", ledger.list_by_date(db, company_id, day))
    return [CheckInRead.model_validate(r) for r in rows]

async def list_by_range(db: AsyncSession, company_id: str, start: str, end: str) -> list[CheckInRead]:
    """Newest day first, earliest check-in first within a day."""
    _check_range(start, end)
    rows = await bounded("list_by_range", ledger.list_by_range(db, company_id, start, end))
    return [CheckInRead.model_validate(r) for r in rows]

async def count_by_date(db: AsyncSession, company_id: str, day: str) -> int:
    parse_date(day)
    return await bounded("count_by_date", ledger.count_by_date(db, company_id, day))

async def count_today(db: AsyncSession, clock: Clock, company_id: str) -> int:
    return await count_by_date(db, company_id, clock.today(company_id))

async def counts_by_range(db: AsyncSession, company_id: str, start: str, end: str) -> list[DayCount]:
    """Days without any check-in are omitted."""
    _check_range(start, end)
    rows = await bounded("counts_by_range", ledger.counts_by_range(db, company_id, start, end))
    return [DayCount(date=d, count=n) for d, n in rows]

async def has_checked_in(db: AsyncSession, *, employee_id: str, company_id: str, day: str) -> bool:
    parse_date(day)
    row = await bounded(
        "has_checked_in",
        ledger.find_record(db, employee_id=employee_id, company_id=company_id, day=day),
    )
    return row is not None

async def has_checked_in_today(db: AsyncSession, clock: Clock, *, employee_id: str, company_id: str) -> bool:
    return await has_checked_in(
        db, employee_id=employee_id, company_id=company_id, day=clock.today(company_id)
    )

async def absentees(db: AsyncSession, company_id: str, day: str, roster: Iterable[RosterEntry]) -> list[RosterEntry]:
    """Roster entries with no check-in on ``day``; the roster is owned by the caller."""
    present = {r.employee_id for r in await list_by_date(db, company_id, day)}
    return [m for m in roster if m.employee_id not in present]
