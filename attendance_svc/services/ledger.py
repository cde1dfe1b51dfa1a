from __future__ import annotations
from typing import Sequence
from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.errors import InvariantViolation
from ..models import CheckInRecord, InsertResult


async def find_record(db: AsyncSession, *, employee_id: str, company_id: str, day: str) -> CheckInRecord | None:
    return (await db.execute(
        select(CheckInRecord).where(
            CheckInRecord.employee_id == employee_id,
            CheckInRecord.company_id == company_id,
            CheckInRecord.date == day,
        )
    )).scalar_one_or_none()

async def insert_if_absent(db: AsyncSession, record: CheckInRecord) -> tuple[InsertResult, CheckInRecord]:
    """Single conditional write keyed by (employee, company, date).

    No existence check up front: the unique constraint picks exactly one
    winner among concurrent writers, everyone else gets ALREADY_EXISTS along
    with the stored record.
    """
    db.add(record)
    try:
        await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        existing = await find_record(
            db, employee_id=record.employee_id, company_id=record.company_id, day=record.date
        )
        if existing is None:
            raise InvariantViolation(
                f"check-in insert for {record.employee_id}/{record.company_id}/{record.date} "
                "conflicted but no record exists"
            ) from exc
        return InsertResult.ALREADY_EXISTS, existing
    return InsertResult.INSERTED, record


# --- read primitives ---

async def list_by_date(db: AsyncSession, company_id: str, day: str) -> Sequence[CheckInRecord]:
    return (await db.execute(
        select(CheckInRecord)
        .where(CheckInRecord.company_id == company_id, CheckInRecord.date == day)
        .order_by(CheckInRecord.check_in_at.asc())
    )).scalars().all()

async def list_by_range(db: AsyncSession, company_id: str, start: str, end: str) -> Sequence[CheckInRecord]:
    # YYYY-MM-DD compares correctly as text
    return (await db.execute(
        select(CheckInRecord)
        .where(
            CheckInRecord.company_id == company_id,
            CheckInRecord.date >= start,
            CheckInRecord.date <= end,
        )
        .order_by(CheckInRecord.date.desc(), CheckInRecord.check_in_at.asc())
    )).scalars().all()

async def count_by_date(db: AsyncSession, company_id: str, day: str) -> int:
    return (await db.execute(
        select(func.count(CheckInRecord.id))
        .where(CheckInRecord.company_id == company_id, CheckInRecord.date == day)
    )).scalar_one()

async def counts_by_range(db: AsyncSession, company_id: str, start: str, end: str) -> list[tuple[str, int]]:
    rows = (await db.execute(
        select(CheckInRecord.date, func.count(CheckInRecord.id))
        .where(
            CheckInRecord.company_id == company_id,
            CheckInRecord.date >= start,
            CheckInRecord.date <= end,
        )
        .group_by(CheckInRecord.date)
        .order_by(CheckInRecord.date.asc())
    )).all()
    return [(d, int(n)) for d, n in rows]
