from __future__ import annotations
import logging
import secrets
import string
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.clock import Clock, as_utc
from ..core.config import get_settings
from ..core.errors import InvariantViolation
from ..db import bounded
from ..models import DailyToken
from ..schemas import DailyTokenRead

logger = logging.getLogger(__name__)
settings = get_settings()

_ALPHABET = string.ascii_letters + string.digits


def generate_token(company_id: str, day: str) -> str:
    """``WF-<company[:6]>-<date>-<random>``; only the random part matters."""
    rand = "".join(secrets.choice(_ALPHABET) for _ in range(settings.token_random_length))
    return f"{settings.token_prefix}-{company_id[:6]}-{day}-{rand}"


# --- store ---

async def find_active_token(db: AsyncSession, company_id: str, day: str) -> DailyToken | None:
    return (await db.execute(
        select(DailyToken).where(
            DailyToken.company_id == company_id,
            DailyToken.date == day,
            DailyToken.active.is_(True),
        ).limit(1)
    )).scalar_one_or_none()

async def find_by_token(db: AsyncSession, token: str) -> DailyToken | None:
    return (await db.execute(
        select(DailyToken).where(DailyToken.token == token).limit(1)
    )).scalar_one_or_none()

async def insert_token_if_absent(db: AsyncSession, row: DailyToken) -> tuple[DailyToken, bool]:
    """Insert ``row`` unless (company, date) already has an active token.

    The partial unique index decides the winner; a loser rolls back and
    returns the winner's row.
    """
    db.add(row)
    try:
        await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        winner = await find_active_token(db, row.company_id, row.date)
        if winner is None:
            raise InvariantViolation(
                f"token insert for {row.company_id}/{row.date} conflicted but no active token exists"
            ) from exc
        return winner, False
    return row, True


# --- issuer ---

async def _issue_or_get(db: AsyncSession, clock: Clock, company_id: str, issued_by: str) -> DailyTokenRead:
    now = as_utc(clock.now())
    day = clock.date_for(now, company_id)

    existing = await find_active_token(db, company_id, day)
    if existing:
        return DailyTokenRead.model_validate(existing)

    row = DailyToken(
        company_id=company_id,
        date=day,
        token=generate_token(company_id, day),
        issued_by=issued_by,
        expires_at=clock.end_of_day(day, company_id),
        active=True,
        created_at=now,
    )
    obj, created = await insert_token_if_absent(db, row)
    if created:
        logger.info("issued daily token for company=%s date=%s by=%s", company_id, day, issued_by)
    else:
        logger.info("concurrent issuance for company=%s date=%s converged on existing token", company_id, day)
    return DailyTokenRead.model_validate(obj)

async def issue_or_get_today(db: AsyncSession, clock: Clock, *, company_id: str, issued_by: str) -> DailyTokenRead:
    """Return today's token for the company, creating it on first request."""
    return await bounded("issue_or_get_today", _issue_or_get(db, clock, company_id, issued_by))

async def get_today(db: AsyncSession, clock: Clock, *, company_id: str) -> DailyTokenRead | None:
    """Read-only lookup; never creates a token."""
    row = await bounded(
        "get_today", find_active_token(db, company_id, clock.today(company_id))
    )
    return DailyTokenRead.model_validate(row) if row else None
