from __future__ import annotations
import logging
from datetime import datetime, timezone
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.clock import Clock, as_utc
from ..db import bounded
from ..models import CheckInRecord, InsertResult, RedeemStatus
from ..schemas import CheckInRead, RedeemResult
from .ledger import insert_if_absent
from .tokens import find_by_token

logger = logging.getLogger(__name__)

MESSAGES = {
    RedeemStatus.SUCCESS: "Check-in recorded.",
    RedeemStatus.INVALID_TOKEN: "Invalid or expired QR code.",
    RedeemStatus.WRONG_COMPANY: "This QR code does not belong to your company.",
    RedeemStatus.TOKEN_EXPIRED: "This QR code has expired.",
    RedeemStatus.ALREADY_CHECKED_IN: "You have already checked in today.",
}


async def _reject(db: AsyncSession, status: RedeemStatus, employee_id: str, company_id: str) -> RedeemResult:
    # release the read transaction before handing the answer back
    await db.rollback()
    logger.info("check-in rejected: %s employee=%s company=%s", status.value, employee_id, company_id)
    return RedeemResult(status=status, message=MESSAGES[status])


async def _redeem(
    db: AsyncSession,
    clock: Clock,
    employee_id: str,
    employee_name: str,
    company_id: str,
    submitted_token: str,
    now: datetime,
) -> RedeemResult:
    tok = await find_by_token(db, submitted_token)
    if tok is None or not tok.active:
        return await _reject(db, RedeemStatus.INVALID_TOKEN, employee_id, company_id)

    # a leaked code from another tenant must not work here, whatever its date
    if tok.company_id != company_id:
        return await _reject(db, RedeemStatus.WRONG_COMPANY, employee_id, company_id)

    today = clock.date_for(now, company_id)
    if tok.date != today or now > as_utc(tok.expires_at):
        return await _reject(db, RedeemStatus.TOKEN_EXPIRED, employee_id, company_id)

    record = CheckInRecord(
        employee_id=employee_id,
        employee_name=employee_name,
        company_id=company_id,
        date=today,
        check_in_at=now,
        token_used=tok.token,
        created_at=now,
    )
    result, row = await insert_if_absent(db, record)
    if result is InsertResult.ALREADY_EXISTS:
        return await _reject(db, RedeemStatus.ALREADY_CHECKED_IN, employee_id, company_id)

    logger.info("check-in recorded employee=%s company=%s date=%s", employee_id, company_id, today)
    return RedeemResult(
        status=RedeemStatus.SUCCESS,
        message=MESSAGES[RedeemStatus.SUCCESS],
        record=CheckInRead.model_validate(row),
    )


async def redeem(
    db: AsyncSession,
    clock: Clock,
    *,
    employee_id: str,
    employee_name: str,
    company_id: str,
    submitted_token: str,
    now: datetime | str | None = None,
) -> RedeemResult:
    """Redeem a scanned daily token for one employee.

    Checks run from most general to most specific so the caller gets the most
    useful rejection: unknown token, other company, stale date, then the
    per-day uniqueness enforced by the ledger. Rejections are returned, not
    raised; only store failures raise.
    """
    instant = clock.local(now, company_id).astimezone(timezone.utc) if now is not None else as_utc(clock.now())
    return await bounded(
        "redeem",
        _redeem(db, clock, employee_id, employee_name, company_id, submitted_token, instant),
    )
