from __future__ import annotations
import logging
from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import Actor, get_actor, get_clock, get_db, require_issuer
from ..core.clock import Clock
from ..core.config import get_settings
from ..core.nats import publish_checkin
from ..core.redis import allow_request
from ..schemas import (
    AbsenteesRequest, CheckedInToday, CheckInRead, CheckinCreate, DailyTokenRead, DayCount,
    QRCreateResponse, RedeemResult, RosterEntry,
)
from ..services import queries
from ..services.checkins import redeem
from ..services.tokens import get_today, issue_or_get_today

logger = logging.getLogger(__name__)
settings = get_settings()
router = APIRouter(prefix="/attendance", tags=["attendance"])

def _qr_response(tok: DailyTokenRead) -> QRCreateResponse:
    return QRCreateResponse(token=tok.token, date=tok.date, expires_at=tok.expires_at)

def _require_same_company(actor: Actor, company_id: str) -> None:
    if actor.company_id != company_id:
        raise HTTPException(status_code=403, detail="Not a supervisor of this company")

# --- 1) Supervisor issues (or re-displays) today's code
@router.post("/qr", response_model=QRCreateResponse)
async def issue_today_qr(
    actor: Actor = Depends(require_issuer),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    tok = await issue_or_get_today(db, clock, company_id=actor.company_id, issued_by=actor.employee_id)
    return _qr_response(tok)

# read-only viewers must not trigger issuance
@router.get("/qr/today", response_model=QRCreateResponse)
async def today_qr(
    actor: Actor = Depends(require_issuer),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    tok = await get_today(db, clock, company_id=actor.company_id)
    if tok is None:
        raise HTTPException(status_code=404, detail="No code issued today")
    return _qr_response(tok)

# --- 2) Employee scans the code
@router.post("/scan", response_model=RedeemResult)
async def scan_and_checkin(
    payload: CheckinCreate,
    response: Response,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    # keyed per employee: a whole office scans from one shared IP
    if not await allow_request(actor.employee_id, "attendance.scan"):
        raise HTTPException(status_code=429, detail="Too many requests")

    result = await redeem(
        db,
        clock,
        employee_id=actor.employee_id,
        employee_name=actor.employee_name,
        company_id=actor.company_id,
        submitted_token=payload.token.strip(),
    )
    if not result.ok:
        # expected outcome, rendered by the client per status
        return result

    response.status_code = 201
    rec = result.record
    if settings.publish_events:
        try:
            await publish_checkin({
                "employee_id": rec.employee_id,
                "company_id": rec.company_id,
                "date": rec.date,
                "checked_at": rec.check_in_at.isoformat().replace("+00:00", "Z"),
                "idempotency_key": f"{rec.company_id}:{rec.employee_id}:{rec.date}",
            })
        except Exception as exc:
            # non-fatal for the check-in response
            logger.warning("could not publish check-in event: %s", exc)
    return result

@router.get("/me/today", response_model=CheckedInToday)
async def my_checkin_today(
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    today = clock.today(actor.company_id)
    done = await queries.has_checked_in(
        db, employee_id=actor.employee_id, company_id=actor.company_id, day=today
    )
    return CheckedInToday(date=today, checked_in=done)

# --- 3) Reporting
@router.get("/companies/{company_id}/days/{day}", response_model=list[CheckInRead])
async def checkins_for_day(company_id: str, day: str, actor: Actor = Depends(require_issuer), db: AsyncSession = Depends(get_db)):
    _require_same_company(actor, company_id)
    return await queries.list_by_date(db, company_id, day)

@router.get("/companies/{company_id}/days/{day}/count", response_model=DayCount)
async def count_for_day(company_id: str, day: str, actor: Actor = Depends(require_issuer), db: AsyncSession = Depends(get_db)):
    _require_same_company(actor, company_id)
    return DayCount(date=day, count=await queries.count_by_date(db, company_id, day))

@router.post("/companies/{company_id}/days/{day}/absent", response_model=list[RosterEntry])
async def absent_for_day(
    company_id: str,
    day: str,
    body: AbsenteesRequest,
    actor: Actor = Depends(require_issuer),
    db: AsyncSession = Depends(get_db),
):
    _require_same_company(actor, company_id)
    return await queries.absentees(db, company_id, day, body.roster)

@router.get("/companies/{company_id}/range", response_model=list[CheckInRead])
async def checkins_for_range(
    company_id: str,
    start: str = Query(...),
    end: str = Query(...),
    actor: Actor = Depends(require_issuer),
    db: AsyncSession = Depends(get_db),
):
    _require_same_company(actor, company_id)
    return await queries.list_by_range(db, company_id, start, end)

@router.get("/companies/{company_id}/range/counts", response_model=list[DayCount])
async def counts_for_range(
    company_id: str,
    start: str = Query(...),
    end: str = Query(...),
    actor: Actor = Depends(require_issuer),
    db: AsyncSession = Depends(get_db),
):
    _require_same_company(actor, company_id)
    return await queries.counts_by_range(db, company_id, start, end)
