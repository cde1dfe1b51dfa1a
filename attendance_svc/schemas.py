from __future__ import annotations
from pydantic import BaseModel, ConfigDict, Field, field_validator
from uuid import UUID
from datetime import datetime

from .core.clock import as_utc, parse_date
from .models import RedeemStatus

DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"


class _Record(BaseModel):
    # rows are validated here; a malformed row fails instead of leaking None/garbage
    model_config = ConfigDict(from_attributes=True, frozen=True, extra="forbid")

    @field_validator("date", check_fields=False)
    @classmethod
    def _valid_date(cls, v: str) -> str:
        parse_date(v)
        return v


class DailyTokenRead(_Record):
    id: UUID
    company_id: str
    date: str = Field(pattern=DATE_PATTERN)
    token: str
    issued_by: str
    expires_at: datetime
    active: bool
    created_at: datetime

    @field_validator("expires_at", "created_at")
    @classmethod
    def _utc(cls, v: datetime) -> datetime:
        return as_utc(v)


class CheckInRead(_Record):
    id: UUID
    employee_id: str
    employee_name: str
    company_id: str
    date: str = Field(pattern=DATE_PATTERN)
    check_in_at: datetime
    token_used: str
    created_at: datetime

    @field_validator("check_in_at", "created_at")
    @classmethod
    def _utc(cls, v: datetime) -> datetime:
        return as_utc(v)


class RedeemResult(BaseModel):
    status: RedeemStatus
    message: str
    record: CheckInRead | None = None

    @property
    def ok(self) -> bool:
        return self.status is RedeemStatus.SUCCESS


# --- HTTP payloads ---

class QRCreateResponse(BaseModel):
    token: str
    date: str
    expires_at: datetime

class CheckinCreate(BaseModel):
    token: str = Field(min_length=1, max_length=512)

class CheckedInToday(BaseModel):
    date: str
    checked_in: bool

class DayCount(BaseModel):
    date: str
    count: int

class RosterEntry(BaseModel):
    employee_id: str
    employee_name: str | None = None

class AbsenteesRequest(BaseModel):
    roster: list[RosterEntry]
