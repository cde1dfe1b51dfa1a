from __future__ import annotations
import uuid
from datetime import datetime, timezone
from enum import Enum
from sqlalchemy.orm import declarative_base, Mapped, mapped_column
from sqlalchemy import UniqueConstraint, Index, text
from sqlalchemy.types import DateTime, String

Base = declarative_base()

def utcnow():
    return datetime.now(timezone.utc)

class InsertResult(str, Enum):
    INSERTED = "inserted"
    ALREADY_EXISTS = "already_exists"

class RedeemStatus(str, Enum):
    SUCCESS = "success"
    INVALID_TOKEN = "invalid_token"
    WRONG_COMPANY = "wrong_company"
    TOKEN_EXPIRED = "token_expired"
    ALREADY_CHECKED_IN = "already_checked_in"

class DailyToken(Base):
    __tablename__ = "daily_tokens"
    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    company_id: Mapped[str] = mapped_column(String(64), nullable=False)
    date: Mapped[str] = mapped_column(String(10), nullable=False)  # YYYY-MM-DD, company local
    token: Mapped[str] = mapped_column(String(160), nullable=False, unique=True)
    issued_by: Mapped[str] = mapped_column(String(64), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    active: Mapped[bool] = mapped_column(default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        # one active token per company per day
        Index(
            "uq_daily_token_active_company_date", "company_id", "date",
            unique=True,
            postgresql_where=text("active"),
            sqlite_where=text("active = 1"),
        ),
    )

class CheckInRecord(Base):
    __tablename__ = "checkin_records"
    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    employee_id: Mapped[str] = mapped_column(String(64), nullable=False)
    employee_name: Mapped[str] = mapped_column(String(255), nullable=False)
    company_id: Mapped[str] = mapped_column(String(64), nullable=False)
    date: Mapped[str] = mapped_column(String(10), nullable=False)
    check_in_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    token_used: Mapped[str] = mapped_column(String(160), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        UniqueConstraint("employee_id", "company_id", "date", name="uq_checkin_per_employee_per_day"),
        Index("ix_checkin_company_date", "company_id", "date"),
    )
