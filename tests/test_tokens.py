from __future__ import annotations

import asyncio
from datetime import datetime, timezone

import pytest
from sqlalchemy import func, select, update

from attendance_svc.core.errors import InvariantViolation
from attendance_svc.models import DailyToken
from attendance_svc.services.tokens import (
    generate_token, get_today, insert_token_if_absent, issue_or_get_today,
)


async def _count_tokens(session_maker, company_id="C1"):
    async with session_maker() as s:
        return (await s.execute(
            select(func.count(DailyToken.id)).where(DailyToken.company_id == company_id)
        )).scalar_one()


def test_generated_token_carries_debug_prefix():
    tok = generate_token("COMPANY42", "2026-02-17")
    prefix = "WF-COMPAN-2026-02-17-"
    assert tok.startswith(prefix)
    rand = tok[len(prefix):]
    assert len(rand) == 32 and rand.isalnum()
    assert generate_token("COMPANY42", "2026-02-17") != tok


async def test_first_issue_creates_token_for_today(db, clock):
    tok = await issue_or_get_today(db, clock, company_id="C1", issued_by="sup-1")
    assert tok.company_id == "C1"
    assert tok.date == "2026-02-17"
    assert tok.issued_by == "sup-1"
    assert tok.active is True
    assert tok.expires_at == datetime(2026, 2, 17, 20, 59, 59, 999000, tzinfo=timezone.utc)


async def test_issue_is_idempotent_within_a_day(session_maker, clock):
    async with session_maker() as s:
        first = await issue_or_get_today(s, clock, company_id="C1", issued_by="sup-1")
    clock.set_local(2026, 2, 17, 17, 45)
    async with session_maker() as s:
        second = await issue_or_get_today(s, clock, company_id="C1", issued_by="sup-2")
    assert second.token == first.token
    assert second.issued_by == "sup-1"
    assert await _count_tokens(session_maker) == 1


async def test_concurrent_issue_converges_on_one_token(session_maker, clock):
    async def call():
        async with session_maker() as s:
            return await issue_or_get_today(s, clock, company_id="C1", issued_by="sup-1")

    results = await asyncio.gather(*(call() for _ in range(8)))
    assert len({r.token for r in results}) == 1
    assert await _count_tokens(session_maker) == 1


async def test_next_day_gets_a_new_token(session_maker, clock):
    async with session_maker() as s:
        monday = await issue_or_get_today(s, clock, company_id="C1", issued_by="sup-1")
    clock.set_local(2026, 2, 18, 8, 0)
    async with session_maker() as s:
        tuesday = await issue_or_get_today(s, clock, company_id="C1", issued_by="sup-1")
    assert tuesday.date == "2026-02-18"
    assert tuesday.token != monday.token
    assert await _count_tokens(session_maker) == 2


async def test_tokens_are_scoped_per_company(session_maker, clock):
    async with session_maker() as s:
        a = await issue_or_get_today(s, clock, company_id="C1", issued_by="sup-1")
    async with session_maker() as s:
        b = await issue_or_get_today(s, clock, company_id="C2", issued_by="sup-9")
    assert a.token != b.token


async def test_get_today_never_issues(session_maker, clock):
    async with session_maker() as s:
        assert await get_today(s, clock, company_id="C1") is None
    assert await _count_tokens(session_maker) == 0
    async with session_maker() as s:
        issued = await issue_or_get_today(s, clock, company_id="C1", issued_by="sup-1")
    async with session_maker() as s:
        seen = await get_today(s, clock, company_id="C1")
    assert seen == issued


async def test_losing_insert_returns_the_winner(session_maker, clock):
    async with session_maker() as s:
        winner = await issue_or_get_today(s, clock, company_id="C1", issued_by="sup-1")
    loser = DailyToken(
        company_id="C1", date="2026-02-17", token=generate_token("C1", "2026-02-17"),
        issued_by="sup-2", expires_at=clock.end_of_day("2026-02-17"), active=True,
    )
    async with session_maker() as s:
        row, created = await insert_token_if_absent(s, loser)
        assert created is False
        assert row.token == winner.token
    assert await _count_tokens(session_maker) == 1


async def test_inactive_token_does_not_block_reissue(session_maker, clock):
    async with session_maker() as s:
        old = await issue_or_get_today(s, clock, company_id="C1", issued_by="sup-1")
        await s.execute(update(DailyToken).where(DailyToken.token == old.token).values(active=False))
        await s.commit()
    async with session_maker() as s:
        fresh = await issue_or_get_today(s, clock, company_id="C1", issued_by="sup-1")
    assert fresh.token != old.token


async def test_unexplained_conflict_is_an_invariant_violation(session_maker, clock):
    async with session_maker() as s:
        c1 = await issue_or_get_today(s, clock, company_id="C1", issued_by="sup-1")
    clash = DailyToken(
        company_id="C2", date="2026-02-17", token=c1.token,
        issued_by="sup-2", expires_at=clock.end_of_day("2026-02-17"), active=True,
    )
    async with session_maker() as s:
        with pytest.raises(InvariantViolation):
            await insert_token_if_absent(s, clash)
