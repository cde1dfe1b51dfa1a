from __future__ import annotations

import asyncio

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError, ProgrammingError

from attendance_svc.core.errors import InvariantViolation, StorageError
from attendance_svc.db import bounded


async def _raise(exc):
    raise exc


async def test_bounded_passes_results_through():
    async def value():
        return 42
    assert await bounded("value", value()) == 42


async def test_timeout_is_retryable():
    with pytest.raises(StorageError) as info:
        await bounded("slow", asyncio.sleep(1), timeout=0.01)
    assert info.value.retryable is True


async def test_operational_error_is_retryable():
    exc = OperationalError("SELECT 1", {}, Exception("connection refused"))
    with pytest.raises(StorageError) as info:
        await bounded("read", _raise(exc))
    assert info.value.retryable is True
    assert info.value.__cause__ is exc


async def test_other_driver_errors_are_fatal():
    exc = ProgrammingError("SELECT nope", {}, Exception("syntax error"))
    with pytest.raises(StorageError) as info:
        await bounded("read", _raise(exc))
    assert info.value.retryable is False


async def test_stray_constraint_conflict_is_an_invariant_violation():
    exc = IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed"))
    with pytest.raises(InvariantViolation):
        await bounded("write", _raise(exc))


async def test_domain_errors_propagate_untouched():
    with pytest.raises(InvariantViolation, match="boom"):
        await bounded("write", _raise(InvariantViolation("boom")))
