# tests/unit/test_limiter.py

import asyncio

import pytest

from file_uploader import limiter as limiter_module
from file_uploader.exceptions import LimiterNotInitializedError
from file_uploader.limiter import (
    ConcurrencyLimiter,
    get_upload_limiter,
    initialize_upload_limiter,
)


@pytest.fixture
def no_shared_limiter(monkeypatch):
    monkeypatch.setattr(limiter_module, "_upload_limiter", None)


def test_capacity_must_be_positive():
    with pytest.raises(ValueError):
        ConcurrencyLimiter(0)


@pytest.mark.asyncio
async def test_schedule_returns_task_result():
    limiter = ConcurrencyLimiter(2)

    async def task():
        return 42

    assert await limiter.schedule(task) == 42
    assert limiter.active == 0


@pytest.mark.asyncio
async def test_at_most_capacity_tasks_run_concurrently():
    limiter = ConcurrencyLimiter(2)
    peak = 0

    async def task():
        nonlocal peak
        peak = max(peak, limiter.active)
        await asyncio.sleep(0.01)

    await asyncio.gather(*(limiter.schedule(task) for _ in range(6)))

    assert peak == 2


@pytest.mark.asyncio
async def test_queued_tasks_start_in_submission_order():
    limiter = ConcurrencyLimiter(1)
    started: list[int] = []

    def make_task(i: int):
        async def task():
            started.append(i)
            await asyncio.sleep(0)

        return task

    await asyncio.gather(*(limiter.schedule(make_task(i)) for i in range(5)))

    assert started == [0, 1, 2, 3, 4]


@pytest.mark.asyncio
async def test_failed_task_releases_its_slot():
    limiter = ConcurrencyLimiter(1)

    async def failing():
        raise RuntimeError("boom")

    async def ok():
        return "ok"

    with pytest.raises(RuntimeError):
        await limiter.schedule(failing)

    assert limiter.active == 0
    assert await asyncio.wait_for(limiter.schedule(ok), timeout=1) == "ok"


def test_get_upload_limiter_before_initialize_fails_fast(no_shared_limiter):
    with pytest.raises(LimiterNotInitializedError) as exc_info:
        get_upload_limiter()

    assert exc_info.value.error_code == "LIMITER_NOT_INITIALIZED"


def test_initialize_upload_limiter_is_idempotent(no_shared_limiter):
    first = initialize_upload_limiter(3)
    second = initialize_upload_limiter(5)

    assert first is second
    assert get_upload_limiter() is first
    assert first.capacity == 3
