"""Tests for per-identifier locking."""

import asyncio

import pytest

from lifecycle.errors import ConflictError
from lifecycle.locks import KeyedLock
from lifecycle.service import LifecycleService


@pytest.mark.asyncio
async def test_same_key_operations_queue():
    locks = KeyedLock()
    order = []

    async def worker(name):
        async with locks.hold("user-service"):
            order.append(f"{name}-in")
            await asyncio.sleep(0)
            order.append(f"{name}-out")

    await asyncio.gather(worker("first"), worker("second"))

    assert order == ["first-in", "first-out", "second-in", "second-out"]
    assert not locks.locked("user-service")
    assert locks._locks == {}


@pytest.mark.asyncio
async def test_different_keys_run_in_parallel():
    locks = KeyedLock()
    inside_b = asyncio.Event()

    async def hold_a():
        async with locks.hold("a"):
            await asyncio.wait_for(inside_b.wait(), timeout=1)

    async def hold_b():
        async with locks.hold("b"):
            inside_b.set()

    await asyncio.gather(hold_a(), hold_b())


@pytest.mark.asyncio
async def test_concurrent_creates_yield_one_conflict(config, cluster, workspace):
    service = LifecycleService(config, cluster, base_path=workspace)

    results = await asyncio.gather(
        service.create(service.build_record("user-service")),
        service.create(service.build_record("user-service")),
        return_exceptions=True,
    )

    conflicts = [r for r in results if isinstance(r, ConflictError)]
    assert len(conflicts) == 1
    assert conflicts[0].kind == "local-directory"
