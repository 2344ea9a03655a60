from __future__ import annotations

import asyncio

import pytest

from callback_relay.schemas import CallbackRecord
from callback_relay.services import Criterion, SubscriberRegistry


def _saved(code: str, received_at: float, client_id: str = None) -> CallbackRecord:
    return CallbackRecord(transaction_code=code, received_at=received_at, client_id=client_id)


@pytest.mark.asyncio
async def test_waiter_for_code_resolves_on_matching_record() -> None:
    registry = SubscriberRegistry()
    waiter = registry.register(Criterion.for_code("TX2"), timeout=5)

    async def _deliver():
        await asyncio.sleep(0.05)
        registry.resolve(_saved("OTHER", 1.0))
        registry.resolve(_saved("TX2", 2.0))

    loop = asyncio.get_running_loop()
    started = loop.time()
    asyncio.get_running_loop().create_task(_deliver())
    records = await waiter.wait()

    assert [r.transaction_code for r in records] == ["TX2"]
    assert loop.time() - started < 1
    assert len(registry) == 0


@pytest.mark.asyncio
async def test_waiter_times_out_with_empty_result_not_before_deadline() -> None:
    registry = SubscriberRegistry()
    loop = asyncio.get_running_loop()
    started = loop.time()

    waiter = registry.register(Criterion.for_code("NEVER"), timeout=0.1)
    records = await waiter.wait()

    assert records == []
    assert loop.time() - started >= 0.1 - 0.005
    assert len(registry) == 0


@pytest.mark.asyncio
async def test_since_waiter_matches_only_newer_records() -> None:
    registry = SubscriberRegistry()
    waiter = registry.register(Criterion.newer_than(10.0), timeout=5)

    assert registry.resolve(_saved("OLD", 9.5)) == []
    assert registry.resolve(_saved("NEW", 10.5)) == [waiter]

    records = await waiter.wait()
    assert [r.transaction_code for r in records] == ["NEW"]


@pytest.mark.asyncio
async def test_waiter_resolves_exactly_once() -> None:
    registry = SubscriberRegistry()
    waiter = registry.register(Criterion.for_code("TX1"), timeout=5)

    assert registry.resolve(_saved("TX1", 1.0)) == [waiter]
    assert registry.resolve(_saved("TX1", 2.0)) == []

    records = await waiter.wait()
    assert records[0].received_at == 1.0


@pytest.mark.asyncio
async def test_all_waiters_on_same_code_resolve() -> None:
    registry = SubscriberRegistry()
    first = registry.register(Criterion.for_code("TX1"), timeout=5)
    second = registry.register(Criterion.for_code("TX1"), timeout=5)

    resolved = registry.resolve(_saved("TX1", 1.0))

    assert set(resolved) == {first, second}
    assert await first.wait() == await second.wait()


@pytest.mark.asyncio
async def test_cancelled_caller_unregisters_waiter() -> None:
    registry = SubscriberRegistry()
    waiter = registry.register(Criterion.for_code("TX1"), timeout=5)

    task = asyncio.get_running_loop().create_task(waiter.wait())
    await asyncio.sleep(0)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert len(registry) == 0
    assert waiter._timer.cancelled()
    assert registry.resolve(_saved("TX1", 1.0)) == []


@pytest.mark.asyncio
async def test_cancel_by_id() -> None:
    registry = SubscriberRegistry()
    waiter = registry.register(Criterion.newer_than(0), timeout=5)

    assert registry.cancel(waiter.id) is True
    assert registry.cancel(waiter.id) is False
    assert waiter.done


@pytest.mark.asyncio
async def test_client_filter() -> None:
    registry = SubscriberRegistry()
    waiter = registry.register(Criterion.newer_than(0), timeout=5, client_id="web-a")

    assert registry.resolve(_saved("TX1", 1.0, client_id="web-b")) == []
    assert registry.resolve(_saved("TX2", 2.0, client_id="web-a")) == [waiter]


@pytest.mark.asyncio
async def test_expire_overdue_resolves_stale_waiters() -> None:
    registry = SubscriberRegistry()
    loop = asyncio.get_running_loop()
    stale = registry.register(Criterion.for_code("TX1"), timeout=60)
    fresh = registry.register(Criterion.for_code("TX2"), timeout=120)

    assert registry.expire_overdue(now=stale.deadline) == 1
    assert await stale.wait() == []
    assert not fresh.done
    assert len(registry) == 1
    assert registry.expire_overdue(now=loop.time()) == 0


@pytest.mark.asyncio
async def test_cancel_all() -> None:
    registry = SubscriberRegistry()
    registry.register(Criterion.for_code("TX1"), timeout=5)
    registry.register(Criterion.newer_than(0), timeout=5)

    assert registry.stats() == {"waiting": 2, "by_code": 1, "since": 1}
    assert registry.cancel_all() == 2
    assert len(registry) == 0


def test_criterion_requires_exactly_one_field() -> None:
    with pytest.raises(ValueError):
        Criterion()
    with pytest.raises(ValueError):
        Criterion(transaction_code="TX1", since=1.0)


@pytest.mark.asyncio
async def test_has_code_waiter_ignores_since_and_other_clients() -> None:
    registry = SubscriberRegistry()
    registry.register(Criterion.newer_than(0), timeout=5)
    registry.register(Criterion.for_code("TX1"), timeout=5, client_id="web-a")

    assert registry.has_code_waiter(_saved("TX1", 1.0, client_id="web-a")) is True
    assert registry.has_code_waiter(_saved("TX1", 1.0, client_id="web-b")) is False
    assert registry.has_code_waiter(_saved("TX2", 1.0)) is False

    registry.cancel_all()
