"""Pytest plugin to execute asyncio marked tests, plus shared relay fixtures."""

from __future__ import annotations

import asyncio
import inspect
from typing import Optional

import pytest

from callback_relay.schemas import CallbackKind, CallbackRecord
from callback_relay.services import CorrelationStore


@pytest.hookimpl
def pytest_configure(config: pytest.Config) -> None:  # pragma: no cover - pytest hook
    config.addinivalue_line(
        "markers",
        "asyncio: mark test to run inside an event loop",
    )


@pytest.hookimpl(tryfirst=True)
def pytest_pyfunc_call(pyfuncitem: pytest.Function) -> Optional[bool]:  # pragma: no cover - pytest hook
    if "asyncio" not in pyfuncitem.keywords:
        return None

    test_function = pyfuncitem.obj
    if not inspect.iscoroutinefunction(test_function):
        return None

    loop = asyncio.new_event_loop()
    try:
        funcargs = {name: pyfuncitem.funcargs[name] for name in pyfuncitem._fixtureinfo.argnames}
        loop.run_until_complete(test_function(**funcargs))
    finally:
        loop.close()
    return True


class FakeClock:
    """Manually advanced clock for TTL tests."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> CorrelationStore:
    return CorrelationStore(ttl=3600, clock=clock)


@pytest.fixture
def make_record():
    def _make(code: str = "TX1", kind: CallbackKind = CallbackKind.PREVIEW_READY, **payload) -> CallbackRecord:
        return CallbackRecord(
            transaction_code=code,
            kind=kind,
            payload={"transactionCode": code, **payload},
        )

    return _make
