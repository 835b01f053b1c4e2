from __future__ import annotations

import pytest

import ring_breaker.circuit_breaker.breaker as breaker_mod
from tests.ring_breaker.support.breaker_fakes import (
    ExampleConsumer,
    FakeClock,
    FakeLogger,
    RecordingListener,
)


@pytest.fixture
def fake_logger() -> FakeLogger:
    """Provide a fresh structured logger test double per test."""
    return FakeLogger()


@pytest.fixture
def fake_clock(monkeypatch: pytest.MonkeyPatch) -> FakeClock:
    """Drive breaker open-state expiry from a manually advanced clock."""
    clock = FakeClock()
    monkeypatch.setattr(breaker_mod, "_monotonic", clock.now)
    return clock


@pytest.fixture
def listener() -> RecordingListener:
    """Provide a listener that records every breaker event."""
    return RecordingListener()


@pytest.fixture
def consumer() -> ExampleConsumer:
    """Provide example operations to guard."""
    return ExampleConsumer()
