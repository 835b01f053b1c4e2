from __future__ import annotations

import threading

import pytest

from ring_breaker.circuit_breaker import (
    CallNotPermittedError,
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitBreakerRegistry,
    CircuitState,
    decorate_callable,
)
from ring_breaker.settings import BreakerSettings
from tests.ring_breaker.support.breaker_fakes import (
    ExampleConsumer,
    ExampleError,
    FakeLogger,
    RecordingListener,
)

RING_BUFFER_SIZE_IN_CLOSED_STATE = 2
CONFIG_TO_TRIP_AFTER_ONE_FAILURE = CircuitBreakerConfig(
    failure_rate_threshold=100.0 * 1 / RING_BUFFER_SIZE_IN_CLOSED_STATE,
    ring_buffer_size_in_closed_state=RING_BUFFER_SIZE_IN_CLOSED_STATE,
)
CONFIG_TO_TRIP_AFTER_TWO_FAILURES = CircuitBreakerConfig(
    failure_rate_threshold=100.0 * 2 / RING_BUFFER_SIZE_IN_CLOSED_STATE,
    ring_buffer_size_in_closed_state=RING_BUFFER_SIZE_IN_CLOSED_STATE,
)


@pytest.fixture
def registry() -> CircuitBreakerRegistry:
    return CircuitBreakerRegistry.of(CONFIG_TO_TRIP_AFTER_ONE_FAILURE)


def _fill_closed_buffer(breaker: CircuitBreaker, consumer: ExampleConsumer) -> None:
    ok = decorate_callable(breaker, consumer.consume)
    for index in range(1, RING_BUFFER_SIZE_IN_CLOSED_STATE + 1):
        ok(f"Not throwing exception {index:02d}")


def _consume_catching_example_error(
    breaker: CircuitBreaker, consumer: ExampleConsumer
) -> None:
    failing = decorate_callable(breaker, consumer.consume_failing)
    try:
        failing("Consuming")
    except ExampleError:
        pass


def test_breaker_with_registry_default_config(
    registry: CircuitBreakerRegistry,
    consumer: ExampleConsumer,
) -> None:
    breaker = registry.circuit_breaker("trip-after-one-failure")
    _fill_closed_buffer(breaker, consumer)

    _consume_catching_example_error(breaker, consumer)

    with pytest.raises(CallNotPermittedError):
        _consume_catching_example_error(breaker, consumer)


def test_breaker_with_custom_config(
    registry: CircuitBreakerRegistry,
    consumer: ExampleConsumer,
) -> None:
    breaker = registry.circuit_breaker(
        "trip-after-two-failures", CONFIG_TO_TRIP_AFTER_TWO_FAILURES
    )
    _fill_closed_buffer(breaker, consumer)

    _consume_catching_example_error(breaker, consumer)
    _consume_catching_example_error(breaker, consumer)

    with pytest.raises(CallNotPermittedError):
        _consume_catching_example_error(breaker, consumer)


def test_repeated_lookups_return_same_instance(
    registry: CircuitBreakerRegistry,
) -> None:
    first = registry.circuit_breaker("svc")
    second = registry.circuit_breaker("svc")

    assert first is second
    assert first.config is CONFIG_TO_TRIP_AFTER_ONE_FAILURE
    assert registry.get("svc") is first
    assert "svc" in registry
    assert len(registry) == 1
    assert registry.names == ["svc"]


def test_first_config_wins(
    registry: CircuitBreakerRegistry,
    fake_logger: FakeLogger,
) -> None:
    registry._logger = fake_logger
    first = registry.circuit_breaker("svc", CONFIG_TO_TRIP_AFTER_TWO_FAILURES)

    second = registry.circuit_breaker("svc", CONFIG_TO_TRIP_AFTER_ONE_FAILURE)
    third = registry.circuit_breaker("svc")

    assert first is second is third
    assert second.config is CONFIG_TO_TRIP_AFTER_TWO_FAILURES
    assert fake_logger.events == [
        "circuit_breaker_registry.created",
        "circuit_breaker_registry.config_ignored",
    ]


def test_get_does_not_create(registry: CircuitBreakerRegistry) -> None:
    assert registry.get("missing") is None
    assert "missing" not in registry
    assert len(registry) == 0


def test_registries_are_isolated() -> None:
    left = CircuitBreakerRegistry.of_defaults()
    right = CircuitBreakerRegistry.of_defaults()

    assert left.circuit_breaker("svc") is not right.circuit_breaker("svc")
    assert left.default_config == CircuitBreakerConfig()


def test_registry_listeners_are_attached_to_created_breakers() -> None:
    listener = RecordingListener()
    registry = CircuitBreakerRegistry(
        CONFIG_TO_TRIP_AFTER_ONE_FAILURE, listeners=[listener]
    )
    breaker = registry.circuit_breaker("svc")

    for _ in range(2):
        assert breaker.try_acquire_permission()
        breaker.record_failure()

    assert listener.of_kind("transition") == [
        ("svc", CircuitState.CLOSED, CircuitState.OPEN)
    ]


def test_registry_from_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("RING_BREAKER_RING_BUFFER_SIZE_IN_CLOSED_STATE", "7")
    monkeypatch.setenv("RING_BREAKER_FAILURE_RATE_THRESHOLD", "25")

    registry = CircuitBreakerRegistry.from_settings(BreakerSettings())
    config = registry.circuit_breaker("svc").config

    assert config.ring_buffer_size_in_closed_state == 7
    assert config.failure_rate_threshold == 25.0
    assert config.ring_buffer_size_in_half_open_state == 10


def test_concurrent_lookups_create_one_instance(
    registry: CircuitBreakerRegistry,
) -> None:
    barrier = threading.Barrier(8)
    seen: list[CircuitBreaker] = []
    seen_lock = threading.Lock()

    def _lookup() -> None:
        barrier.wait()
        breaker = registry.circuit_breaker("shared")
        with seen_lock:
            seen.append(breaker)

    threads = [threading.Thread(target=_lookup) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(seen) == 8
    assert all(breaker is seen[0] for breaker in seen)
