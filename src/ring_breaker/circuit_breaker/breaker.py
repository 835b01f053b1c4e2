"""Core circuit breaker implementation."""

import math
import threading
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, replace
from typing import Any, NamedTuple, ParamSpec, Self, TypeVar

from ring_breaker.circuit_breaker.exceptions import CallNotPermittedError
from ring_breaker.circuit_breaker.metrics import BreakerListener
from ring_breaker.circuit_breaker.ring_buffer import OutcomeRingBuffer
from ring_breaker.circuit_breaker.state import BreakerMetrics, CircuitState
from ring_breaker.logging import (
    get_breaker_logger,
    log_exception,
    log_info,
    log_warning,
)

T = TypeVar("T")
P = ParamSpec("P")

DEFAULT_FAILURE_RATE_THRESHOLD = 50.0
DEFAULT_WAIT_DURATION_IN_OPEN_STATE = 60.0
DEFAULT_RING_BUFFER_SIZE_IN_HALF_OPEN_STATE = 10
DEFAULT_RING_BUFFER_SIZE_IN_CLOSED_STATE = 100


def _monotonic() -> float:
    return time.monotonic()


def _validate_size(field_name: str, value: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{field_name} must be an integer")
    if value < 1:
        raise ValueError(f"{field_name} must be >= 1")


@dataclass(frozen=True, slots=True)
class CircuitBreakerConfig:
    """Circuit breaker configuration values.

    Attributes:
        failure_rate_threshold: Failure percentage in ``(0, 100]`` at or above
            which a full ring buffer opens the circuit.
        wait_duration_in_open_state: Seconds to stay ``OPEN`` before a trial
            call is permitted.
        ring_buffer_size_in_closed_state: Outcomes evaluated while ``CLOSED``.
        ring_buffer_size_in_half_open_state: Trial calls permitted and evaluated
            while ``HALF_OPEN``.
        record_exceptions: Exceptions that count as failures.
        ignore_exceptions: Exceptions that count as neither success nor
            failure. Takes precedence over ``record_exceptions``.
    """

    failure_rate_threshold: float = DEFAULT_FAILURE_RATE_THRESHOLD
    wait_duration_in_open_state: float = DEFAULT_WAIT_DURATION_IN_OPEN_STATE
    ring_buffer_size_in_closed_state: int = DEFAULT_RING_BUFFER_SIZE_IN_CLOSED_STATE
    ring_buffer_size_in_half_open_state: int = (
        DEFAULT_RING_BUFFER_SIZE_IN_HALF_OPEN_STATE
    )
    record_exceptions: tuple[type[BaseException], ...] = (Exception,)
    ignore_exceptions: tuple[type[BaseException], ...] = ()

    def __post_init__(self) -> None:
        threshold = self.failure_rate_threshold
        if isinstance(threshold, bool) or not isinstance(threshold, (int, float)):
            raise ValueError("failure_rate_threshold must be a number")
        if not 0 < threshold <= 100:
            raise ValueError("failure_rate_threshold must be > 0 and <= 100")

        wait = self.wait_duration_in_open_state
        if isinstance(wait, bool) or not isinstance(wait, (int, float)):
            raise ValueError("wait_duration_in_open_state must be a number")
        if not wait > 0 or math.isinf(wait):
            raise ValueError("wait_duration_in_open_state must be > 0")

        _validate_size(
            "ring_buffer_size_in_closed_state", self.ring_buffer_size_in_closed_state
        )
        _validate_size(
            "ring_buffer_size_in_half_open_state",
            self.ring_buffer_size_in_half_open_state,
        )

    def with_overrides(self, **changes: Any) -> Self:
        """Return a validated copy with ``changes`` applied."""
        return replace(self, **changes)


class _Transition(NamedTuple):
    old: CircuitState
    new: CircuitState


class _Permission(NamedTuple):
    permitted: bool
    state: CircuitState
    retry_after: float
    transition: _Transition | None
    period: int


class CircuitBreaker:
    """Ring-buffer circuit breaker guarding one unreliable dependency.

    All state lives behind one lock that is only held while a permission is
    decided or an outcome is recorded. The guarded call itself, listeners and
    logging always run outside the lock.
    """

    def __init__(
        self,
        name: str,
        *,
        config: CircuitBreakerConfig | None = None,
        listeners: Sequence[BreakerListener] | None = None,
    ) -> None:
        """Build a circuit breaker in the ``CLOSED`` state.

        Args:
            name: Breaker name used in logs, errors and listener events.
            config: Breaker behavior configuration. Defaults to
                ``CircuitBreakerConfig()``.
            listeners: Optional listener hooks for breaker events.
        """
        self._name = name
        self._config = CircuitBreakerConfig() if config is None else config
        self._listeners = tuple(listeners) if listeners is not None else ()
        self._logger = get_breaker_logger(f"circuit_breaker:{name}")
        self._lock = threading.Lock()
        self._state = CircuitState.CLOSED
        self._buffer: OutcomeRingBuffer | None = OutcomeRingBuffer(
            self._config.ring_buffer_size_in_closed_state
        )
        self._open_until = 0.0
        self._half_open_permits = 0
        self._not_permitted_calls = 0
        # Bumped on every transition; permits are only honoured in their period.
        self._period = 0

    @classmethod
    def with_defaults(cls, name: str) -> Self:
        """Build a breaker using the built-in default configuration."""
        return cls(name)

    @classmethod
    def with_config(cls, name: str, config: CircuitBreakerConfig) -> Self:
        """Build a breaker using ``config``."""
        return cls(name, config=config)

    @property
    def name(self) -> str:
        return self._name

    @property
    def config(self) -> CircuitBreakerConfig:
        return self._config

    @property
    def state(self) -> CircuitState:
        """Current state. Reading it never triggers the lazy open-state expiry."""
        with self._lock:
            return self._state

    @property
    def metrics(self) -> BreakerMetrics:
        """Return a consistent snapshot of the active ring buffer and counters."""
        with self._lock:
            buffer = self._buffer
            return BreakerMetrics(
                name=self._name,
                state=self._state,
                failure_rate=None if buffer is None else buffer.failure_rate(),
                buffered_calls=0 if buffer is None else buffer.recorded_count,
                failed_calls=0 if buffer is None else buffer.failure_count,
                max_buffered_calls=0 if buffer is None else buffer.capacity,
                not_permitted_calls=self._not_permitted_calls,
            )

    def _transition_to(self, new: CircuitState) -> _Transition:
        # Caller must hold self._lock.
        old = self._state
        self._state = new
        self._period += 1
        self._half_open_permits = 0
        if new is CircuitState.OPEN:
            self._buffer = None
            self._open_until = (
                _monotonic() + self._config.wait_duration_in_open_state
            )
        elif new is CircuitState.HALF_OPEN:
            self._buffer = OutcomeRingBuffer(
                self._config.ring_buffer_size_in_half_open_state
            )
        else:
            self._buffer = OutcomeRingBuffer(
                self._config.ring_buffer_size_in_closed_state
            )
        return _Transition(old, new)

    def _acquire(self) -> _Permission:
        with self._lock:
            transition = None
            if self._state is CircuitState.OPEN:
                now = _monotonic()
                if now < self._open_until:
                    self._not_permitted_calls += 1
                    return _Permission(
                        False,
                        CircuitState.OPEN,
                        self._open_until - now,
                        None,
                        self._period,
                    )
                transition = self._transition_to(CircuitState.HALF_OPEN)

            if self._state is CircuitState.HALF_OPEN:
                limit = self._config.ring_buffer_size_in_half_open_state
                if self._half_open_permits >= limit:
                    self._not_permitted_calls += 1
                    return _Permission(
                        False, CircuitState.HALF_OPEN, 0.0, transition, self._period
                    )
                self._half_open_permits += 1

            return _Permission(True, self._state, 0.0, transition, self._period)

    def _record(self, is_failure: bool, period: int | None = None) -> None:
        with self._lock:
            if period is not None and period != self._period:
                # Permit granted before the last transition; the outcome is stale.
                return
            buffer = self._buffer
            if buffer is None:
                # OPEN has no buffer; a late outcome from an earlier period is dropped.
                return
            if (
                self._state is CircuitState.HALF_OPEN
                and buffer.recorded_count >= self._half_open_permits
            ):
                return

            buffer.record(is_failure)
            failure_rate = buffer.failure_rate()
            if failure_rate is None:
                return
            if failure_rate >= self._config.failure_rate_threshold:
                transition = self._transition_to(CircuitState.OPEN)
            elif self._state is CircuitState.HALF_OPEN:
                transition = self._transition_to(CircuitState.CLOSED)
            else:
                return

        self._on_transition(transition, failure_rate=failure_rate)

    def try_acquire_permission(self) -> bool:
        """Decide whether one call may run now.

        Returns:
            ``True`` when the call is permitted. The caller must then report
            exactly one of ``record_success``, ``record_failure`` or
            ``release_permission``.
        """
        permission = self._acquire()
        self._after_acquire(permission)
        return permission.permitted

    def record_success(self) -> None:
        """Record a successful outcome for a permitted call."""
        self._record(False)

    def record_failure(self) -> None:
        """Record a failed outcome for a permitted call."""
        self._record(True)

    def release_permission(self) -> None:
        """Give back a permit whose call produced no countable outcome."""
        self._release()

    def _release(self, period: int | None = None) -> None:
        with self._lock:
            if period is not None and period != self._period:
                return
            buffer = self._buffer
            if (
                self._state is CircuitState.HALF_OPEN
                and buffer is not None
                and self._half_open_permits > buffer.recorded_count
            ):
                self._half_open_permits -= 1

    def reset(self) -> None:
        """Return to ``CLOSED`` with an empty buffer and cleared counters."""
        with self._lock:
            self._not_permitted_calls = 0
            transition = self._transition_to(CircuitState.CLOSED)
        if transition.old is not CircuitState.CLOSED:
            self._on_transition(transition, failure_rate=None)

    def _after_acquire(self, permission: _Permission) -> None:
        if permission.transition is not None:
            self._on_transition(permission.transition, failure_rate=None)
        if permission.permitted:
            return
        log_warning(
            self._logger,
            "circuit_breaker.call_not_permitted",
            breaker=self._name,
            state=str(permission.state),
            retry_after=permission.retry_after,
        )
        self._emit("on_call_not_permitted")

    def _acquire_or_raise(self) -> int:
        permission = self._acquire()
        self._after_acquire(permission)
        if not permission.permitted:
            raise CallNotPermittedError(
                self._name, permission.state, retry_after=permission.retry_after
            )
        return permission.period

    def _on_transition(
        self, transition: _Transition, *, failure_rate: float | None
    ) -> None:
        log_info(
            self._logger,
            "circuit_breaker.state_transition",
            breaker=self._name,
            from_state=str(transition.old),
            to_state=str(transition.new),
            failure_rate=failure_rate,
        )
        self._emit("on_state_transition", transition.old, transition.new)

    def _emit(self, hook: str, *args: object) -> None:
        for listener in self._listeners:
            try:
                getattr(listener, hook)(self._name, *args)
            except Exception:
                log_exception(
                    self._logger,
                    "circuit_breaker.listener_failed",
                    breaker=self._name,
                    hook=hook,
                )

    def _on_success(self, start: float, period: int) -> None:
        elapsed = max(_monotonic() - start, 0.0)
        self._record(False, period)
        self._emit("on_success", elapsed)

    def _on_exception(self, exc: BaseException, start: float, period: int) -> None:
        elapsed = max(_monotonic() - start, 0.0)
        if isinstance(exc, self._config.ignore_exceptions):
            self._release(period)
            self._emit("on_ignored_error", exc, elapsed)
        elif isinstance(exc, self._config.record_exceptions):
            self._record(True, period)
            self._emit("on_error", exc, elapsed)
        else:
            self._release(period)

    def call(self, func: Callable[P, T], *args: P.args, **kwargs: P.kwargs) -> T:
        """Invoke a callable under circuit breaker protection.

        Args:
            func: Callable to execute.
            *args: Positional arguments forwarded to ``func``.
            **kwargs: Keyword arguments forwarded to ``func``.

        Returns:
            The result of ``func`` when permitted and successful.

        Raises:
            CallNotPermittedError: When the breaker rejects the call; ``func`` is
                not invoked.
            BaseException: The original exception raised by ``func``.
        """
        period = self._acquire_or_raise()
        start = _monotonic()
        try:
            result = func(*args, **kwargs)
        except BaseException as exc:
            self._on_exception(exc, start, period)
            raise
        else:
            self._on_success(start, period)
            return result

    async def call_async(
        self,
        func: Callable[P, Awaitable[T]],
        *args: P.args,
        **kwargs: P.kwargs,
    ) -> T:
        """Await an async callable under circuit breaker protection.

        Same contract as ``call``. Cancellation of the awaiting task releases
        the permit without recording an outcome.
        """
        period = self._acquire_or_raise()
        start = _monotonic()
        try:
            result = await func(*args, **kwargs)
        except BaseException as exc:
            self._on_exception(exc, start, period)
            raise
        else:
            self._on_success(start, period)
            return result

    def __repr__(self) -> str:
        return f"CircuitBreaker(name={self._name!r}, state={self.state!s})"
