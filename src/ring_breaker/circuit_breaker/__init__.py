"""In-process ring-buffer circuit breaker.

Key behavior notes:
  - ``CLOSED`` and ``HALF_OPEN`` each evaluate a fixed-size ring buffer of the
    most recent outcomes. The failure rate is only evaluated once the buffer is
    full, so a breaker never trips on fewer calls than its buffer size.
  - A full buffer whose failure rate is at or above the threshold opens the
    circuit. In ``HALF_OPEN`` a full buffer below the threshold closes it.
  - ``OPEN`` expires lazily: the first permission check after the wait duration
    moves the breaker to ``HALF_OPEN``. No timer thread is involved.
  - ``HALF_OPEN`` hands out at most ``ring_buffer_size_in_half_open_state``
    trial permits per half-open period.
"""

from ring_breaker.circuit_breaker.breaker import CircuitBreaker, CircuitBreakerConfig
from ring_breaker.circuit_breaker.decorators import (
    decorate_callable,
    decorate_coroutine_function,
    guarded_by,
)
from ring_breaker.circuit_breaker.exceptions import (
    CallNotPermittedError,
    CircuitBreakerError,
)
from ring_breaker.circuit_breaker.metrics import BreakerListener
from ring_breaker.circuit_breaker.registry import CircuitBreakerRegistry
from ring_breaker.circuit_breaker.ring_buffer import OutcomeRingBuffer
from ring_breaker.circuit_breaker.state import BreakerMetrics, CircuitState

__all__ = [
    "BreakerListener",
    "BreakerMetrics",
    "CallNotPermittedError",
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitBreakerError",
    "CircuitBreakerRegistry",
    "CircuitState",
    "OutcomeRingBuffer",
    "decorate_callable",
    "decorate_coroutine_function",
    "guarded_by",
]
