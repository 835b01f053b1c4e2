"""Circuit breaker state primitives."""

from dataclasses import dataclass
from enum import StrEnum


class CircuitState(StrEnum):
    """Circuit breaker state values."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass(frozen=True)
class BreakerMetrics:
    """Point-in-time view of breaker internals useful for metrics/logging.

    Attributes:
        name: Breaker name.
        state: State at the time the snapshot was taken.
        failure_rate: Failure percentage of the active buffer, or ``None`` while
            the buffer is not yet full (and always while ``OPEN``).
        buffered_calls: Outcomes currently held by the active buffer.
        failed_calls: Failures currently held by the active buffer.
        max_buffered_calls: Capacity of the active buffer (0 while ``OPEN``).
        not_permitted_calls: Calls rejected since the breaker was created or
            last reset.
    """

    name: str
    state: CircuitState
    failure_rate: float | None
    buffered_calls: int
    failed_calls: int
    max_buffered_calls: int
    not_permitted_calls: int
