"""Fixed-capacity outcome window used by the circuit breaker states."""


class OutcomeRingBuffer:
    """Record the last ``capacity`` call outcomes and their failure count.

    Slots are preallocated once. Recording past capacity overwrites the oldest
    outcome, so the failure count is kept in sync without rescanning.

    The buffer is not thread-safe on its own; the owning breaker serializes
    access under its lock.
    """

    __slots__ = ("_capacity", "_failures", "_index", "_recorded", "_slots")

    def __init__(self, capacity: int) -> None:
        """Create an empty buffer.

        Args:
            capacity: Number of outcomes kept. Must be >= 1.
        """
        if isinstance(capacity, bool) or capacity < 1:
            raise ValueError("capacity must be >= 1")
        self._capacity = capacity
        self._slots = [False] * capacity
        self._index = 0
        self._recorded = 0
        self._failures = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def recorded_count(self) -> int:
        return self._recorded

    @property
    def failure_count(self) -> int:
        return self._failures

    @property
    def is_full(self) -> bool:
        return self._recorded == self._capacity

    def record(self, is_failure: bool) -> None:
        """Append one outcome, evicting the oldest when the buffer is full."""
        if self._recorded == self._capacity:
            if self._slots[self._index]:
                self._failures -= 1
        else:
            self._recorded += 1

        self._slots[self._index] = is_failure
        if is_failure:
            self._failures += 1
        self._index = (self._index + 1) % self._capacity

    def failure_rate(self) -> float | None:
        """Return the failure percentage, or ``None`` until the buffer is full."""
        if self._recorded < self._capacity:
            return None
        return self._failures * 100.0 / self._capacity

    def __repr__(self) -> str:
        return (
            f"OutcomeRingBuffer(capacity={self._capacity}, "
            f"recorded={self._recorded}, failures={self._failures})"
        )
