"""Circuit breaker exceptions.

Callers can distinguish between:
  - A call being rejected before it was attempted (``CallNotPermittedError``).
  - A call that was attempted and failed (the operation's own exception, which
    is always re-raised unchanged).
"""

from ring_breaker.circuit_breaker.state import CircuitState


class CircuitBreakerError(Exception):
    """Base exception for the circuit breaker package."""


class CallNotPermittedError(CircuitBreakerError):
    """Raised when a breaker refuses to run a call.

    Attributes:
        breaker_name: Name of the breaker rejecting the call.
        state: Breaker state observed when the call was rejected.
        retry_after: Seconds until the open-state wait expires. ``0.0`` when the
            breaker is half-open and all trial permits are in use.
    """

    def __init__(
        self,
        breaker_name: str,
        state: CircuitState,
        retry_after: float = 0.0,
    ) -> None:
        """Initialize a call-not-permitted exception payload.

        Args:
            breaker_name: Breaker rejecting the call.
            state: Breaker state at rejection time.
            retry_after: Seconds until the next trial call may be attempted.
        """
        self.breaker_name = breaker_name
        self.state = state
        self.retry_after = retry_after
        super().__init__(
            f"call_not_permitted: {breaker_name} state={state} "
            f"retry_after={retry_after:g}s"
        )
