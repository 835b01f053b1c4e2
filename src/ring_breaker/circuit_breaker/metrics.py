"""Observability hooks for circuit breakers."""

from typing import Protocol

from ring_breaker.circuit_breaker.state import CircuitState


class BreakerListener(Protocol):
    """Listener protocol for circuit breaker events.

    Notes:
        Hooks run synchronously on the calling thread, after the breaker has
        released its internal lock. Exceptions raised by a hook are logged and
        suppressed.
    """

    def on_state_transition(
        self, name: str, old: CircuitState, new: CircuitState
    ) -> None:
        """Handle circuit state transitions."""

    def on_call_not_permitted(self, name: str) -> None:
        """Handle a rejected call."""

    def on_success(self, name: str, elapsed: float) -> None:
        """Handle successful protected call completion."""

    def on_error(self, name: str, exc: BaseException, elapsed: float) -> None:
        """Handle a protected call failure that was recorded."""

    def on_ignored_error(self, name: str, exc: BaseException, elapsed: float) -> None:
        """Handle a protected call failure that was not recorded."""
