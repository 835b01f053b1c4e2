"""Named circuit breaker registry."""

from __future__ import annotations

import threading
from collections.abc import Sequence
from typing import TYPE_CHECKING, Self

from ring_breaker.circuit_breaker.breaker import CircuitBreaker, CircuitBreakerConfig
from ring_breaker.circuit_breaker.metrics import BreakerListener
from ring_breaker.logging import get_breaker_logger, log_info

if TYPE_CHECKING:
    from ring_breaker.settings import BreakerSettings


class CircuitBreakerRegistry:
    """Create and hand out one ``CircuitBreaker`` per name.

    The registry is a plain object: build one per process (or per test) and
    pass it to the code that needs breakers.

    Example:
        >>> registry = CircuitBreakerRegistry.of(CircuitBreakerConfig())
        >>> breaker = registry.circuit_breaker("inventory-api")
        >>> breaker is registry.circuit_breaker("inventory-api")
        True
    """

    def __init__(
        self,
        default_config: CircuitBreakerConfig | None = None,
        *,
        listeners: Sequence[BreakerListener] | None = None,
    ) -> None:
        """Initialize an empty registry.

        Args:
            default_config: Config for breakers requested without one. Defaults
                to ``CircuitBreakerConfig()``.
            listeners: Listener hooks attached to every breaker created here.
        """
        self._default_config = (
            CircuitBreakerConfig() if default_config is None else default_config
        )
        self._listeners = tuple(listeners) if listeners is not None else ()
        self._breakers: dict[str, CircuitBreaker] = {}
        self._lock = threading.Lock()
        self._logger = get_breaker_logger("circuit_breaker_registry")

    @classmethod
    def of(cls, default_config: CircuitBreakerConfig) -> Self:
        return cls(default_config)

    @classmethod
    def of_defaults(cls) -> Self:
        return cls()

    @classmethod
    def from_settings(cls, settings: BreakerSettings) -> Self:
        """Build a registry whose default config comes from environment settings."""
        return cls(settings.to_config())

    @property
    def default_config(self) -> CircuitBreakerConfig:
        return self._default_config

    def circuit_breaker(
        self,
        name: str,
        config: CircuitBreakerConfig | None = None,
    ) -> CircuitBreaker:
        """Return the breaker registered under ``name``, creating it if missing.

        Args:
            name: Breaker name.
            config: Config used only when the breaker is created by this call.
                Ignored when ``name`` is already registered.

        Returns:
            The single ``CircuitBreaker`` instance for ``name``.
        """
        created = False
        with self._lock:
            breaker = self._breakers.get(name)
            if breaker is None:
                breaker = CircuitBreaker(
                    name,
                    config=self._default_config if config is None else config,
                    listeners=self._listeners,
                )
                self._breakers[name] = breaker
                created = True

        if created:
            log_info(
                self._logger,
                "circuit_breaker_registry.created",
                breaker=name,
                default_config=config is None,
            )
        elif config is not None and config != breaker.config:
            log_info(
                self._logger,
                "circuit_breaker_registry.config_ignored",
                breaker=name,
            )
        return breaker

    def get(self, name: str) -> CircuitBreaker | None:
        """Return the breaker for ``name`` without creating one."""
        with self._lock:
            return self._breakers.get(name)

    @property
    def names(self) -> list[str]:
        with self._lock:
            return list(self._breakers)

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._breakers

    def __len__(self) -> int:
        with self._lock:
            return len(self._breakers)
