"""Wrap callables so every invocation goes through a circuit breaker."""

import functools
import inspect
from collections.abc import Awaitable, Callable
from typing import Any, ParamSpec, TypeVar

from ring_breaker.circuit_breaker.breaker import CircuitBreaker

T = TypeVar("T")
P = ParamSpec("P")


def decorate_callable(breaker: CircuitBreaker, func: Callable[P, T]) -> Callable[P, T]:
    """Return ``func`` guarded by ``breaker`` with an identical signature."""

    @functools.wraps(func)
    def _guarded(*args: P.args, **kwargs: P.kwargs) -> T:
        return breaker.call(func, *args, **kwargs)

    return _guarded


def decorate_coroutine_function(
    breaker: CircuitBreaker,
    func: Callable[P, Awaitable[T]],
) -> Callable[P, Awaitable[T]]:
    """Return async ``func`` guarded by ``breaker`` with an identical signature."""

    @functools.wraps(func)
    async def _guarded(*args: P.args, **kwargs: P.kwargs) -> T:
        return await breaker.call_async(func, *args, **kwargs)

    return _guarded


def guarded_by(
    breaker: CircuitBreaker,
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Decorator form of ``decorate_callable``/``decorate_coroutine_function``.

    Example:
        >>> breaker = CircuitBreaker.with_defaults("geocoder")
        >>> @guarded_by(breaker)
        ... async def geocode(address: str) -> dict[str, float]:
        ...     return await client.lookup(address)
    """

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        if inspect.iscoroutinefunction(func):
            return decorate_coroutine_function(breaker, func)
        return decorate_callable(breaker, func)

    return decorator
