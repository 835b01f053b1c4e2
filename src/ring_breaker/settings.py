from __future__ import annotations

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ring_breaker.circuit_breaker.breaker import CircuitBreakerConfig
from ring_breaker.logging import get_log_level_value

ENV_PREFIX = "RING_BREAKER_"


def prefixed_settings_config(prefix: str) -> SettingsConfigDict:
    """Build standard Pydantic settings config for prefixed environments."""
    return SettingsConfigDict(env_prefix=prefix, case_sensitive=False)


class BreakerSettings(BaseSettings):
    """Default breaker configuration read from ``RING_BREAKER_*`` variables."""

    model_config = prefixed_settings_config(ENV_PREFIX)

    failure_rate_threshold: float = Field(default=50.0, gt=0, le=100)
    wait_duration_in_open_state: float = Field(
        default=60.0, gt=0, allow_inf_nan=False
    )
    ring_buffer_size_in_closed_state: int = Field(default=100, ge=1)
    ring_buffer_size_in_half_open_state: int = Field(default=10, ge=1)
    log_level: str = "INFO"

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_log_level(cls, value: object) -> object:
        if not isinstance(value, str):
            return value
        normalized = value.strip().upper()
        get_log_level_value(normalized)
        return normalized

    def to_config(self) -> CircuitBreakerConfig:
        """Build the immutable breaker config described by these settings."""
        return CircuitBreakerConfig(
            failure_rate_threshold=self.failure_rate_threshold,
            wait_duration_in_open_state=self.wait_duration_in_open_state,
            ring_buffer_size_in_closed_state=self.ring_buffer_size_in_closed_state,
            ring_buffer_size_in_half_open_state=(
                self.ring_buffer_size_in_half_open_state
            ),
        )
