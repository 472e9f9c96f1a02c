"""Admission policy options and construction-time validation."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from starlette.requests import Request

from admission_gate.config.settings import Settings
from admission_gate.security.keys import default_key_generator, never_skip

KeyGenerator = Callable[[Request], str]
SkipPredicate = Callable[[Request, str], bool | Awaitable[bool]]
ErrorResponse = Any  # static body, Response, or callable(request) -> body


class ConfigurationError(ValueError):
    """Raised when an admission policy is misconfigured."""


@dataclass
class RateLimitOptions:
    max_requests: int = 100
    window_ms: int = 60_000
    store_capacity: int = 10_000
    store_ttl_ms: int = 3_600_000
    key_generator: KeyGenerator = default_key_generator
    error_response: ErrorResponse = "Too many requests"
    skip: SkipPredicate = never_skip

    def __post_init__(self) -> None:
        for name in ("max_requests", "window_ms", "store_capacity", "store_ttl_ms"):
            if getattr(self, name) <= 0:
                raise ConfigurationError(f"{name} must be positive")
        # A shorter TTL would evict active clients mid-window and reset them to zero
        if self.store_ttl_ms < self.window_ms:
            raise ConfigurationError(
                f"store_ttl_ms ({self.store_ttl_ms}) must be >= window_ms ({self.window_ms})"
            )

    @classmethod
    def from_settings(cls, settings: Settings, **overrides: Any) -> "RateLimitOptions":
        """Build options from environment settings; keyword overrides win."""
        values: dict[str, Any] = {
            "max_requests": settings.rate_limit_max_requests,
            "window_ms": settings.rate_limit_window_ms,
            "store_capacity": settings.rate_limit_store_capacity,
            "store_ttl_ms": settings.rate_limit_store_ttl_ms,
            "error_response": settings.rate_limit_error_message,
        }
        values.update(overrides)
        return cls(**values)
