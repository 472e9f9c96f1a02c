"""Application settings loaded from environment variables."""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Fixed-window admission policy
    rate_limit_max_requests: int = 100  # Requests allowed per window per client
    rate_limit_window_ms: int = 60_000
    rate_limit_error_message: str = "Too many requests"

    # Counter store bounds
    rate_limit_store_capacity: int = 10_000  # Max tracked client keys (LRU beyond)
    rate_limit_store_ttl_ms: int = 3_600_000  # Must be >= rate_limit_window_ms

    # Comma-separated request paths that bypass admission entirely
    rate_limit_skip_paths: str = "/health"
    # Comma-separated headers consulted (in order) to identify the client
    rate_limit_key_headers: str = "x-forwarded-for,x-real-ip,forwarded"

    # Logging
    log_level: str = "INFO"
    log_file: str = ""  # Empty = stdout only

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    @property
    def skip_paths_list(self) -> list[str]:
        return _split_csv(self.rate_limit_skip_paths)

    @property
    def key_headers_list(self) -> list[str]:
        return [h.lower() for h in _split_csv(self.rate_limit_key_headers)]


def _split_csv(value: str) -> list[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


@lru_cache
def get_settings() -> Settings:
    return Settings()
