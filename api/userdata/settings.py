from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = "User Data API"
    app_version: str = "1.0.0"
    log_level: str = "INFO"

    # LRU cache in front of the user lookup
    cache_capacity: int = 100
    cache_ttl_seconds: float = 60.0
    cache_sweep_interval_seconds: float | None = None  # defaults to ttl / 6

    # Admission control: sustained quota plus a shorter burst quota
    rate_limit_max_requests: int = 10
    rate_limit_window_seconds: float = 60.0
    rate_limit_burst_requests: int = 5
    rate_limit_burst_window_seconds: float = 10.0
    rate_limit_cleanup_interval_seconds: float | None = None  # defaults to the sustained window

    queue_max_concurrent: int = 10
    response_time_samples: int = 1000

    # Simulated latency of the backing user store
    db_delay_seconds: float = 0.2

settings = Settings()
