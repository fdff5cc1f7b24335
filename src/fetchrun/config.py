"""Configuration using pydantic-settings."""

from pydantic import model_validator
from pydantic_settings import BaseSettings


class RunSettings(BaseSettings):
    """Run configuration."""

    min_concurrency: int = 10
    max_concurrency: int = 50
    max_retries: int = 1
    request_timeout: float = 30.0
    # 0 means unlimited
    max_requests_per_run: int = 10

    items_path: str = "data.items"
    output_dir: str = "storage/datasets/default"
    log_level: str = "INFO"

    user_agent: str = "fetchrun/0.1"
    max_connections: int = 100
    max_keepalive_connections: int = 20

    model_config = {"env_prefix": "FETCHRUN_"}

    @model_validator(mode="after")
    def _check_limits(self) -> "RunSettings":
        if self.min_concurrency < 1:
            raise ValueError("min_concurrency must be at least 1")
        if self.max_concurrency < self.min_concurrency:
            raise ValueError("max_concurrency must be >= min_concurrency")
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.request_timeout <= 0:
            raise ValueError("request_timeout must be positive")
        if self.max_requests_per_run < 0:
            raise ValueError("max_requests_per_run must be >= 0 (0 = unlimited)")
        return self


settings = RunSettings()
