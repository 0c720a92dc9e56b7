from functools import lru_cache
from typing import Literal
from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment.

    Every tunable of the orchestration core lives here; components receive
    the values through their constructors and never read the environment.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "AgentScale"
    app_version: str = "0.1.0"
    environment: Literal["local", "dev", "staging", "prod"] = "local"
    debug: bool = False

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    # Observability
    log_level: int = 20  # INFO by default (DEBUG=10, INFO=20, WARNING=30, ERROR=40)
    log_format: Literal["json", "console"] = "json"
    log_max_value_length: int = 1000  # base64 frames are truncated past this
    metrics_enabled: bool = True

    # Sentry Error Tracking
    sentry_dsn: str | None = None
    sentry_environment: str | None = None
    sentry_sample_rate: float = 1.0
    sentry_traces_sample_rate: float = 0.1

    # Decision capability
    openai_api_key: SecretStr | None = None
    openai_base_url: str | None = None
    decision_primary_model: str = "computer-use-preview"
    decision_fallback_model: str = "gpt-4o"
    decision_max_tokens: int = 1000
    decision_timeout_seconds: float = 60.0

    # Browser automation
    browser_headless: bool = True
    browser_executable_path: str | None = None
    browser_launch_args: list[str] = Field(
        default_factory=lambda: ["--no-sandbox", "--disable-dev-shm-usage", "--disable-gpu"]
    )
    viewport_width: int = Field(default=1280, gt=0)
    viewport_height: int = Field(default=720, gt=0)
    default_target_address: str = "https://example.com"
    navigation_timeout_ms: int = 30000

    # Action-observation loop
    loop_max_iterations: int = Field(default=20, gt=0)
    loop_step_delay_ms: int = 1000  # pause between iterations

    # Action executor
    action_settle_delay_ms: int = 500
    click_delay_ms: int = 100
    type_delay_ms: int = 50
    keypress_delay_ms: int = 100
    default_wait_ms: int = 2000

    # Scheduler
    scheduler_max_concurrency: int = Field(default=4, gt=0)
    scheduler_idle_interval_seconds: float = 5.0
    scheduler_scan_interval_seconds: float = 60.0
    scheduler_retry_delay_seconds: float = 5.0
    scheduler_scan_page_size: int = Field(default=500, gt=0)

    # Event broadcasting
    events_keepalive_interval_seconds: float = 15.0
    events_subscriber_queue_size: int = Field(default=100, gt=0)

    # Usage accounting
    default_api_quota: int = 1000
    usage_refund_failed_runs: bool = False

    @property
    def is_production(self) -> bool:
        return self.environment == "prod"


@lru_cache
def get_settings() -> Settings:
    """Cached settings instance."""
    return Settings()
