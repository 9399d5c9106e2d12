"""Runtime settings read from the environment (or a local ``.env`` file).

Access them through ``get_settings()``; tests build ``Settings`` directly or
call ``reset_settings()`` after changing the environment.
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.ab.experiment import ABTestConfig


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", case_sensitive=False, extra="ignore", populate_by_name=True,
    )

    environment: str = Field("development", alias="ENVIRONMENT")
    log_level: str = Field("INFO", alias="LOG_LEVEL")

    # Rate limiting; unset means "only in production"
    rate_limit_enabled: bool | None = Field(None, alias="RATE_LIMIT_ENABLED")
    waitlist_rate_limit: int = Field(5, alias="WAITLIST_RATE_LIMIT")
    analytics_rate_limit: int = Field(20, alias="ANALYTICS_RATE_LIMIT")
    rate_limit_window_seconds: int = Field(15 * 60, alias="RATE_LIMIT_WINDOW_SECONDS")
    rate_limit_sweep_seconds: int = Field(5 * 60, alias="RATE_LIMIT_SWEEP_SECONDS")

    max_payload_kb: float = Field(5, alias="MAX_PAYLOAD_KB")

    # Experiment served from "/"
    ab_test_enabled: bool = Field(True, alias="AB_TEST_ENABLED")
    traffic_split_a: float = Field(50.0, alias="TRAFFIC_SPLIT_A")
    traffic_split_b: float = Field(50.0, alias="TRAFFIC_SPLIT_B")

    significance_session_threshold: int = Field(100, alias="SIGNIFICANCE_SESSION_THRESHOLD")

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def rate_limiting_active(self) -> bool:
        if self.rate_limit_enabled is not None:
            return self.rate_limit_enabled
        return self.is_production

    def ab_test_config(self) -> ABTestConfig:
        return ABTestConfig(
            enabled=self.ab_test_enabled,
            traffic_split={"A": self.traffic_split_a, "B": self.traffic_split_b},
        )


@lru_cache
def get_settings() -> Settings:
    return Settings()


def reset_settings() -> None:
    """Clear cached settings (useful in tests when env vars change)."""
    get_settings.cache_clear()
