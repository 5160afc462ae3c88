from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_timezone: str = Field(default="Asia/Jerusalem")
    app_log_level: str = Field(default="INFO")

    openai_api_key: str = Field(default="replace_me")
    openai_model: str = Field(default="gpt-4.1-mini")
    openai_monthly_budget_usd: float = Field(default=10.0)
    openai_estimated_input_cost_per_1k: float = Field(default=0.0003)
    openai_estimated_output_cost_per_1k: float = Field(default=0.0012)

    prompt_dialect: Literal["short", "verbose"] = Field(default="short")
    llm_recovery_attempts: int = Field(default=1, ge=0, le=5)
    llm_circuit_failure_threshold: int = Field(default=3)
    llm_circuit_open_seconds: int = Field(default=60)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
