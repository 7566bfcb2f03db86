"""Agent configuration."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_FILE = Path(__file__).resolve().parents[2] / ".env"
load_dotenv(ENV_FILE, override=False)


class AgentSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="NOTEBOOK_AGENT_", env_file=str(ENV_FILE), extra="ignore")

    host: str = "0.0.0.0"
    port: int = 7002

    openai_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("OPENAI_API_KEY", "NOTEBOOK_AGENT_OPENAI_API_KEY"),
    )
    openai_model: str = "gpt-4o-mini"
    temperature: float = 0.0
    openai_timeout_s: float = 30.0
    mock_llm: bool = False

    max_attempts: int = Field(default=3, ge=1)
    max_plan_steps: int = Field(default=8, ge=1)
    tool_timeout_s: float = 20.0
    run_timeout_s: float | None = 120.0

    trace_dir: str = "traces"
    notebooks_dir: str = "notebooks"
    retrieval_base_url: str | None = None
    request_timeout_s: float = 10.0

    sql_row_limit: int = Field(default=200, ge=1)
    max_result_chars: int = 4000
    snippet_chars: int = 240


@lru_cache(maxsize=1)
def get_settings() -> AgentSettings:
    return AgentSettings()
