from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from env vars and local env file."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_env: str = Field(default="local", alias="APP_ENV")
    log_level: str | None = Field(default=None, alias="LOG_LEVEL")

    openai_api_key: str | None = Field(default=None, alias="OPENAI_API_KEY")
    openai_base_url: str | None = Field(default=None, alias="OPENAI_BASE_URL")
    model_name: str = Field(default="gpt-4o-mini", alias="AI_SERVICES_MODEL")
    temperature: float = Field(default=0.0, alias="AI_SERVICES_TEMPERATURE")
    timeout_seconds: float = Field(default=60.0, alias="AI_SERVICES_TIMEOUT_SECONDS", gt=0)
    max_retries: int = Field(default=2, alias="AI_SERVICES_MAX_RETRIES", ge=0)

    memory_capacity: int = Field(default=10, alias="AI_SERVICES_MEMORY_CAPACITY", ge=1)
    max_tool_invocations: int = Field(default=10, alias="AI_SERVICES_MAX_TOOL_INVOCATIONS", ge=1)

    use_mock: bool = Field(default=False, alias="AI_SERVICES_USE_MOCK")
    mock_messages_file: str = Field(
        default="mock-data/messages.md",
        alias="AI_SERVICES_MOCK_MESSAGES_FILE",
    )

    @property
    def effective_log_level(self) -> str:
        if self.log_level:
            return self.log_level.upper()
        return "DEBUG" if self.app_env.lower() == "local" else "INFO"


@lru_cache
def get_settings() -> Settings:
    return Settings()
