from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    # Application
    app_name: str = "MathSprint"
    debug: bool = False
    log_level: str = "INFO"

    # LLM collaborator (questions + judge)
    llm_provider: str = "openai"
    openai_api_key: str = ""
    gemini_api_key: str = ""
    question_model: str = "gpt-4o-mini"
    judge_model: str = "gpt-4o-mini"

    # Generation / evaluation limits
    augmented_max_count: int = 45
    judge_cache_capacity: int = 200

    # Session pacing
    default_duration_minutes: int = 5
    initial_batch_size: int = 10
    refill_threshold: int = 3
    refill_cooldown_seconds: float = 4.0
    refill_batch_min: int = 10
    ended_session_retention_seconds: float = 600.0

    # CORS
    frontend_url: str = "http://localhost:5173"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache
def get_settings() -> Settings:
    return Settings()
