"""Configuration from .env file."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Optional at import time; LLMService refuses to start without it.
    OPENAI_API_KEY: str | None = None
    OPENAI_MODEL: str = "gpt-5-mini"
    # Falls back to OPENAI_MODEL when unset.
    OPENAI_EVAL_MODEL: str | None = None
    OPENAI_TEMPERATURE: float = 0.7  # Lessons, new questions, reveals, topics
    OPENAI_EVAL_TEMPERATURE: float = 0.1  # Answer evaluation

    MAX_TOPICS: int = 12
    DEFAULT_SUBJECT: str = "math"

    # Where the CLI finds the HTTP API when run with --base-url.
    API_BASE_URL: str = "http://localhost:8000"
    API_TIMEOUT: float = 60.0

    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"


settings = Settings()
