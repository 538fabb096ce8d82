"""Configuration settings for Waypoint."""

from typing import List

from pydantic_settings import (
    BaseSettings,
    SettingsConfigDict,
)


class Settings(BaseSettings):
    """Pydantic settings class for the application."""

    # Loaded from environment variables or a .env file if not provided
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    LOG_LEVEL: str = "info"  # Options: debug, info, warning, error, critical

    # LLM Configuration
    PROVIDER: str = "ollama"  # Options: ollama, openai, anthropic
    MODEL: str = "llama3.2"
    OLLAMA_HOST: str = "http://localhost:11434"
    OPENAI_API_KEY: str | None = None
    OPENAI_MODEL: str = "gpt-4o-mini"
    ANTHROPIC_API_KEY: str | None = None
    ANTHROPIC_MODEL: str = "claude-3-5-haiku-latest"
    MAX_TOKENS: int = 4000
    REQUEST_TIMEOUT: float = 120.0
    TEMPERATURE: float = 0.7
    PARSE_TEMPERATURE: float = 0.05  # near-deterministic for JSON replies
    PARSE_RETRIES: int = 2

    # Planner Configuration
    SYSTEM_PROMPT: str = "You are a helpful assistant."
    MAX_STEPS: int = 25
    MAX_DUPLICATE_STEPS: int = 3

    # Memory Configuration
    VECTOR_DB: str = "chroma"  # Options: chroma, none
    VECTOR_DB_HOST: str = "localhost"
    VECTOR_DB_PORT: int = 8000
    RAG_TOP_K: int = 3

    # Built-in tools
    SUPPORTED_FILE_TYPES: List[str] = [
        ".c", ".cpp", ".cs", ".csv", ".h", ".html", ".js", ".json", ".log", ".md",
        ".py", ".sh", ".toml", ".ts", ".txt", ".xml", ".yaml", ".yml",
    ]  # fmt: skip
    MAX_FILE_CHARS: int = 16000


settings = Settings()
