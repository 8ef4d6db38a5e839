"""
Central configuration for the Lifelog RAG query engine.
All settings loaded from environment with safe defaults.
"""

from pathlib import Path
from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    """Application settings with environment variable loading."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # === Environment ===
    ENV: str = Field(default="development", description="Environment: development, staging, production")
    DEBUG: bool = Field(default=False)
    LOG_LEVEL: str = Field(default="INFO")

    # === API Keys ===
    GEMINI_API_KEY: Optional[str] = Field(default=None)
    OPENROUTER_API_KEY: Optional[str] = Field(default=None)
    LANGSMITH_API_KEY: Optional[str] = Field(default=None)

    # === LangSmith Tracing ===
    LANGCHAIN_TRACING_V2: bool = Field(default=False)
    LANGCHAIN_PROJECT: str = Field(default="lifelog-rag")
    LANGCHAIN_ENDPOINT: str = Field(default="https://api.smith.langchain.com")

    # === Paths ===
    BASE_DIR: Path = Field(default_factory=lambda: Path(__file__).parent.parent)
    DATA_DIR: Path = Field(default_factory=lambda: Path(__file__).parent.parent / "data")
    VECTORSTORE_DIR: Path = Field(default_factory=lambda: Path(__file__).parent.parent / "data" / "vectorstores")

    # === Embedding Model ===
    EMBEDDING_MODEL_NAME: str = Field(default="all-MiniLM-L6-v2")
    EMBEDDING_DIMENSION: int = Field(default=384)

    # === RAG Configuration ===
    RAG_TOP_K_RESULTS: int = Field(default=10, description="Matches retrieved for general and data-type queries")
    RAG_TOP_K_ACTIVITY: int = Field(default=20, description="Matches retrieved for activity-scoped queries")
    RAG_TOP_K_COUNT_QUERY: int = Field(default=50, description="Matches retrieved for counting queries")
    RAG_CONTEXT_MAX_LENGTH: int = Field(default=8000, description="Character budget of the grounding context")
    CHUNK_SIZE: int = Field(default=500)
    CHUNK_OVERLAP: int = Field(default=50)

    # === LLM Configuration ===
    LLM_TEMPERATURE: float = Field(default=0.3)
    LLM_MAX_TOKENS: int = Field(default=1024)
    GEMINI_MODEL: str = Field(default="gemini-1.5-flash")

    # === OpenRouter ===
    OPENROUTER_URL: str = Field(default="https://openrouter.ai/api/v1/chat/completions")
    OPENROUTER_MODEL: str = Field(default="openai/gpt-4o")

    # === Timeouts (seconds) ===
    EMBEDDING_TIMEOUT_SECONDS: float = Field(default=10.0)
    RETRIEVAL_TIMEOUT_SECONDS: float = Field(default=10.0)
    COMPLETION_TIMEOUT_SECONDS: float = Field(default=60.0)


# Singleton instance
settings = Settings()


def ensure_directories():
    """Create required directories if they don't exist."""
    settings.DATA_DIR.mkdir(parents=True, exist_ok=True)
    settings.VECTORSTORE_DIR.mkdir(parents=True, exist_ok=True)
