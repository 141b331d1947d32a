"""
Configuration management using Pydantic Settings.
All environment variables are loaded and validated here.
"""

from typing import List, Literal, Optional
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ================================
    # Application Configuration
    # ================================
    APP_NAME: str = "ReelRecall"
    APP_ENV: Literal["development", "staging", "production"] = "development"
    DEBUG: bool = True

    # API Configuration
    API_V1_PREFIX: str = "/api/v1"
    ALLOWED_ORIGINS: str = "http://localhost:3000,http://localhost:8000"

    @field_validator("ALLOWED_ORIGINS")
    @classmethod
    def parse_origins(cls, v: str) -> List[str]:
        """Parse comma-separated origins into list."""
        return [origin.strip() for origin in v.split(",")]

    # ================================
    # Embedding Configuration
    # ================================
    OPENAI_API_KEY: Optional[str] = None
    EMBEDDING_MODEL: str = "text-embedding-3-large"
    EMBEDDING_DIMENSION: int = 3072
    EMBEDDING_MAX_TOKENS: int = 8191
    EMBEDDING_MAX_ATTEMPTS: int = 3
    EMBEDDING_BATCH_SIZE: int = 10
    EMBEDDING_BATCH_PAUSE_SECONDS: float = 1.0
    EMBEDDING_REQUEST_TIMEOUT: float = 30.0

    # Request ceiling shared by every embedding call in the process
    EMBEDDING_RATE_LIMIT_REQUESTS: int = 150
    EMBEDDING_RATE_LIMIT_WINDOW_SECONDS: float = 60.0
    EMBEDDING_RATE_LIMIT_BLOCK: bool = True

    # ================================
    # Vector Database Configuration
    # ================================
    VECTOR_DB_TYPE: Literal["pinecone", "memory"] = "pinecone"

    PINECONE_API_KEY: Optional[str] = None
    PINECONE_INDEX_NAME: str = "data-index"
    PINECONE_UPSERT_BATCH_SIZE: int = 100

    # ================================
    # Language Model Configuration
    # ================================
    ANTHROPIC_API_KEY: Optional[str] = None
    ANTHROPIC_MODEL: str = "claude-3-5-haiku-20241022"
    ANTHROPIC_MAX_TOKENS: int = 2048
    LLM_REQUEST_TIMEOUT: float = 30.0

    # ================================
    # Chunking Configuration
    # ================================
    CHUNK_MAX_TOKENS: int = 512
    CHUNK_MAX_CONTENT_TOKENS: int = 8000
    # Serialized visual payload per record, kept under the 40KB metadata limit
    CHUNK_VISUAL_BYTE_BUDGET: int = 35000
    CHUNK_SEARCHABLE_TEXT_CHARS: int = 1000

    # ================================
    # RAG Configuration
    # ================================
    RAG_TOP_K: int = 5
    RAG_OVERFETCH_FACTOR: int = 4
    RAG_RERANK_CAP: int = 5
    # None: search returns every re-ranked result
    RAG_SEARCH_MIN_SCORE: Optional[float] = None
    RAG_ANSWER_MIN_SCORE: float = 0.5
    RAG_RECENT_DAYS: int = 7
    RAG_MAX_CONTEXT_TOKENS: int = 3000

    # ================================
    # Ingestion Queue Configuration
    # ================================
    QUEUE_MAX_ATTEMPTS: int = 3
    QUEUE_RETRY_DELAY_SECONDS: float = 5.0

    # ================================
    # External Collaborators
    # ================================
    VIDEO_ANALYSIS_URL: Optional[str] = None
    VIDEO_ANALYSIS_TIMEOUT: float = 300.0

    MESSAGE_WEBHOOK_URL: Optional[str] = None
    VIDEO_WEBHOOK_URL: Optional[str] = None
    MESSAGE_MAX_LENGTH: int = 950
    WEBHOOK_TIMEOUT: float = 10.0

    # ================================
    # Logging Configuration
    # ================================
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    LOG_FORMAT: Literal["json", "text"] = "json"

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.APP_ENV == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.APP_ENV == "production"


# Global settings instance
settings = Settings()
