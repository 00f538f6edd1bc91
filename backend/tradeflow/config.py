"""Application configuration management using Pydantic Settings."""

from typing import List
import json

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: str

    # API
    API_V1_PREFIX: str = "/api"

    # CORS
    CORS_ORIGINS: List[str] = ['http://localhost:3000']

    # Environment
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # AI negotiation (Claude)
    NEGOTIATION_LLM_API_KEY: str = ""
    NEGOTIATION_LLM_MODEL: str = "claude-sonnet-4-5-20250929"
    ENABLE_AI_NEGOTIATION: bool = True
    NEGOTIATION_TEMPERATURE: float = 0.8  # Consistent but still creative counter-offers
    PRICE_RECOMMENDATION_TEMPERATURE: float = 0.7
    AI_MAX_OUTPUT_TOKENS: int = 500
    AI_REQUEST_TIMEOUT_SECONDS: float = 30.0

    # AI retry policy (rate limits only)
    AI_MAX_ATTEMPTS: int = 3
    AI_RETRY_BASE_DELAY: float = 0.5  # Seconds, doubled per attempt
    AI_RETRY_JITTER: float = 0.1  # Seconds of random jitter added per attempt

    # Real-time rooms
    ROOM_QUEUE_SIZE: int = 100  # Pending events per connection before it is dropped

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True
    )

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def parse_cors_origins(cls, v) -> List[str]:
        """Parse CORS_ORIGINS from JSON string to list."""
        if isinstance(v, str):
            return json.loads(v)
        return v


# Global settings instance
settings = Settings()
