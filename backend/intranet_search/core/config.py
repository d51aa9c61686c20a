from pydantic_settings import BaseSettings
from pydantic import ConfigDict, field_validator
from typing import List, Optional


PLACEHOLDER_SECRETS = ['', 'test', 'changeme', 'default']


class Settings(BaseSettings):
    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./intranet_search.db"
    DATABASE_ECHO: bool = False

    # Gemini API (embeddings + chat completions)
    GEMINI_API_KEY: Optional[str] = None
    EMBEDDING_MODEL: str = "models/text-embedding-004"
    EMBEDDING_DIMENSIONS: int = 768
    EMBEDDING_MAX_INPUT_CHARS: int = 8000
    SUGGESTION_MODEL: str = "gemini-2.5-flash-lite"
    INSIGHTS_MODEL: str = "gemini-2.5-flash"

    # Clerk Authentication (optional: searches may be anonymous)
    CLERK_SECRET_KEY: Optional[str] = None
    CLERK_PUBLISHABLE_KEY: Optional[str] = None
    CLERK_JWKS_URL: str = "https://api.clerk.com/v1/jwks"

    @field_validator('GEMINI_API_KEY', 'CLERK_SECRET_KEY', 'CLERK_PUBLISHABLE_KEY', mode='before')
    @classmethod
    def validate_optional_secrets(cls, v, info):
        if v is None:
            return v
        if v in PLACEHOLDER_SECRETS:
            raise ValueError(f'{info.field_name} cannot be empty or use a placeholder value')
        return v

    # Index Builder
    INDEX_BATCH_SIZE: int = 10
    FEED_POST_WINDOW_DAYS: int = 7
    INDEX_TITLE_WORDS: int = 10
    INDEX_REBUILD_HOUR_UTC: int = 3

    # Query Engine
    SEARCH_MATCH_THRESHOLD: float = 0.6
    SEARCH_DEFAULT_LIMIT: int = 10
    SEARCH_MAX_LIMIT: int = 50
    TEXT_SEARCH_CONFIG: str = "portuguese"
    CONTENT_GAP_MIN_QUERY_LENGTH: int = 3

    # Redis Configuration
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    CONTENT_GAP_CACHE_TTL: int = 600

    # Celery Configuration
    CELERY_BROKER_URL: str = ""
    CELERY_RESULT_BACKEND: str = ""

    # API Settings
    API_V1_STR: str = "/api/v1"
    PROJECT_NAME: str = "Intranet Search"
    LOG_LEVEL: str = "INFO"

    # CORS
    ALLOWED_ORIGINS: List[str] = ["*"]

    model_config = ConfigDict(env_file=".env")

    @property
    def is_postgres(self) -> bool:
        return self.DATABASE_URL.startswith("postgresql")

    @property
    def celery_broker_url(self) -> str:
        """Build Celery broker URL from Redis configuration."""
        if self.CELERY_BROKER_URL:
            return self.CELERY_BROKER_URL
        return f"redis://{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"

    @property
    def celery_result_backend(self) -> str:
        """Build Celery result backend URL from Redis configuration."""
        if self.CELERY_RESULT_BACKEND:
            return self.CELERY_RESULT_BACKEND
        return f"redis://{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB + 1}"


settings = Settings()
