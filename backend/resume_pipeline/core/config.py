"""
Application configuration using Pydantic Settings
"""
from typing import List, Optional
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Application
    APP_NAME: str = "Resume Pipeline"
    APP_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"
    DEBUG: bool = False

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./resume_pipeline.db"
    DATABASE_POOL_SIZE: int = 10
    DATABASE_MAX_OVERFLOW: int = 20

    # Redis (cross-process tick lock for the celery worker mode)
    REDIS_URL: str = "redis://localhost:6379/0"
    QUEUE_LOCK_TIMEOUT_SECONDS: int = 600

    # Async Tasks
    CELERY_BROKER_URL: str = "redis://localhost:6379/1"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/2"

    # File Storage
    UPLOAD_DIR: str = "./uploads/resumes"
    FALLBACK_STORAGE_DIR: str = "./uploads"
    ASSETS_DIR: str = "./assets"
    MAX_UPLOAD_SIZE_MB: int = 10
    ALLOWED_MIME_TYPES: List[str] = ["application/pdf"]
    MAX_RESUMES_PER_OWNER: int = 3

    # Processing queue
    # "inprocess" runs the ticker inside the API process, "celery" relies on beat,
    # "disabled" leaves the queue to manual processing only
    QUEUE_WORKER_MODE: str = "inprocess"
    QUEUE_POLL_INTERVAL_SECONDS: float = 30.0
    QUEUE_BATCH_SIZE: int = 10
    QUEUE_STALE_AFTER_SECONDS: int = 900
    DEFAULT_QUEUE_PRIORITY: int = 5

    # Extraction
    SCREENSHOT_SCALE: float = 1.5
    SCREENSHOT_PAGES: int = 1
    IMAGE_SIZE_THRESHOLD: int = 50

    # AI enrichment (Ollama compatible /api/chat endpoint)
    AI_ENRICHMENT_ENABLED: bool = True
    AI_ENRICHMENT_BASE_URL: str = "http://localhost:11434"
    AI_ENRICHMENT_MODEL: str = "llama3.2-vision"
    AI_ENRICHMENT_API_KEY: Optional[str] = None
    AI_ENRICHMENT_TIMEOUT_SECONDS: float = 30.0
    AI_ENRICHMENT_MIN_TEXT_LENGTH: int = 100

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173"
    CORS_ALLOW_CREDENTIALS: bool = True

    # Observability
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    @property
    def cors_origins_list(self) -> List[str]:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    @property
    def max_upload_size_bytes(self) -> int:
        return self.MAX_UPLOAD_SIZE_MB * 1024 * 1024

    @property
    def ai_timeout_seconds(self) -> float:
        """AI timeout clamped to the supported 5-60 second window"""
        return min(max(self.AI_ENRICHMENT_TIMEOUT_SECONDS, 5.0), 60.0)

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
