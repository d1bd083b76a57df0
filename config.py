from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./data/peptides.db"
    SECRET_KEY: str = "change-this-secret-key-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7
    TOKEN_ISSUER: str = "peptide-suggestions-app"

    APP_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "production"
    FRONTEND_URL: str = "http://localhost:3000"

    # 일반 엔드포인트 / 인증 엔드포인트 요청 제한
    RATE_LIMIT_WINDOW_SECONDS: int = 15 * 60
    RATE_LIMIT_MAX_REQUESTS: int = 100
    AUTH_RATE_LIMIT_WINDOW_SECONDS: int = 15 * 60
    AUTH_RATE_LIMIT_MAX_REQUESTS: int = 5

    ANALYTICS_FILE: str = "data/analytics.json"
    ANALYTICS_RETENTION_DAYS: int = 90

    SUGGESTION_CATALOG_PATH: Optional[str] = None

    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"
    LOG_TO_FILE: bool = True

    model_config = SettingsConfigDict(env_file=".env")

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT.lower() == "development"


settings = Settings()
