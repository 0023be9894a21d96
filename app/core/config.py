from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List

class Settings(BaseSettings):
    APP_NAME: str = "Vyapaal API"
    DEBUG: bool = False

    # Database
    MONGODB_URL: str
    DATABASE_NAME: str = "vyapaal"

    # Security
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7

    # CORS
    CORS_ORIGINS: List[str] = ["*"]

    # Logging
    LOG_LEVEL: str = "INFO"

    # Business / role code generation
    CODE_GENERATION_RETRIES: int = 5

    # Demo data (seed.py)
    DEMO_OWNER_EMAIL: str | None = None
    DEMO_OWNER_PASSWORD: str | None = None

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore"
    )

settings = Settings()
