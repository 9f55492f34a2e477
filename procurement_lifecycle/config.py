from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import Optional


class Settings(BaseSettings):
    APP_NAME: str = "procurement-lifecycle"
    APP_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    API_BASE_URL: str = "http://localhost:3001/api"
    API_TOKEN: Optional[str] = None
    HTTP_TIMEOUT: Optional[float] = None  # None keeps the httpx default

    PAGE_LIMIT: int = 9
    PROOF_ALLOWED_EXTENSIONS: str = ".pdf,.jpg,.jpeg,.png"

    @property
    def proof_extensions_list(self) -> list[str]:
        return [e.strip().lower() for e in self.PROOF_ALLOWED_EXTENSIONS.split(",") if e.strip()]

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
