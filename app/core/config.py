from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List

class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    APP_ENV: str = "local"
    APP_NAME: str = "resource-api-core"

    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:4200"

    DATABASE_URL: str

    DEFAULT_API_VERSION: int = 1
    QUERY_DEFAULT_LIMIT: int = 50
    QUERY_MAX_LIMIT: int = 500
    QUERY_MAX_PAGE: int = 1_000_000

    # Caller scope: first-party services present this token to get internal artifacts.
    INTERNAL_SERVICE_TOKEN: str = ""
    INTERNAL_TOKEN_HEADER: str = "X-Internal-Token"
    INTERNAL_PARAM_PREFIX: str = "_"

    # Compose/infra vars that may exist in shared .env
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"
    POSTGRES_DB: str = "resources"

    @property
    def cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

settings = Settings()
