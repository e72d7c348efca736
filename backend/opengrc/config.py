from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENV_FILE = Path(__file__).resolve().parent.parent / ".env"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=str(_ENV_FILE),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    APP_NAME: str = "OpenGRC"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    SECRET_KEY: str = "change-me-to-random-string"

    # sqlite+aiosqlite:///./opengrc.db, postgresql+asyncpg://..., mysql+aiomysql://...
    DATABASE_URL: str
    DB_POOL_SIZE: int = 5
    DB_MAX_OVERFLOW: int = 10
    # Echo SQL independently of DEBUG; None follows DEBUG
    SQL_ECHO: bool | None = None

    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173"

    SEARCH_ENABLED: bool = True
    POLICY_TEMPLATES_FILE: str | None = None

    @property
    def cors_origins_list(self) -> list[str]:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    @property
    def is_sqlite(self) -> bool:
        return self.DATABASE_URL.startswith("sqlite")

    @property
    def sql_echo(self) -> bool:
        return self.DEBUG if self.SQL_ECHO is None else self.SQL_ECHO


settings = Settings()
