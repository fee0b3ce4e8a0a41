# stationsportal/config.py
from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    SECRET_KEY: str = Field("change-me-in-production")
    ALGORITHM: str = Field("HS256")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(30)
    REFRESH_TOKEN_EXPIRE_DAYS: int = Field(7)

    DATABASE_URL: str = Field("sqlite+aiosqlite:///./stationsportal.db")
    SQL_ECHO: bool = Field(False)

    LOG_LEVEL: str = Field("INFO")

    # Create tables on startup (local/demo). Production runs Alembic.
    AUTO_CREATE_TABLES: bool = Field(True)

    model_config = {
        "env_file": ".env",
        "extra": "allow",
    }

    @property
    def effective_database_url(self) -> str:
        """
        asyncpg is the production driver, so plain postgres URLs
        (as handed out by most hosting dashboards) are rewritten.
        """
        url = self.DATABASE_URL
        if url.startswith("postgres://"):
            url = url.replace("postgres://", "postgresql://", 1)
        if url.startswith("postgresql://"):
            url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
        return url


settings = Settings()
