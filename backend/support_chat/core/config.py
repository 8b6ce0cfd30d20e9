from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator, model_validator
from typing import Any, ClassVar
import json
from pathlib import Path
import os


class Settings(BaseSettings):
    API_V1_STR: str = "/api/v1"

    # Database URL
    # Use an absolute path so running the app from different directories
    # (e.g., repo root or backend/) always resolves the same DB file.
    BASE_DIR: ClassVar[Path] = Path(__file__).resolve().parents[2]
    SQLALCHEMY_DATABASE_URL: str = f"sqlite:///{BASE_DIR / 'support_chat.db'}"

    # Pool sizing for non-SQLite engines. Every storage call is bounded by
    # DB_POOL_TIMEOUT (connection checkout) or SQLITE_BUSY_TIMEOUT (locks).
    DB_POOL_SIZE: int = 6
    DB_MAX_OVERFLOW: int = 6
    DB_POOL_RECYCLE: int = 300
    DB_POOL_TIMEOUT: float = 5.0
    SQLITE_BUSY_TIMEOUT: float = 15.0

    # Redis connection URL for the unread-count cache
    REDIS_URL: str = "redis://localhost:6379/0"
    UNREAD_CACHE_TTL: int = 300

    # CORS origins
    CORS_ORIGINS: list[str] = ["http://localhost:3000", "http://localhost:5173"]
    CORS_ALLOW_ALL: bool = False

    LOG_LEVEL: str = "INFO"

    # The single support identity every ordinary participant talks to
    MAINTAINER_ID: str = "maintainer-001"
    MAINTAINER_NAME: str = "KeyVasthu Support"
    MAINTAINER_EMAIL: str = "support@keyvasthu.com"
    MAINTAINER_AVATAR: str = "https://api.dicebear.com/7.x/avataaars/svg?seed=keyvasthu"
    # Create the maintainer on application startup as well as on demand
    MAINTAINER_BOOTSTRAP: bool = True

    # Placeholders used when the identity collaborator omits optional fields
    DEFAULT_PARTICIPANT_NAME: str = "User"
    PLACEHOLDER_EMAIL_DOMAIN: str = "keyvasthu.com"

    @field_validator("CORS_ORIGINS", mode="before")
    def split_origins(cls, v: Any) -> list[str]:
        """Parse comma-separated or JSON list of origins from environment."""
        if isinstance(v, str):
            try:
                parsed = json.loads(v)
                if isinstance(parsed, list):
                    return parsed
            except json.JSONDecodeError:
                pass
            return [s.strip() for s in v.split(",") if s.strip()]
        return v

    @field_validator(
        "MAINTAINER_ID",
        "MAINTAINER_NAME",
        "MAINTAINER_EMAIL",
        "PLACEHOLDER_EMAIL_DOMAIN",
        mode="before",
    )
    def strip_whitespace(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip()
        return v

    @model_validator(mode="after")
    def allow_all_if_requested(self) -> "Settings":
        if self.CORS_ALLOW_ALL:
            self.CORS_ORIGINS = ["*"]
        return self

    model_config = SettingsConfigDict(
        extra="forbid",
        case_sensitive=True,
    )


def _env_file() -> str:
    return os.getenv("ENV_FILE", str(Path(__file__).resolve().parents[2] / ".env"))


def load_settings() -> "Settings":
    return Settings(_env_file=_env_file())


settings = load_settings()
