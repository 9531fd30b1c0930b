from functools import lru_cache
from pathlib import Path
from typing import List

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


BASE_DIR = Path(__file__).resolve().parent.parent.parent
ENV_PATH = BASE_DIR / ".env"

# Load environment variables from .env if present
load_dotenv(ENV_PATH)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=ENV_PATH, case_sensitive=False, extra="ignore")

    app_env: str = Field("development")
    app_host: str = Field("127.0.0.1")
    app_port: int = Field(8000)
    log_level: str = Field("INFO")
    log_format: str = Field("json")
    cors_origins: str = Field("*")

    state_backend: str = Field("file")
    state_path: str = Field("data/risk_desk_state.json")

    default_balance: float = Field(100.0, gt=0)
    default_target_margin_percent: float = Field(35.0, gt=0, le=100)

    def cors_origin_list(self) -> List[str]:
        origins = [item.strip() for item in (self.cors_origins or "").split(",")]
        return [origin for origin in origins if origin] or ["*"]

    def resolved_state_path(self) -> Path:
        candidate = Path(self.state_path)
        if candidate.is_absolute():
            return candidate
        return (BASE_DIR / candidate).resolve()


@lru_cache()
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()

