from __future__ import annotations

from datetime import timedelta
from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    App settings.

    Notes:
    - Defaults are local and deterministic (SQLite file next to the repo).
    - Every field can be overridden with an `ORGSCOPE_`-prefixed env var.
    """

    model_config = SettingsConfigDict(env_prefix="ORGSCOPE_", extra="ignore")

    db_url: str | None = None
    access_config_path: str | None = None
    log_level: str = "INFO"

    jwt_secret: str = "change-me-in-production-please-32b"
    jwt_algorithm: str = "HS256"
    jwt_leeway_seconds: int = 30

    meeting_edit_window_hours: int = 24

    def resolved_db_url(self) -> str:
        if self.db_url:
            return self.db_url

        repo_root = Path(__file__).resolve().parents[1]
        db_path = repo_root / "orgscope.db"
        return f"sqlite:///{db_path}"

    def resolved_access_config_path(self) -> Path:
        if self.access_config_path:
            return Path(self.access_config_path)

        repo_root = Path(__file__).resolve().parents[1]
        return repo_root / "config" / "access_policy.yaml"

    @property
    def meeting_edit_window(self) -> timedelta:
        return timedelta(hours=self.meeting_edit_window_hours)


@lru_cache
def get_settings() -> Settings:
    return Settings()
