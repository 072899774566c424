from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    App settings.

    Notes:
    - Defaults are local and deterministic (SQLite file next to the repo, bundled RBAC YAML).
    - Every field can be overridden through `AUTHZ_*` environment variables.
    """

    model_config = SettingsConfigDict(env_prefix="AUTHZ_", extra="ignore")

    db_url: str | None = None
    bootstrap_path: str | None = None
    bootstrap_on_startup: bool = True
    log_level: str = "INFO"

    def resolved_db_url(self) -> str:
        if self.db_url:
            return self.db_url

        repo_root = Path(__file__).resolve().parents[1]
        db_path = repo_root / "authz.db"
        return f"sqlite:///{db_path}"

    def resolved_bootstrap_path(self) -> Path:
        if self.bootstrap_path:
            return Path(self.bootstrap_path)

        repo_root = Path(__file__).resolve().parents[1]
        return repo_root / "config" / "rbac.yaml"


@lru_cache
def get_settings() -> Settings:
    return Settings()
