from __future__ import annotations

from functools import lru_cache
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="ACCESSGUARD_",
        env_file=".env",
        extra="ignore",
    )

    # Runtime
    LOG_LEVEL: str = Field(default="INFO", description="Root log level for the CLI")

    # Database (reference store)
    DATABASE_URL: str = Field(default="sqlite:///accessguard_dev.db")

    # Guard defaults used by GuardConfiguration.from_settings()
    DEFAULT_TRUST_LEVEL: str = Field(
        default="restricted", description="restricted|elevated"
    )
    BULK_ALL_OR_NONE: bool = Field(
        default=True, description="Batch writes succeed or fail as one unit"
    )
    BULK_ALLOW_FIELD_TRUNCATION: bool = Field(
        default=True, description="Truncate over-long string values instead of failing"
    )

    # Permission engine
    ADMIN_ROLES: str = Field(
        default="admin,superuser",
        description="Comma-separated roles that bypass every ACL check",
    )

    def admin_roles(self) -> List[str]:
        return [r.strip() for r in (self.ADMIN_ROLES or "").split(",") if r.strip()]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
