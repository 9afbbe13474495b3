import logging
import os
from functools import lru_cache
from typing import Any

from pydantic import field_validator
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    # Service
    service_name: str = "ca-service"
    service_version: str = "1.0.0"
    server_port: int = 4000
    cors_origins: str = "*"

    # Database Type Selection (sqlite or postgres)
    db_type: str = "sqlite"
    sqlite_path: str = "/data/certui.db"

    # PostgreSQL Configuration
    db_host: str = "postgres"
    db_port: int = 5432
    db_name: str = "certui"
    db_user: str = "certui"
    db_password: str = ""

    # Connection Pool Configuration
    db_pool_size: int = 5
    db_pool_overflow: int = 10

    # CA artifacts live under <storage_dir>/ca
    storage_dir: str = "/data"

    # Authentication
    jwt_secret: str = "dev-secret-change-me"
    token_expire_hours: int = 8
    cookie_secure: bool = False
    admin_username: str = "ca_admin"
    admin_password: str = ""

    # Issuance
    default_validity_days: int = 365
    ca_validity_days: int = 3650

    # Reconciler
    reconcile_enabled: bool = True
    reconcile_interval_minutes: int = 15

    @field_validator("db_port", "server_port", "reconcile_interval_minutes", mode="before")
    @classmethod
    def empty_str_to_default(cls, v: Any, info: Any) -> Any:
        if isinstance(v, str) and v.strip() == "":
            defaults = {"db_port": 5432, "server_port": 4000, "reconcile_interval_minutes": 15}
            return defaults.get(info.field_name, 0)
        return v

    class Config:
        env_file = ".env"
        case_sensitive = False

    @property
    def database_url(self) -> str:
        if self.db_type == "postgres":
            return (
                f"postgresql+psycopg2://{self.db_user}:{self.db_password}"
                f"@{self.db_host}:{self.db_port}/{self.db_name}"
            )
        return f"sqlite:///{self.sqlite_path}"

    @property
    def ca_dir(self) -> str:
        return os.path.join(self.storage_dir, "ca")


@lru_cache
def get_settings() -> Settings:
    return Settings()
