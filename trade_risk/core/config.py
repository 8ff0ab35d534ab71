"""Pydantic-settings configuration for the Trade Risk service.

Loads all service connection parameters from .env file with sensible
defaults for local development. Computed fields produce fully-formed
connection URLs for each service.
"""

from pydantic import Field, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    # Project
    project_name: str = "Trade Risk"
    debug: bool = False
    log_level: str = "INFO"

    # PostgreSQL
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_db: str = "trade_risk"
    postgres_user: str = "trade_user"
    postgres_password: str = ""

    # SQLAlchemy pool settings
    db_pool_size: int = 20
    db_max_overflow: int = 10
    db_pool_pre_ping: bool = True
    db_sslmode: str = "prefer"  # Set to "require" in production

    # Redis
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_db: int = 0
    redis_password: str = ""
    redis_max_connections: int = 50

    # Cache TTLs (seconds)
    cache_ttl_portfolio: int = 600
    cache_ttl_risk: int = 300
    cache_ttl_instruments: int = 3600

    # Trade execution
    trade_conflict_retries: int = Field(1, ge=0)
    side_effect_workers: int = Field(4, ge=0)

    # Audit trail directory (JSONL). Empty -> <project>/logs
    audit_dir: str = ""

    # CORS
    allowed_origins: str = ""  # Comma-separated extra CORS origins

    # JWT Authentication
    jwt_secret_key: str = ""
    jwt_algorithm: str = "HS256"
    jwt_expiry_minutes: int = 60

    @computed_field
    @property
    def sync_database_url(self) -> str:
        """Sync connection string for psycopg2 (runtime and Alembic)."""
        base = (
            f"postgresql+psycopg2://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )
        if self.db_sslmode and self.db_sslmode != "disable":
            return f"{base}?sslmode={self.db_sslmode}"
        return base

    @computed_field
    @property
    def redis_url(self) -> str:
        """Redis connection URL."""
        if self.redis_password:
            return f"redis://:{self.redis_password}@{self.redis_host}:{self.redis_port}/{self.redis_db}"
        return f"redis://{self.redis_host}:{self.redis_port}/{self.redis_db}"


# Singleton instance
settings = Settings()
