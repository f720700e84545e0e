"""Centralized configuration — all env vars in one place."""

import os
import uuid


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Settings:
    """Application settings loaded from environment variables."""

    def __init__(self):
        self.cors_origins: list[str] = os.getenv("CORS_ORIGINS", "*").split(",")
        self.git_sha: str = os.getenv("GIT_SHA", "unknown")
        self.environment: str = os.getenv("ENVIRONMENT", "local")
        self.host: str = os.getenv("HOST", "0.0.0.0")
        self.port: int = int(os.getenv("PORT", "7777"))

        # Identifies this process behind a load balancer
        self.server_id: str = str(uuid.uuid4())

        # Item store
        self.store_backend: str = os.getenv("STORE_BACKEND", "memory").lower()
        self.store_read_latency_ms: int = int(os.getenv("STORE_READ_LATENCY_MS", "0"))
        self.db_host: str = os.getenv("DB_HOST", "localhost")
        self.db_port: int = int(os.getenv("DB_PORT", "5432"))
        self.db_user: str = os.getenv("DB_USER", "postgres")
        self.db_password: str | None = os.getenv("DB_PASSWORD")
        self.db_name: str = os.getenv("DB_NAME", "items")
        self.db_ssl: bool = _env_bool("DB_SSL", False)

        # Response cache
        self.cache_enabled: bool = _env_bool("CACHE_ENABLED", True)
        self.cache_max_entries: int = int(os.getenv("CACHE_MAX_ENTRIES", "1000"))
        self.cache_default_ttl_seconds: float = float(os.getenv("CACHE_DEFAULT_TTL_SECONDS", "60"))
        self.cache_sweep_interval_seconds: float = float(os.getenv("CACHE_SWEEP_INTERVAL_SECONDS", "30"))
        self.cache_strict_keys: bool = _env_bool("CACHE_STRICT_KEYS", not self.is_production)

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def cache_default_ttl(self) -> float | None:
        """Default entry lifetime; 0 means entries live until invalidated or evicted."""
        return self.cache_default_ttl_seconds or None

    @property
    def database_dsn(self) -> str:
        auth = self.db_user if not self.db_password else f"{self.db_user}:{self.db_password}"
        dsn = f"postgresql://{auth}@{self.db_host}:{self.db_port}/{self.db_name}"
        if self.db_ssl:
            dsn += "?sslmode=require"
        return dsn

    def validate(self) -> list[str]:
        """Return list of configuration problems (empty when the config is usable)."""
        problems = []
        if self.store_backend not in ("memory", "postgres"):
            problems.append(f"STORE_BACKEND must be 'memory' or 'postgres', got {self.store_backend!r}")
        if self.store_backend == "postgres" and not self.db_password:
            problems.append("DB_PASSWORD is not set for the postgres store")
        if self.cache_max_entries < 1:
            problems.append("CACHE_MAX_ENTRIES must be at least 1")
        if self.cache_default_ttl_seconds < 0:
            problems.append("CACHE_DEFAULT_TTL_SECONDS must not be negative")
        return problems


settings = Settings()
