"""Application configuration loaded from environment variables."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Central configuration — reads from environment / .env file."""

    # Remote catalog
    met_api_base_url: str = "https://collectionapi.metmuseum.org/public/collection/v1"
    http_timeout_seconds: int = 30

    # Result caches
    cache_ttl_seconds: int = 86400              # 24 hours
    cache_max_entries: int = 150
    cache_persist_attempts: int = 3
    cache_min_retained_entries: int = 10

    # Pagination
    page_size: int = 25

    # Durable storage: memory | file | redis
    storage_backend: str = "file"
    storage_dir: str = ".explorer-cache"
    storage_quota_bytes: int = 5 * 1024 * 1024  # 0 = unlimited
    redis_url: str = "redis://localhost:6379"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    allowed_origins: str = "*"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    @property
    def cache_ttl_ms(self) -> int:
        return self.cache_ttl_seconds * 1000

    @property
    def cors_origins(self) -> list[str]:
        if self.allowed_origins == "*":
            return ["*"]
        return [o.strip() for o in self.allowed_origins.split(",")]


settings = Settings()
