"""
Configuration management using Pydantic BaseSettings.
All values can be overridden via environment variables or a .env file.
"""
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # ── Redis (document store + update channels) ───────────────────────────
    redis_host: str = "redis"
    redis_port: int = 6379
    redis_db: int = 0
    user_key_prefix: str = "user:"               # JSON document per user
    update_channel_prefix: str = "user-updates:"  # pub/sub channel per user

    # ── Feed ───────────────────────────────────────────────────────────────
    realtime_enabled: bool = True
    feed_page_size: int = 10
    # Compare "mine only" by author id instead of display name
    mine_only_by_author_id: bool = False

    # ── One-shot read/write retries ────────────────────────────────────────
    retry_max_retries: int = 3
    retry_base_delay: float = 1.0        # seconds, doubled per retry

    # ── Logging ────────────────────────────────────────────────────────────
    log_level: str = "INFO"
    error_log_capacity: int = 100

    # ── Observability ──────────────────────────────────────────────────────
    otel_exporter_otlp_endpoint: str = "http://jaeger:4317"
    service_name: str = "practice-feed"
    environment: str = "development"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
