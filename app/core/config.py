"""Application configuration via environment variables."""

from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Service-wide configuration options."""

    api_v1_prefix: str = "/v1"
    service_base_url: str = "http://localhost:8000"
    log_level: str = "INFO"
    github_token: str | None = None
    github_base_url: str | None = None
    github_cache_ttl_seconds: int = 300
    fetch_timeout_seconds: float = 20.0
    app_name: str = "UbiquityOS"
    webhook_secret: str | None = None
    traversal_max_hops: int = 2
    traversal_concurrency: int = 10
    restrict_to_same_owner: bool = True
    follow_hash_references: bool = True
    follow_code_links: bool = False
    code_link_extensions: list[str] = [".py", ".ts", ".js", ".json", ".sol", ".md"]
    openai_api_key: str | None = None
    openai_base_url: str | None = None
    openai_model: str = "gpt-4o"
    openai_max_tokens: int = 3000
    openai_temperature: float = 0.0
    events_backend: str = "off"
    events_path: str = "data/context_events.jsonl"
    otel_enabled: bool = False
    otel_exporter: str = "console"
    otel_otlp_endpoint: str | None = None

    model_config = SettingsConfigDict(env_prefix="contextbot_", env_file=".env", extra="ignore")


settings = Settings()
