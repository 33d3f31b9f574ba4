from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

from envgate.core.parameters import ParameterSpec


class Settings(BaseSettings):
    """envgate service configuration, read from ``ENVGATE_*`` variables."""

    ROOT_DIR: Path = Path(__file__).parent.parent.parent.parent

    # ── Orchestrator agent ───────────────────────────────────────────────
    orchestrator_url: str = "http://localhost:8080"
    orchestrator_token: str = ""
    orchestrator_timeout: float = 30.0

    # ── Access counter (Redis) ───────────────────────────────────────────
    redis_url: str = "redis://localhost:6379/0"
    access_key_prefix: str = "envgate_access"
    access_retention: int = 86400 * 2  # seconds a subdomain's buckets are kept

    # ── Launch ───────────────────────────────────────────────────────────
    default_task_definitions: list[str] = []
    parameters: list[ParameterSpec] = []

    # ── Observability ────────────────────────────────────────────────────
    log_level: str = "INFO"
    otel_enabled: bool = False
    otlp_trace_endpoint: str = ""
    otlp_metric_endpoint: str = ""

    # ── Server ───────────────────────────────────────────────────────────
    host: str = "0.0.0.0"
    port: int = 8000

    model_config = SettingsConfigDict(
        env_prefix="ENVGATE_",
        env_file=ROOT_DIR / ".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


settings = Settings()
