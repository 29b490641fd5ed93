"""Application configuration loaded from environment variables."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings with defaults and env var overrides."""

    # Reconciliation backend
    backend_base_url: str = "http://localhost:8080"
    backend_timeout_seconds: float = 30.0
    backend_token: str | None = None
    backend_refresh_token: str | None = None

    # App
    app_env: str = "development"
    app_port: int = 8000
    log_level: str = "INFO"

    # Console behaviour
    batch_id_prefix: str = "RB-"
    row_click_debounce_ms: int = 300
    list_route: str = "/api/v1/console/batches"
    default_session_id: str = "default"
    session_idle_seconds: float = 3600.0
    max_sessions: int = 500

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
