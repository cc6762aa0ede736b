# rentflow/config.py
from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # ---- App ----
    app_env: str = "local"  # local|dev|prod
    app_version: str = "2026-10-18.v1"
    database_url: str = "sqlite:///./rentflow.db"

    # ---- CORS (used by main.py) ----
    cors_allow_origins: list[str] | str = ["*"]

    # ---- Auth ----
    auth_mode: str = "dev"  # dev|jwt
    jwt_secret: str = "dev-change-me"
    jwt_algorithm: str = "HS256"

    # Dev header names
    dev_header_user_id: str = "X-User-Id"
    dev_header_user_email: str = "X-User-Email"

    # ---- Move-in verification ----
    move_in_scheduler_mode: str = "inprocess"  # inprocess|celery|off
    move_in_scheduler_interval_minutes: int = 5
    reminder_window_minutes: int = 10

    # ---- Admin decisions ----
    property_hold_days: int = 30

    # ---- Issue automation (opt-in) ----
    issue_automation_enabled: bool = False
    issue_automation_interval_minutes: int = 60
    auto_escalate_after_hours: int = 24
    auto_close_resolved_after_days: int = 7

    # ---- Admin queue ----
    admin_queue_default_limit: int = 20
    admin_queue_max_limit: int = 100

    # ---- Celery ----
    celery_broker_url: str = "redis://localhost:6379/0"
    celery_result_backend: str = "redis://localhost:6379/1"

    def model_post_init(self, __context) -> None:
        env = (self.app_env or "local").strip().lower()
        is_prod = env in ("prod", "production")

        if is_prod:
            if (self.auth_mode or "").strip().lower() == "dev":
                raise ValueError("SECURITY: auth_mode=dev is not allowed in prod")
            if self.jwt_secret == "dev-change-me":
                raise ValueError("SECURITY: jwt_secret must be set in prod")

        mode = (self.move_in_scheduler_mode or "").strip().lower()
        if mode not in ("inprocess", "celery", "off"):
            raise ValueError(f"move_in_scheduler_mode must be inprocess|celery|off, got {mode!r}")
        object.__setattr__(self, "move_in_scheduler_mode", mode)


settings = Settings()
