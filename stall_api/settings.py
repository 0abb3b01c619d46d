from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Local dev: load from .env automatically.
    # In production: you typically inject real env vars instead.
    model_config = SettingsConfigDict(
        env_prefix="",
        extra="ignore",
        populate_by_name=True,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    # Env vars:
    # - AUTH_PROVIDER: "supabase" (default) or "firebase"
    # - STORE_BACKEND: "supabase" (default) or "memory" (single process, local dev/tests)
    # - SUPABASE_URL, SUPABASE_ANON_KEY, SUPABASE_SERVICE_ROLE_KEY
    # - HTTP_TIMEOUT_SECONDS (optional)
    auth_provider: str = Field(default="supabase", validation_alias="AUTH_PROVIDER")
    store_backend: str = Field(default="supabase", validation_alias="STORE_BACKEND")

    supabase_url: str = Field(default="", validation_alias="SUPABASE_URL")
    supabase_anon_key: str = Field(default="", validation_alias="SUPABASE_ANON_KEY")
    supabase_service_role_key: str = Field(default="", validation_alias="SUPABASE_SERVICE_ROLE_KEY")
    http_timeout_seconds: float = Field(default=10.0, validation_alias="HTTP_TIMEOUT_SECONDS")

    owners_table: str = Field(default="allowed_owners", validation_alias="OWNERS_TABLE")
    clubs_table: str = Field(default="allowed_clubs", validation_alias="CLUBS_TABLE")
    submissions_table: str = Field(default="stall_submissions", validation_alias="SUBMISSIONS_TABLE")

    # Comma-separated seeds for the in-memory allowlists. Ignored by the supabase backend.
    allowed_owner_emails: str = Field(default="", validation_alias="ALLOWED_OWNER_EMAILS")
    allowed_club_emails: str = Field(default="", validation_alias="ALLOWED_CLUB_EMAILS")

    slug_conflict_retries: int = Field(default=3, ge=0, validation_alias="SLUG_CONFLICT_RETRIES")

    login_path: str = Field(default="/login", validation_alias="LOGIN_PATH")
    default_next_path: str = Field(default="/owner/stall", validation_alias="DEFAULT_NEXT_PATH")
    auth_code_verifier_cookie: str = Field(default="", validation_alias="AUTH_CODE_VERIFIER_COOKIE")

    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    def model_post_init(self, __context):  # type: ignore[override]
        self.auth_provider = (self.auth_provider or "supabase").lower().strip()
        self.store_backend = (self.store_backend or "supabase").lower().strip()
        self.supabase_url = (self.supabase_url or "").strip().rstrip("/")

    @property
    def owner_seed(self) -> list[str]:
        return _split_emails(self.allowed_owner_emails)

    @property
    def club_seed(self) -> list[str]:
        return _split_emails(self.allowed_club_emails)


def _split_emails(raw: str) -> list[str]:
    return [e.strip().lower() for e in (raw or "").split(",") if e.strip()]


def get_settings() -> Settings:
    """Load settings from environment.

    Keep this as the single canonical constructor for Settings(). FastAPI
    dependencies and tests can override/monkeypatch this function.
    """
    return Settings()
