from __future__ import annotations
from pydantic_settings import BaseSettings
from pydantic import Field

class Settings(BaseSettings):
    database_url: str = Field(..., alias="DATABASE_URL")

    # external session provider
    auth_jwks_url: str = Field(..., alias="AUTH_JWKS_URL")
    token_issuer: str = Field("authentication-svc", alias="TOKEN_ISSUER")

    # "today" policy: unset zone means server local time
    attendance_timezone: str | None = Field(default=None, alias="ATTENDANCE_TIMEZONE")
    company_timezones: dict[str, str] = Field(default_factory=dict, alias="COMPANY_TIMEZONES")

    # daily token shape
    token_prefix: str = Field("WF", alias="TOKEN_PREFIX")
    token_random_length: int = Field(default=32, alias="TOKEN_RANDOM_LENGTH")
    issuer_roles: list[str] = Field(default_factory=lambda: ["idari", "admin"], alias="ISSUER_ROLES")

    store_timeout_seconds: float = Field(default=5.0, alias="STORE_TIMEOUT_SECONDS")

    # Redis
    redis_url: str = Field("redis://127.0.0.1:6379/0", alias="REDIS_URL")
    rl_enabled: bool = Field(default=True, alias="RL_ENABLED")
    rl_window_seconds: int = Field(default=60, alias="RL_WINDOW_SECONDS")
    rl_max_reqs: int = Field(default=60, alias="RL_MAX_REQS")

    # NATS
    nats_urls: str = Field("nats://127.0.0.1:4222", alias="NATS_URLS")
    nats_subject_checkin: str = Field("checkins.recorded", alias="NATS_SUBJECT_CHECKIN")
    publish_events: bool = Field(default=True, alias="PUBLISH_EVENTS")

    log_level: str = Field("INFO", alias="LOG_LEVEL")

    class Config:
        env_file = ".env"
        env_prefix = ""
        case_sensitive = False

_settings: Settings | None = None
def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
