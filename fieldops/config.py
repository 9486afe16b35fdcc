"""Service settings, read from the environment (and ``.env`` when present)."""
from functools import lru_cache

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

WEAK_SECRET_MARKERS = ("change-this", "password", "12345", "qwerty")
PRESENCE_BACKENDS = ("memory", "redis")


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_env: str = "development"
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    app_debug: bool = True
    app_version: str = "1.0.0"
    log_level: str = "DEBUG"

    # Relational store
    database_url: str = Field(..., description="SQLAlchemy async URL, e.g. postgresql+asyncpg://...")
    db_pool_size: int = 20
    db_max_overflow: int = 10

    # Redis backs the cache, pub/sub fan-out and the redis presence store
    redis_url: str = Field(..., description="redis:// URL")
    redis_max_connections: int = 50
    redis_socket_timeout: float = 5.0
    redis_socket_connect_timeout: float = 5.0
    redis_health_check_interval: int = 30

    # Tokens are minted by the identity service sharing this key
    jwt_secret_key: str = Field(..., description="HMAC signing key, 32+ characters")
    jwt_algorithm: str = "HS256"
    jwt_access_token_expire_minutes: int = 60

    sentry_dsn: str | None = None
    sentry_traces_sample_rate: float = Field(default=0.05, ge=0.0, le=1.0)

    # Comma separated
    cors_origins: str = "http://localhost:3000"

    ws_auth_timeout_seconds: float = Field(
        default=5.0,
        description="Time a fresh socket has to send its auth frame",
    )
    presence_backend: str = Field(
        default="memory",
        description="memory for a single node, redis when several instances share presence",
    )
    presence_ttl_seconds: int = Field(default=300, description="Session lifetime without a heartbeat")
    presence_sweep_interval_seconds: int = 60

    cache_active_emergencies_ttl: int = 60
    cache_production_status_ttl: int = 300
    cache_emergency_stats_ttl: int = 600
    cache_team_stats_ttl: int = 60
    cache_realtime_metrics_ttl: int = 30

    critical_marks_members: bool = Field(
        default=False,
        description="Set the reporter's team-member status to EMERGENCY on CRITICAL reports",
    )

    @field_validator("jwt_secret_key")
    @classmethod
    def check_secret_strength(cls, v: str) -> str:
        if len(v) < 32:
            raise ValueError("jwt_secret_key must be at least 32 characters long")
        lowered = v.lower()
        weak = next((marker for marker in WEAK_SECRET_MARKERS if marker in lowered), None)
        if weak:
            raise ValueError(f"jwt_secret_key contains weak pattern '{weak}'")
        return v

    @field_validator("presence_backend")
    @classmethod
    def check_presence_backend(cls, v: str) -> str:
        if v not in PRESENCE_BACKENDS:
            raise ValueError(f"presence_backend must be one of {', '.join(PRESENCE_BACKENDS)}")
        return v

    @model_validator(mode="after")
    def check_production(self) -> "Settings":
        """Refuse debug mode, wildcard CORS and a sweep slower than the TTL in production."""
        if self.app_env != "production":
            return self
        if self.app_debug:
            raise ValueError("app_debug must be False in production")
        if "*" in (origin.strip() for origin in self.cors_origins.split(",")):
            raise ValueError("CORS wildcard '*' is not allowed in production")
        if self.presence_ttl_seconds <= self.presence_sweep_interval_seconds:
            raise ValueError("presence_ttl_seconds must exceed presence_sweep_interval_seconds")
        return self


@lru_cache
def get_settings() -> Settings:
    return Settings()
