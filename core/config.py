"""Application configuration with environment-specific profiles.

Supports dev, staging, production and test environments via APP_ENV.
All values can be overridden by environment variables.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache


@dataclass(frozen=True)
class Settings:
    """Immutable application settings resolved from environment."""

    database_url: str
    app_env: str = "dev"
    log_level: str = "INFO"
    jwt_secret: str = "jwt-change-me"
    jwt_algorithm: str = "HS256"
    request_id_header_name: str = "X-Request-ID"
    cors_origins: tuple[str, ...] = field(default_factory=tuple)

    # Rate limiting (slowapi)
    rate_limit_enabled: bool = True
    rate_limit_storage_uri: str = "memory://"
    assign_rate_limit: str = "30/minute"

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    @property
    def is_dev(self) -> bool:
        return self.app_env == "dev"


# -- Environment profiles --

_ENV_PROFILES: dict[str, dict] = {
    "dev": {
        "log_level": "DEBUG",
        "assign_rate_limit": "120/minute",
    },
    "staging": {
        "log_level": "INFO",
        "assign_rate_limit": "60/minute",
    },
    "production": {
        "log_level": "WARNING",
        "assign_rate_limit": "30/minute",
    },
    "test": {
        "log_level": "WARNING",
        "rate_limit_enabled": False,
    },
}


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def get_database_url() -> str:
    """Resolve database URL from env var or the local default.

    Resolution order:
    1. DATABASE_URL environment variable
    2. Local default for common dev setups
    """
    env_url = os.getenv("DATABASE_URL")
    if env_url:
        return env_url
    return "postgresql+psycopg2://localhost:5432/coaching"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Build Settings by merging environment profile with env-var overrides."""
    app_env = os.getenv("APP_ENV", "dev")
    profile = _ENV_PROFILES.get(app_env, _ENV_PROFILES["dev"])
    origins = os.getenv("CORS_ORIGINS", "")

    return Settings(
        database_url=get_database_url(),
        app_env=app_env,
        log_level=os.getenv("LOG_LEVEL", profile.get("log_level", "INFO")),
        jwt_secret=os.getenv("JWT_SECRET", "jwt-change-me"),
        jwt_algorithm=os.getenv("JWT_ALGORITHM", "HS256"),
        request_id_header_name=os.getenv("REQUEST_ID_HEADER", "X-Request-ID"),
        cors_origins=tuple(o.strip() for o in origins.split(",") if o.strip()),
        rate_limit_enabled=_env_bool("RATE_LIMIT_ENABLED", profile.get("rate_limit_enabled", True)),
        rate_limit_storage_uri=os.getenv("RATE_LIMIT_STORAGE_URI", "memory://"),
        assign_rate_limit=os.getenv("ASSIGN_RATE_LIMIT", profile.get("assign_rate_limit", "30/minute")),
    )
