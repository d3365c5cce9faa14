import os
from functools import lru_cache
from typing import List, Optional

from pydantic import BaseModel, Field

DEFAULT_JWT_SECRET = "my-super-secret-key-that-should-be-in-env"
LEGACY_TOKEN_COOKIE = "auth_token"


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        raise RuntimeError(f"Environment variable '{name}' must be an integer, got '{value}'.")


class Settings(BaseModel):
    """Runtime configuration, read from the environment once per process."""

    postgres_url: Optional[str] = None
    postgres_host: str = "localhost"
    postgres_port: int = 5433
    postgres_user: str = "app_user"
    postgres_password: str = "app_password"
    postgres_db: str = "furry_fotky"
    db_pool_min: int = Field(1, ge=1)
    db_pool_max: int = Field(10, ge=1)
    db_init_schema: bool = False

    jwt_secret: str = DEFAULT_JWT_SECRET
    jwt_algorithm: str = "HS256"
    jwt_expires_minutes: int = Field(10080, ge=1)  # 7 days
    jwt_storage_key: str = "furry_fotky_auth_token"
    bcrypt_rounds: int = Field(10, ge=4, le=31)

    cors_allow_origins: str = "*"
    environment: str = "development"
    debug: bool = False
    log_level: str = "INFO"

    @property
    def dsn(self) -> str:
        # A full POSTGRES_URL wins over the individual parts.
        if self.postgres_url:
            return self.postgres_url
        return (
            f"postgresql://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    @property
    def cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.cors_allow_origins.split(",") if o.strip()]

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def uses_default_secret(self) -> bool:
        return self.jwt_secret == DEFAULT_JWT_SECRET


# PUBLIC_INTERFACE
def load_settings() -> Settings:
    """Build Settings from the current environment variables."""
    debug = _env_bool("DEBUG")
    return Settings(
        postgres_url=os.getenv("POSTGRES_URL") or None,
        postgres_host=os.getenv("POSTGRES_HOST", "localhost"),
        postgres_port=_env_int("POSTGRES_PORT", 5433),
        postgres_user=os.getenv("POSTGRES_USER", "app_user"),
        postgres_password=os.getenv("POSTGRES_PASSWORD", "app_password"),
        postgres_db=os.getenv("POSTGRES_DB", "furry_fotky"),
        db_pool_min=_env_int("DB_POOL_MIN", 1),
        db_pool_max=_env_int("DB_POOL_MAX", 10),
        db_init_schema=_env_bool("DB_INIT_SCHEMA"),
        jwt_secret=os.getenv("JWT_SECRET") or DEFAULT_JWT_SECRET,
        jwt_algorithm=os.getenv("JWT_ALGORITHM", "HS256"),
        jwt_expires_minutes=_env_int("JWT_EXPIRES_MINUTES", 10080),
        jwt_storage_key=os.getenv("JWT_STORAGE_KEY", "furry_fotky_auth_token"),
        bcrypt_rounds=_env_int("BCRYPT_ROUNDS", 10),
        cors_allow_origins=os.getenv("CORS_ALLOW_ORIGINS", "*"),
        environment=os.getenv("ENVIRONMENT", "development"),
        debug=debug,
        log_level=os.getenv("LOG_LEVEL", "DEBUG" if debug else "INFO").upper(),
    )


# PUBLIC_INTERFACE
@lru_cache
def get_settings() -> Settings:
    """Return the cached process-wide Settings."""
    return load_settings()
