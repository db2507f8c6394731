from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from typing import List, Optional

from dotenv import load_dotenv
from sqlalchemy.engine import URL


@dataclass(frozen=True)
class Settings:
    """
    Application settings loaded from environment variables.

    Env vars:
    - APP_ENV: 'development' (default), 'test' or 'production'
    - PORT: HTTP port (default 3000)
    - LOG_LEVEL: root log level (default INFO)
    - CORS_ALLOW_ORIGINS: comma-separated list of allowed origins; '*' by default
    - PERSISTENCE_BACKEND: 'memory' (default) or 'sql'
    - DATABASE_URL: full SQLAlchemy URL; when unset it is built from DB_HOST,
      DB_PORT, DB_NAME, DB_USER and DB_PASSWORD (PostgreSQL)
    - DB_POOL_SIZE / DB_POOL_TIMEOUT: connection pool bound and acquisition timeout
    - CACHE_BACKEND: 'memory' (default) or 'redis'
    - REDIS_HOST / REDIS_PORT / REDIS_PASSWORD / REDIS_SOCKET_TIMEOUT: cache connection
    - CACHE_TTL_SECONDS: read-through cache TTL (default 3600)
    - JWT_SECRET / JWT_EXPIRATION: token signing secret and lifetime ('1h', '30m', '3600')
    - BCRYPT_ROUNDS: password hashing cost (default 10)
    - LOAD_AWS_SECRETS / AWS_REGION / AWS_SECRET_NAME: startup secrets overrides
    """

    environment: str = "development"
    port: int = 3000
    log_level: str = "INFO"
    cors_allow_origins: List[str] = field(default_factory=lambda: ["*"])

    persistence_backend: str = "memory"
    database_url_override: Optional[str] = None
    db_host: str = "localhost"
    db_port: int = 5432
    db_name: str = "postgresdb"
    db_user: str = "postgres"
    db_password: str = "postgres"
    db_pool_size: int = 20
    db_pool_timeout: int = 2

    cache_backend: str = "memory"
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_password: Optional[str] = None
    redis_socket_timeout: int = 2
    cache_ttl_seconds: int = 3600

    jwt_secret: str = "default_jwt_secret_do_not_use_in_production"
    jwt_expires_in_seconds: int = 3600
    bcrypt_rounds: int = 10

    load_aws_secrets: bool = False
    aws_region: str = "eu-west-3"
    aws_secret_name: str = "todo-service/secrets"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def database_url(self) -> str:
        """SQLAlchemy URL for the relational store."""
        if self.database_url_override:
            return self.database_url_override
        return URL.create(
            "postgresql+psycopg",
            username=self.db_user,
            password=self.db_password,
            host=self.db_host,
            port=self.db_port,
            database=self.db_name,
        ).render_as_string(hide_password=False)


def _get_env(name: str, default: str) -> str:
    value = os.getenv(name, default)
    if value is None or value == "":
        return default
    return value


def _parse_bool(value: str, default: bool = False) -> bool:
    v = value.strip().lower()
    if v in {"1", "true", "yes", "on"}:
        return True
    if v in {"0", "false", "no", "off"}:
        return False
    return default


def _parse_int(value: str, default: int) -> int:
    try:
        return int(value.strip())
    except ValueError:
        return default


def _parse_origins(origins_value: str) -> List[str]:
    """
    Parse CORS origins from env. Supports:
    - '*' to allow all origins
    - Comma-separated list of origins
    """
    value = origins_value.strip()
    if value == "*":
        return ["*"]
    return [o.strip() for o in value.split(",") if o.strip()]


_DURATION_RE = re.compile(r"^\s*(\d+)\s*([smhd]?)\s*$", re.IGNORECASE)
_DURATION_UNITS = {"": 1, "s": 1, "m": 60, "h": 3600, "d": 86400}


# PUBLIC_INTERFACE
def parse_duration(value: str, default: int) -> int:
    """
    Parse a token lifetime such as '3600', '45s', '30m', '1h' or '7d' into seconds.
    Returns `default` for anything else.
    """
    match = _DURATION_RE.match(value or "")
    if not match:
        return default
    amount, unit = match.groups()
    return int(amount) * _DURATION_UNITS[unit.lower()]


# PUBLIC_INTERFACE
def get_settings() -> Settings:
    """Return application settings loaded from environment variables (and .env, if present)."""
    load_dotenv()
    defaults = Settings()

    backend = _get_env("PERSISTENCE_BACKEND", "memory").strip().lower()
    if backend not in {"memory", "sql"}:
        # Fallback to memory if unsupported
        backend = "memory"

    cache_backend = _get_env("CACHE_BACKEND", "memory").strip().lower()
    if cache_backend not in {"memory", "redis"}:
        cache_backend = "memory"

    return Settings(
        environment=_get_env("APP_ENV", defaults.environment).strip().lower(),
        port=_parse_int(_get_env("PORT", str(defaults.port)), defaults.port),
        log_level=_get_env("LOG_LEVEL", defaults.log_level).strip().upper(),
        cors_allow_origins=_parse_origins(_get_env("CORS_ALLOW_ORIGINS", "*")),
        persistence_backend=backend,
        database_url_override=os.getenv("DATABASE_URL") or None,
        db_host=_get_env("DB_HOST", defaults.db_host),
        db_port=_parse_int(_get_env("DB_PORT", str(defaults.db_port)), defaults.db_port),
        db_name=_get_env("DB_NAME", defaults.db_name),
        db_user=_get_env("DB_USER", defaults.db_user),
        db_password=_get_env("DB_PASSWORD", defaults.db_password),
        db_pool_size=_parse_int(_get_env("DB_POOL_SIZE", str(defaults.db_pool_size)), defaults.db_pool_size),
        db_pool_timeout=_parse_int(
            _get_env("DB_POOL_TIMEOUT", str(defaults.db_pool_timeout)), defaults.db_pool_timeout
        ),
        cache_backend=cache_backend,
        redis_host=_get_env("REDIS_HOST", defaults.redis_host),
        redis_port=_parse_int(_get_env("REDIS_PORT", str(defaults.redis_port)), defaults.redis_port),
        redis_password=os.getenv("REDIS_PASSWORD") or None,
        redis_socket_timeout=_parse_int(
            _get_env("REDIS_SOCKET_TIMEOUT", str(defaults.redis_socket_timeout)),
            defaults.redis_socket_timeout,
        ),
        cache_ttl_seconds=_parse_int(
            _get_env("CACHE_TTL_SECONDS", str(defaults.cache_ttl_seconds)), defaults.cache_ttl_seconds
        ),
        jwt_secret=_get_env("JWT_SECRET", defaults.jwt_secret),
        jwt_expires_in_seconds=parse_duration(_get_env("JWT_EXPIRATION", "1h"), defaults.jwt_expires_in_seconds),
        bcrypt_rounds=_parse_int(_get_env("BCRYPT_ROUNDS", str(defaults.bcrypt_rounds)), defaults.bcrypt_rounds),
        load_aws_secrets=_parse_bool(_get_env("LOAD_AWS_SECRETS", "false"), False),
        aws_region=_get_env("AWS_REGION", defaults.aws_region),
        aws_secret_name=_get_env("AWS_SECRET_NAME", defaults.aws_secret_name),
    )
