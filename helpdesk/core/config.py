from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv


class ConfigError(RuntimeError):
    pass


DEFAULT_ROUTERS = [
    "routes.admin",
    "routes.auth",
    "routes.tickets",
    "routes.questions",
    "routes.upgrades",
    "routes.dashboard",
]


@dataclass(slots=True)
class ServerConfig:
    jwt_secret: str
    host: str = "0.0.0.0"
    port: int = 5000
    jwt_algorithm: str = "HS256"
    cors_origins: list[str] = field(default_factory=lambda: ["http://localhost:5173"])
    expose_error_details: bool = False


@dataclass(slots=True)
class DatabaseConfig:
    url: str = "sqlite:///./data/helpdesk.db"
    pool_min_size: int = 2
    pool_max_size: int = 10
    timeout_seconds: int = 30


@dataclass(slots=True)
class RedisConfig:
    enabled: bool = False
    url: str = "redis://localhost:6379/0"


@dataclass(slots=True)
class LoggingConfig:
    level: str = "INFO"
    directory: str = "logs"
    file_name: str = "helpdesk.log"
    max_bytes: int = 10_000_000
    backup_count: int = 10
    json_console: bool = False


@dataclass(slots=True)
class SecurityConfig:
    password_hash_rounds: int = 10
    ticket_creation_cooldown_seconds: int = 20
    ticket_creation_max_per_hour: int = 8
    max_open_tickets_per_user: int = 5
    upgrade_request_cooldown_seconds: int = 3600


@dataclass(slots=True)
class DashboardConfig:
    recent_limit: int = 5


@dataclass(slots=True)
class ClientConfig:
    base_url: str = "http://localhost:5000"
    token_path: str = "~/.helpdesk/token"
    timeout_seconds: int = 15


@dataclass(slots=True)
class AppConfig:
    server: ServerConfig
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    redis: RedisConfig = field(default_factory=RedisConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    security: SecurityConfig = field(default_factory=SecurityConfig)
    dashboard: DashboardConfig = field(default_factory=DashboardConfig)
    client: ClientConfig = field(default_factory=ClientConfig)
    enabled_routers: list[str] = field(default_factory=lambda: list(DEFAULT_ROUTERS))


def _get_env_str(key: str, fallback: str | None = None) -> str | None:
    value = os.getenv(key)
    if value is None:
        return fallback
    cleaned = value.strip()
    return cleaned if cleaned else fallback


def _as_bool(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


def _as_int(value: Any, default: int) -> int:
    if value is None:
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _as_list(value: Any, default: list[str]) -> list[str]:
    if value is None:
        return list(default)
    if isinstance(value, str):
        return [item.strip() for item in value.split(",") if item.strip()]
    return [str(item) for item in list(value)]


def _deep_get(data: dict[str, Any], *keys: str, default: Any = None) -> Any:
    node: Any = data
    for key in keys:
        if not isinstance(node, dict):
            return default
        node = node.get(key)
        if node is None:
            return default
    return node


def _load_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise ConfigError(f"Missing config file: {path}")
    with path.open("r", encoding="utf-8") as handle:
        raw = yaml.safe_load(handle) or {}
    if not isinstance(raw, dict):
        raise ConfigError("Config root must be a mapping")
    return raw


def load_config(config_path: Path) -> AppConfig:
    env_path = config_path.parent.parent / ".env"
    load_dotenv(env_path)
    raw = _load_yaml(config_path)

    jwt_secret = _get_env_str("JWT_SECRET", _deep_get(raw, "server", "jwt_secret"))
    if not jwt_secret or "${" in jwt_secret:
        raise ConfigError("JWT_SECRET is required")

    server_cfg = ServerConfig(
        jwt_secret=jwt_secret,
        host=str(_get_env_str("HOST", _deep_get(raw, "server", "host", default="0.0.0.0"))),
        port=_as_int(_get_env_str("PORT"), _as_int(_deep_get(raw, "server", "port"), 5000)),
        jwt_algorithm=str(_deep_get(raw, "server", "jwt_algorithm", default="HS256")),
        cors_origins=_as_list(
            _get_env_str("CORS_ORIGINS", _deep_get(raw, "server", "cors_origins")),
            ["http://localhost:5173"],
        ),
        expose_error_details=_as_bool(
            _get_env_str("EXPOSE_ERROR_DETAILS"),
            _as_bool(_deep_get(raw, "server", "expose_error_details"), False),
        ),
    )

    database_cfg = DatabaseConfig(
        url=str(_get_env_str("DATABASE_URL", _deep_get(raw, "database", "url", default="sqlite:///./data/helpdesk.db"))),
        pool_min_size=_as_int(
            _get_env_str("DB_POOL_MIN", None),
            _as_int(_deep_get(raw, "database", "pool_min_size"), 2),
        ),
        pool_max_size=_as_int(
            _get_env_str("DB_POOL_MAX", None),
            _as_int(_deep_get(raw, "database", "pool_max_size"), 10),
        ),
        timeout_seconds=_as_int(
            _get_env_str("DB_TIMEOUT_SECONDS", None),
            _as_int(_deep_get(raw, "database", "timeout_seconds"), 30),
        ),
    )

    redis_cfg = RedisConfig(
        enabled=_as_bool(_get_env_str("REDIS_ENABLED"), _as_bool(_deep_get(raw, "redis", "enabled"), False)),
        url=str(_get_env_str("REDIS_URL", _deep_get(raw, "redis", "url", default="redis://localhost:6379/0"))),
    )

    logging_cfg = LoggingConfig(
        level=str(_get_env_str("LOG_LEVEL", _deep_get(raw, "logging", "level", default="INFO"))),
        directory=str(_deep_get(raw, "logging", "directory", default="logs")),
        file_name=str(_deep_get(raw, "logging", "file_name", default="helpdesk.log")),
        max_bytes=_as_int(_deep_get(raw, "logging", "max_bytes"), 10_000_000),
        backup_count=_as_int(_deep_get(raw, "logging", "backup_count"), 10),
        json_console=_as_bool(_deep_get(raw, "logging", "json_console"), False),
    )

    security_cfg = SecurityConfig(
        password_hash_rounds=_as_int(_deep_get(raw, "security", "password_hash_rounds"), 10),
        ticket_creation_cooldown_seconds=_as_int(
            _deep_get(raw, "security", "ticket_creation_cooldown_seconds"), 20
        ),
        ticket_creation_max_per_hour=_as_int(
            _deep_get(raw, "security", "ticket_creation_max_per_hour"), 8
        ),
        max_open_tickets_per_user=_as_int(
            _deep_get(raw, "security", "max_open_tickets_per_user"), 5
        ),
        upgrade_request_cooldown_seconds=_as_int(
            _deep_get(raw, "security", "upgrade_request_cooldown_seconds"), 3600
        ),
    )

    dashboard_cfg = DashboardConfig(
        recent_limit=_as_int(_deep_get(raw, "dashboard", "recent_limit"), 5),
    )

    client_cfg = ClientConfig(
        base_url=str(_get_env_str("API_BASE_URL", _deep_get(raw, "client", "base_url", default="http://localhost:5000"))),
        token_path=str(_deep_get(raw, "client", "token_path", default="~/.helpdesk/token")),
        timeout_seconds=_as_int(_deep_get(raw, "client", "timeout_seconds"), 15),
    )

    enabled_routers = [
        str(name) for name in list(_deep_get(raw, "enabled_routers", default=DEFAULT_ROUTERS))
    ]

    return AppConfig(
        server=server_cfg,
        database=database_cfg,
        redis=redis_cfg,
        logging=logging_cfg,
        security=security_cfg,
        dashboard=dashboard_cfg,
        client=client_cfg,
        enabled_routers=enabled_routers,
    )
