from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

"""Config loader.

Responsibilities:
- Load YAML config (default config/backup.yml)
- Validate against config_schema.json (shipped next to this module)
- Apply defaults for every optional section

Database connection values may be overridden by environment variables; that
resolution happens in grooming_backup.db.connection.
"""

__all__ = [
    "ConfigError",
    "DatabaseConfig",
    "ImportSettings",
    "ExportSettings",
    "AppConfig",
    "load_config",
    "DEFAULT_CONFIG_PATH",
    "SCHEMA_PATH",
]

SCHEMA_PATH = Path(__file__).parent / "config_schema.json"
DEFAULT_CONFIG_PATH = Path("config/backup.yml")


class ConfigError(Exception):
    pass


@dataclass(frozen=True)
class DatabaseConfig:
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None
    pool_min: int = 1
    pool_max: int = 4


@dataclass(frozen=True)
class ImportSettings:
    commit_partial: bool = True  # False -> any failed row rolls back the whole batch


@dataclass(frozen=True)
class ExportSettings:
    filename_prefix: str = "4loki_backup"
    creator: str = "4Loki"


@dataclass(frozen=True)
class AppConfig:
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    import_settings: ImportSettings = field(default_factory=ImportSettings)
    export: ExportSettings = field(default_factory=ExportSettings)
    logs_directory: str = "./logs"


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against the JSON schema.

    Raises:
        ConfigError: schema file missing / not JSON, or the data violates it
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")
    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"config validation failed: {e.message}") from e


def load_config(path: Path | None = None) -> AppConfig:
    """Load and validate the configuration file.

    With path=None the default location is used and a missing file yields the
    built-in defaults. An explicitly given path must exist.
    """
    if path is None:
        if not DEFAULT_CONFIG_PATH.exists():
            return AppConfig()
        path = DEFAULT_CONFIG_PATH
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError("config root must be a mapping")

    _validate_config_schema(data)

    db_raw = data.get("database") or {}
    db = DatabaseConfig(
        host=db_raw.get("host"),
        port=db_raw.get("port"),
        user=db_raw.get("user"),
        password=db_raw.get("password"),
        database=db_raw.get("database"),
        dsn=db_raw.get("dsn"),
        pool_min=db_raw.get("pool_min", 1),
        pool_max=db_raw.get("pool_max", 4),
    )
    if db.pool_max < db.pool_min:
        raise ConfigError("database.pool_max must be >= database.pool_min")

    import_raw = data.get("import") or {}
    export_raw = data.get("export") or {}
    defaults = ExportSettings()
    return AppConfig(
        database=db,
        import_settings=ImportSettings(commit_partial=import_raw.get("commit_partial", True)),
        export=ExportSettings(
            filename_prefix=export_raw.get("filename_prefix", defaults.filename_prefix),
            creator=export_raw.get("creator", defaults.creator),
        ),
        logs_directory=data.get("logs_directory", "./logs"),
    )
