from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from ..models.config_models import ColumnSpec, DatabaseConfig, FieldType

"""Configuration loading.

Responsibilities:
- Load the column configuration (JSON array, YAML accepted by extension)
- Load optional per-header overrides (JSON object)
- Load the optional YAML run configuration (defaults for CLI flags + database)
- Validate every document against the JSON schemas shipped next to this module
  and convert it into frozen dataclasses. Unknown keys fail fast.
"""

SCHEMA_DIR = Path(__file__).parent
COLUMNS_SCHEMA = SCHEMA_DIR / "columns.schema.json"
OVERRIDES_SCHEMA = SCHEMA_DIR / "overrides.schema.json"
RUN_CONFIG_SCHEMA = SCHEMA_DIR / "run_config.schema.json"

# camelCase (設定ファイル) -> ColumnSpec フィールド名
_FIELD_NAMES = {
    "header": "header",
    "sqlColumn": "sql_column",
    "fieldType": "field_type",
    "primary": "primary",
    "notNull": "not_null",
    "skip": "skip",
    "needIndex": "need_index",
    "isHyperlink": "is_hyperlink",
}


class ConfigError(Exception):
    pass


@dataclass(frozen=True)
class RunConfig:
    """Defaults loaded from the optional YAML run configuration."""
    timezone: str | None = None
    batch_size: int | None = None
    truncate: bool | None = None
    delimiter: str | None = None
    null_sentinels: tuple[str, ...] | None = None
    slack_notify_url: str | None = None
    database: DatabaseConfig = field(default_factory=DatabaseConfig)


def _validate(data: Any, schema_path: Path, label: str) -> None:
    """Validate a parsed document against one of the bundled JSON schemas.

    Raises:
        ConfigError: if the schema file is missing/invalid or the data fails validation.
    """
    if not schema_path.exists():
        raise ConfigError(f"config schema not found: {schema_path}")
    try:
        schema = json.loads(schema_path.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file {schema_path.name}: {e}") from e
    except ValidationError as e:
        location = "/".join(str(p) for p in e.absolute_path) or "<root>"
        raise ConfigError(f"{label} validation failed at {location}: {e.message}") from e


def _read_document(path: Path) -> Any:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() in (".yml", ".yaml"):
        try:
            return yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise ConfigError(f"invalid yaml in {path}: {e}") from e
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid json in {path}: {e}") from e


def _spec_kwargs(raw: dict[str, Any]) -> dict[str, Any]:
    kwargs = {_FIELD_NAMES[k]: v for k, v in raw.items()}
    if "field_type" in kwargs:
        kwargs["field_type"] = FieldType(kwargs["field_type"])
    return kwargs


def load_column_config(path: Path) -> list[ColumnSpec]:
    """Load the ordered list of configured columns."""
    data = _read_document(path)
    _validate(data, COLUMNS_SCHEMA, "column config")
    return [ColumnSpec(**_spec_kwargs(item)) for item in data]


def load_header_overrides(path: Path | None) -> dict[str, dict[str, Any]]:
    """Load ``{header text -> partial ColumnSpec kwargs}``.

    The overrides file is optional: ``None`` or a missing path yields ``{}``.
    Keys of the returned dicts are ColumnSpec field names (snake_case).
    """
    if path is None or not path.exists():
        return {}
    data = _read_document(path)
    _validate(data, OVERRIDES_SCHEMA, "header overrides")
    return {header: _spec_kwargs(fields) for header, fields in data.items()}


def load_run_config(path: Path | None) -> RunConfig:
    if path is None:
        return RunConfig()
    data = _read_document(path) or {}
    _validate(data, RUN_CONFIG_SCHEMA, "run config")

    db_raw = data.get("database") or {}
    db = DatabaseConfig(
        host=db_raw.get("host"),
        port=db_raw.get("port"),
        user=db_raw.get("user"),
        password=db_raw.get("password"),
        database=db_raw.get("database"),
        dsn=db_raw.get("dsn"),
    )
    sentinels = data.get("null_sentinels")
    return RunConfig(
        timezone=data.get("timezone"),
        batch_size=data.get("batch_size"),
        truncate=data.get("truncate"),
        delimiter=data.get("delimiter"),
        null_sentinels=tuple(sentinels) if sentinels is not None else None,
        slack_notify_url=data.get("slack_notify_url"),
        database=db,
    )


def resolve_dsn(db_cfg: DatabaseConfig) -> str:
    """Resolve the connection string.

    Precedence:
        1. DATABASE_URL / PGDSN environment variables (``.env`` is loaded by the CLI first)
        2. run config ``database.dsn``
        3. individual PGHOST / PGPORT / PGUSER / PGPASSWORD / PGDATABASE, falling
           back to the run config ``database`` section field by field
    """
    dsn = os.getenv("DATABASE_URL") or os.getenv("PGDSN") or db_cfg.dsn
    if dsn:
        return dsn
    host = os.getenv("PGHOST", db_cfg.host or "localhost")
    port = os.getenv("PGPORT", str(db_cfg.port) if db_cfg.port else "5432")
    user = os.getenv("PGUSER", db_cfg.user or "postgres")
    password = os.getenv("PGPASSWORD", db_cfg.password or "")
    database = os.getenv("PGDATABASE", db_cfg.database or "postgres")
    dsn = f"host={host} port={port} user={user} dbname={database}"
    if password:
        dsn += f" password={password}"
    return dsn
