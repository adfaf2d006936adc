from .loader import (
    ConfigError,
    RunConfig,
    load_column_config,
    load_header_overrides,
    load_run_config,
    resolve_dsn,
)

__all__ = [
    "ConfigError",
    "RunConfig",
    "load_column_config",
    "load_header_overrides",
    "load_run_config",
    "resolve_dsn",
]
