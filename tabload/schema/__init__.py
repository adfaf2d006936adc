from .resolver import (
    SchemaError,
    apply_overrides,
    disambiguate_names,
    infer_column_specs,
    normalize_header,
    resolve_schema,
)

__all__ = [
    "SchemaError",
    "apply_overrides",
    "disambiguate_names",
    "infer_column_specs",
    "normalize_header",
    "resolve_schema",
]
