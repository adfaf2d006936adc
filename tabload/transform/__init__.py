from .values import (
    DEFAULT_NULL_SENTINELS,
    InvalidTimezoneError,
    TypedValue,
    is_null,
    normalize_whitespace,
    transform_row,
    transform_value,
    validate_timezone,
)

__all__ = [
    "DEFAULT_NULL_SENTINELS",
    "InvalidTimezoneError",
    "TypedValue",
    "is_null",
    "normalize_whitespace",
    "transform_row",
    "transform_value",
    "validate_timezone",
]
