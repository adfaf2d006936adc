from __future__ import annotations

import dataclasses
import logging
import re
from collections import defaultdict
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from ..models.config_models import ColumnSpec, FieldType
from ..models.schema import ResolvedColumn, ResolvedSchema

"""Schema resolution: configured columns x actual source headers.

Rules:
- Columns are resolved in configuration order, not source order.
- Headers match on exact text after whitespace normalization (runs of
  whitespace incl. newlines -> one space, trimmed).
- A configured header that is absent from the source is dropped from the
  schema and logged (non-fatal).
- ``skip=True`` columns never reach the destination.
- Duplicate destination names get ``_2``, ``_3``... suffixes in first-seen
  order; the first occurrence keeps the bare name.
"""

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")


class SchemaError(Exception):
    """Raised when no configured column can be matched against the source."""


def normalize_header(value: Any) -> str:
    if value is None:
        return ""
    return _WHITESPACE.sub(" ", str(value)).strip()


def disambiguate_names(names: Iterable[str]) -> list[str]:
    """Make destination names unique, preserving order.

    >>> disambiguate_names(["evidence", "evidence", "evidence"])
    ['evidence', 'evidence_2', 'evidence_3']
    """
    used: set[str] = set()
    counts: dict[str, int] = defaultdict(int)
    result: list[str] = []
    for name in names:
        counts[name] += 1
        candidate = name
        if candidate in used:
            n = max(counts[name], 2)
            candidate = f"{name}_{n}"
            # 既存の明示名 (例: "evidence_2") と衝突する場合は番号を進める
            while candidate in used:
                n += 1
                candidate = f"{name}_{n}"
            counts[name] = n
        used.add(candidate)
        result.append(candidate)
    return result


def apply_overrides(
    specs: Sequence[ColumnSpec], overrides: Mapping[str, Mapping[str, Any]] | None
) -> list[ColumnSpec]:
    """Merge per-header overrides into the configured specs (override wins)."""
    if not overrides:
        return list(specs)
    normalized = {normalize_header(h): fields for h, fields in overrides.items()}
    merged: list[ColumnSpec] = []
    for spec in specs:
        fields = normalized.get(normalize_header(spec.header))
        merged.append(dataclasses.replace(spec, **fields) if fields else spec)
    return merged


def infer_column_specs(
    header_row: Sequence[Any], overrides: Mapping[str, Mapping[str, Any]] | None = None
) -> list[ColumnSpec]:
    """Build a column configuration straight from the source headers.

    Every non-empty header becomes a string column (hyperlink targets preferred),
    with overrides applied on top. Repeated headers are kept once; the resolver
    expands them to one column per source occurrence.
    """
    seen: set[str] = set()
    specs: list[ColumnSpec] = []
    for raw in header_row:
        header = normalize_header(raw)
        if not header or header in seen:
            continue
        seen.add(header)
        specs.append(ColumnSpec(header=header, field_type=FieldType.STRING, is_hyperlink=True))
    return apply_overrides(specs, overrides)


def _header_positions(header_row: Sequence[Any]) -> dict[str, list[int]]:
    positions: dict[str, list[int]] = defaultdict(list)
    for index, raw in enumerate(header_row):
        header = normalize_header(raw)
        if header:
            positions[header].append(index)
    return positions


def resolve_schema(
    header_row: Sequence[Any],
    column_specs: Sequence[ColumnSpec],
    overrides: Mapping[str, Mapping[str, Any]] | None = None,
) -> ResolvedSchema:
    """Resolve configured columns against the source header row.

    A header configured once but present n times in the source expands to n
    columns (one per occurrence, source order). A header configured k times
    binds its k-th entry to its k-th source occurrence, or to the last one when
    the source has fewer. Headers without usable identifier characters fall
    back to ``col_<position>``.
    """
    specs = apply_overrides(column_specs, overrides)
    positions = _header_positions(header_row)
    configured_counts: dict[str, int] = defaultdict(int)
    for spec in specs:
        configured_counts[normalize_header(spec.header)] += 1

    occurrence: dict[str, int] = defaultdict(int)
    bound: list[tuple[ColumnSpec, str, int]] = []
    missing: list[str] = []
    for spec in specs:
        header = normalize_header(spec.header)
        k = occurrence[header]
        occurrence[header] += 1
        found = positions.get(header, [])
        if configured_counts[header] == 1:
            indexes = found
        else:
            # 出現数より設定が多い場合は最後の出現に束ねる
            indexes = found[k:k + 1] or found[-1:]
        if spec.skip:
            logger.debug("column excluded by config: %s", spec.header)
            continue
        if not indexes:
            logger.warning("Skipping missing column: %s", spec.header)
            missing.append(spec.header)
            continue
        for index in indexes:
            bound.append((spec, header, index))

    names = disambiguate_names(
        spec.column_name or f"col_{index + 1}" for spec, _, index in bound
    )
    columns = tuple(
        ResolvedColumn(
            name=name,
            header=header,
            source_index=index,
            field_type=spec.field_type,
            primary=spec.primary,
            not_null=spec.not_null,
            need_index=spec.need_index,
            is_hyperlink=spec.is_hyperlink,
        )
        for name, (spec, header, index) in zip(names, bound, strict=True)
    )
    logger.info("Columns found: %d", len(columns))
    return ResolvedSchema(columns=columns, missing_headers=tuple(missing))
