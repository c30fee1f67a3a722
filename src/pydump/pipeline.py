"""Row extraction, filtering and ranking stages of a dump.

Rows are plain dicts mapping field names to typed values, in the order the
fields were resolved. Each stage takes a list of rows and returns a new one.
"""

import math
import re
from collections.abc import Iterable
from typing import Any

from pydump.models import Kind, Record, SortOrder
from pydump.registry import FieldSpec
from pydump.render import machine_text

Row = dict[str, Any]


def extract_rows(records: Iterable[Record], fields: Iterable[FieldSpec]) -> list[Row]:
    """Evaluate every field accessor against every record."""
    fields = list(fields)
    return [{spec.name: spec.value(record) for spec in fields} for record in records]


def apply_filter(rows: list[Row], field: FieldSpec, pattern: str | re.Pattern[str]) -> list[Row]:
    """Keep the rows whose ``field`` text matches ``pattern`` anywhere."""
    regex = re.compile(pattern) if isinstance(pattern, str) else pattern
    return [
        row for row in rows if regex.search(machine_text(field, row.get(field.name)))
    ]


def _is_missing(field: FieldSpec, value: Any) -> bool:
    if value is None:
        return True
    if field.kind is Kind.TEXT:
        return False
    try:
        return math.isnan(value)
    except TypeError:
        return True


def _sort_key(field: FieldSpec, value: Any) -> Any:
    if field.kind is Kind.TEXT:
        return str(value)
    return value


def apply_ranking(
    rows: list[Row], field: FieldSpec | None, order: SortOrder, top: int = 0
) -> list[Row]:
    """
    Order rows by ``field`` and keep the first ``top`` of them.

    The sort is stable in both directions, so equal values keep their
    original relative order. Missing values (None or NaN) always go last.
    With ``SortOrder.NONE`` rows keep their encounter order. ``top`` of 0
    means no limit.
    """
    ranked = list(rows)
    if order is not SortOrder.NONE and field is not None:
        present = [r for r in ranked if not _is_missing(field, r.get(field.name))]
        missing = [r for r in ranked if _is_missing(field, r.get(field.name))]
        present.sort(
            key=lambda r: _sort_key(field, r[field.name]),
            reverse=order is SortOrder.DESCENDING,
        )
        ranked = present + missing
    if top > 0:
        ranked = ranked[:top]
    return ranked
