"""
Column type inference.

Types are guessed from a single sample row (the first row of the parsed
table), not from a full column scan. The result is advisory: overrides
supplied by the user always win.
"""
import math
import re
from typing import Any, Dict, List, Mapping, Optional

import pandas as pd

from insight_dash.models import ColumnMeta, ColumnType
from insight_dash.utils.exceptions import MetadataValidationError

_NUMERIC_LITERAL = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$")
_WORDS_ONLY = re.compile(r"^[A-Za-z\s]+$")


def is_numeric_string(value: str) -> bool:
    return bool(_NUMERIC_LITERAL.match(value.strip()))


def is_date_string(value: str) -> bool:
    text = value.strip()
    if not text or is_numeric_string(text):
        return False
    # relative words like "today" or "now" are not dates
    if _WORDS_ONLY.match(text):
        return False
    try:
        parsed = pd.to_datetime(text)
    except (ValueError, TypeError, OverflowError):
        return False
    return not pd.isna(parsed)


def infer_value_type(value: Any) -> str:
    if value is None:
        return ColumnType.UNKNOWN.value
    # bool before number: bool is an int subclass
    if isinstance(value, bool):
        return ColumnType.BOOLEAN.value
    if isinstance(value, (int, float)):
        if isinstance(value, float) and math.isnan(value):
            return ColumnType.UNKNOWN.value
        return ColumnType.NUMBER.value
    if isinstance(value, str):
        # numeric text is a number by design, so CSV columns can feed KPIs
        if is_numeric_string(value):
            return ColumnType.NUMBER.value
        if is_date_string(value):
            return ColumnType.DATE.value
        return ColumnType.STRING.value
    return type(value).__name__


def infer_column_types(sample_row: Mapping[str, Any]) -> Dict[str, str]:
    """Map every column of the sample row to its inferred type."""
    return {column: infer_value_type(value) for column, value in sample_row.items()}


def infer_column_meta(columns: List[str], sample_row: Mapping[str, Any]) -> Dict[str, ColumnMeta]:
    """Build initial metadata for each column; columns absent from the sample default to string."""
    inferred = infer_column_types(sample_row)
    return {
        column: ColumnMeta(type=inferred.get(column, ColumnType.STRING.value))
        for column in columns
    }


def validate_column_type(type_name: str) -> str:
    try:
        return ColumnType(type_name).value
    except ValueError:
        allowed = ", ".join(t.value for t in ColumnType)
        raise MetadataValidationError(f"Unsupported column type '{type_name}'. Use one of: {allowed}.")


def resolve_column_types(
    columns: List[str],
    column_meta: Mapping[str, ColumnMeta],
    overrides: Optional[Mapping[str, str]] = None,
) -> Dict[str, str]:
    """Final declared type per column: override > metadata > string."""
    overrides = overrides or {}
    resolved = {}
    for column in columns:
        if column in overrides:
            resolved[column] = validate_column_type(overrides[column])
        elif column in column_meta:
            resolved[column] = column_meta[column].type
        else:
            resolved[column] = ColumnType.STRING.value
    return resolved
