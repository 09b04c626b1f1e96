import math
from typing import Any, Dict, Iterable, List, Mapping, Optional

import pandas as pd

from insight_dash.core.type_inference import is_numeric_string, resolve_column_types
from insight_dash.models import INDEX_FIELD, ColumnType, Dataset, NormalizedTable, to_native
from insight_dash.utils.logger import get_logger

logger = get_logger(__name__)


def to_number(value: Any) -> float:
    """Numeric coercion. Empty, non-numeric and non-finite values become 0."""
    if value is None:
        return 0.0
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        text = value.strip()
        if not text or not is_numeric_string(text):
            return 0.0
        number = float(text)
    else:
        try:
            number = float(value)
        except (TypeError, ValueError):
            return 0.0
    return number if math.isfinite(number) else 0.0


def to_boolean(value: Any) -> bool:
    """Truthiness: only empty strings, zero, NaN, None and False are false."""
    if value is None:
        return False
    if isinstance(value, float) and math.isnan(value):
        return False
    if isinstance(value, (str, bool, int, float)):
        return bool(value)
    # containers and other objects are always truthy
    return True


_COERCERS = {
    ColumnType.NUMBER.value: to_number,
    ColumnType.BOOLEAN.value: to_boolean,
}


def reindex(df: pd.DataFrame) -> pd.DataFrame:
    """Reassign the 1-based synthetic index after a transformation stage."""
    df = df.reset_index(drop=True)
    if INDEX_FIELD in df.columns:
        df = df.drop(columns=[INDEX_FIELD])
    df.insert(0, INDEX_FIELD, range(1, len(df) + 1))
    return df


def normalize_rows(
    rows: Iterable[Mapping[str, Any]],
    columns: List[str],
    column_types: Mapping[str, str],
) -> NormalizedTable:
    """
    Re-type every cell by its column's declared type. Coercion is decided per
    column, never per cell, so running it again on its own output is a no-op.
    """
    if INDEX_FIELD in columns:
        logger.warning(f"Column '{INDEX_FIELD}' is replaced by the synthetic row index.")
    data_columns = [c for c in columns if c != INDEX_FIELD]

    records = [{c: row.get(c, "") for c in data_columns} for row in rows]
    df = pd.DataFrame.from_records(records, columns=data_columns)

    types: Dict[str, str] = {}
    for column in data_columns:
        declared = column_types.get(column, ColumnType.STRING.value)
        types[column] = declared
        coerce = _COERCERS.get(declared)
        if coerce is None:
            # string, date, unknown and anything else pass through unchanged
            df[column] = df[column].astype(object)
            continue
        values = [coerce(v) for v in df[column].tolist()]
        dtype = "float64" if declared == ColumnType.NUMBER.value else "bool"
        df[column] = pd.Series(values, index=df.index, dtype=dtype)

    return NormalizedTable(dataframe=reindex(df), column_types=types)


def normalize_dataset(dataset: Dataset, overrides: Optional[Mapping[str, str]] = None) -> NormalizedTable:
    column_types = resolve_column_types(dataset.columns, dataset.column_meta, overrides)
    return normalize_rows(dataset.rows, dataset.columns, column_types)


def table_records(table: NormalizedTable) -> List[Dict[str, Any]]:
    """Rows of a normalized table as plain dicts, synthetic index included."""
    return [
        {k: to_native(v) for k, v in row.items()}
        for row in table.dataframe.astype(object).to_dict(orient="records")
    ]
