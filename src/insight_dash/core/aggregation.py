"""
aggregation.py
─────────────────────────────────────────────────────────────────────────────
Shrinks a normalized table into chart-ready points.

 - Positional downsampling: above MAX_CHART_POINTS rows, contiguous chunks of
   ceil(n / MAX_CHART_POINTS) rows are averaged (numeric columns) or take
   their first value (everything else). Lossy and order-preserving; this is a
   shape-preserving approximation, not a stratified sample.
 - Time bucketing: rows are grouped by day / ISO week / month of a date
   column and each bucket is reduced with sum, min, max, median or average.
─────────────────────────────────────────────────────────────────────────────
"""
import math
from typing import Iterable, List, Optional

import numpy as np
import pandas as pd

from insight_dash.config import settings
from insight_dash.core.normalizer import reindex
from insight_dash.models import INDEX_FIELD
from insight_dash.utils.logger import get_logger

logger = get_logger(__name__)

AGGREGATIONS = ("sum", "min", "max", "median", "average", "none")
DATE_GROUPINGS = ("none", "day", "week", "month")

_PANDAS_METHODS = {
    "sum": "sum",
    "min": "min",
    "max": "max",
    "median": "median",
    "average": "mean",
}


# ── helpers ───────────────────────────────────────────────────────────────────
def numeric_columns(df: pd.DataFrame) -> List[str]:
    return [
        c for c in df.columns
        if c != INDEX_FIELD
        and pd.api.types.is_numeric_dtype(df[c])
        and not pd.api.types.is_bool_dtype(df[c])
    ]


def reduce_groups(df: pd.DataFrame, keys: Iterable, method: str = "average") -> pd.DataFrame:
    """
    Reduce consecutive-or-keyed groups of rows to one row each.
    Numeric columns use `method`; other columns keep the group's first value.
    Groups come out in order of first appearance.
    """
    if method not in _PANDAS_METHODS:
        raise ValueError(f"Unsupported aggregation method: {method}")

    data = df.drop(columns=[INDEX_FIELD], errors="ignore")
    if len(data) == 0:
        return reindex(data)

    keys = list(keys)
    if len(data.columns) == 0:
        return reindex(pd.DataFrame(index=range(len(dict.fromkeys(keys)))))

    grouped = data.groupby(pd.Series(keys, index=data.index), sort=False)
    num_cols = numeric_columns(data)
    agg_spec = {
        c: (_PANDAS_METHODS[method] if c in num_cols else "first")
        for c in data.columns
    }
    return reindex(grouped.agg(agg_spec))


# ── positional downsampling ───────────────────────────────────────────────────
def chunk_size_for(count: int, max_points: Optional[int] = None) -> int:
    limit = max_points or settings.MAX_CHART_POINTS
    return max(1, math.ceil(count / limit))


def aggregate_chunks(df: pd.DataFrame, chunk_size: int, method: str = "average") -> pd.DataFrame:
    """Collapse each run of `chunk_size` rows into one row."""
    if chunk_size < 1:
        raise ValueError("chunk_size must be at least 1")
    keys = np.arange(len(df)) // chunk_size
    return reduce_groups(df, keys, method)


def downsample(df: pd.DataFrame, max_points: Optional[int] = None) -> pd.DataFrame:
    """Bound the row count to `max_points`; smaller tables pass through reindexed."""
    limit = max_points or settings.MAX_CHART_POINTS
    if len(df) <= limit:
        return reindex(df)

    size = chunk_size_for(len(df), limit)
    logger.info(f"Downsampling {len(df)} rows in chunks of {size}")
    return aggregate_chunks(df, size, "average")


# ── time bucketing ────────────────────────────────────────────────────────────
_KEY_FORMATS = {"day": "%Y-%m-%d", "month": "%Y-%m"}


def bucket_key(value, grouping: str) -> str:
    """
    Bucket label for one date value: 'YYYY-MM-DD', 'YYYY-W{week}' (ISO week)
    or 'YYYY-MM'. Unparseable values keep their original text as the key.
    """
    if grouping not in DATE_GROUPINGS or grouping == "none":
        raise ValueError(f"Unsupported date grouping: {grouping}")
    try:
        ts = pd.to_datetime(value)
    except (ValueError, TypeError, OverflowError):
        return str(value)
    if pd.isna(ts):
        return str(value)

    if grouping == "week":
        iso = ts.isocalendar()
        return f"{iso[0]}-W{iso[1]}"
    return ts.strftime(_KEY_FORMATS[grouping])


def _parse_dates(values: pd.Series) -> Optional[pd.Series]:
    """
    Parse a whole column in one pass. Rows the inferred format misses get a
    second, per-element 'mixed' pass. None when the column cannot be held as
    a datetime dtype (e.g. mixed time zones).
    """
    try:
        parsed = pd.to_datetime(values, errors="coerce")
        missed = parsed.isna() & values.notna()
        if missed.any() and pd.api.types.is_datetime64_any_dtype(parsed):
            parsed = parsed.copy()
            parsed[missed] = pd.to_datetime(values[missed], errors="coerce", format="mixed")
    except (ValueError, TypeError, OverflowError):
        return None
    if not pd.api.types.is_datetime64_any_dtype(parsed):
        return None
    return parsed


def bucket_keys(values: pd.Series, grouping: str) -> List[str]:
    """Vectorized `bucket_key` over a column."""
    if grouping not in DATE_GROUPINGS or grouping == "none":
        raise ValueError(f"Unsupported date grouping: {grouping}")

    parsed = _parse_dates(values)
    if parsed is None:
        logger.warning("Date column could not be parsed as one series; bucketing value by value.")
        return [bucket_key(v, grouping) for v in values.tolist()]

    if grouping == "week":
        iso = parsed.dt.isocalendar()
        keys = iso["year"].astype(str) + "-W" + iso["week"].astype(str)
    else:
        keys = parsed.dt.strftime(_KEY_FORMATS[grouping])
    keys = keys.where(parsed.notna(), values.astype(str))
    return keys.tolist()


def group_by_date(df: pd.DataFrame, date_column: str, grouping: str, method: str = "average") -> pd.DataFrame:
    """
    Group rows into time buckets of `date_column` and reduce each bucket.
    The date column of each output row holds the bucket key.
    `none` for either argument passes the rows through reindexed.
    """
    if grouping == "none" or method == "none" or df.empty:
        return reindex(df)
    if date_column not in df.columns:
        raise KeyError(date_column)

    keys = bucket_keys(df[date_column], grouping)
    reduced = reduce_groups(df, keys, method)
    reduced[date_column] = list(dict.fromkeys(keys))
    logger.info(f"Grouped {len(df)} rows into {len(reduced)} {grouping} bucket(s) using {method}")
    return reduced
