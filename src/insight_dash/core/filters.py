"""
Filter/view stages applied to a chart frame, always in this order:

  1. per-column inclusive range filters (a row must pass all of them)
  2. view mode: 'all' truncates to the entry count, 'top5' / 'bottom5' rank by
     the first numeric column and keep 5 rows
  3. brush viewport: an inclusive position range of the stage-2 output
"""
from typing import Mapping, Optional

import pandas as pd

from insight_dash.config import settings
from insight_dash.core.aggregation import numeric_columns
from insight_dash.core.normalizer import reindex
from insight_dash.models import RangeFilter, Viewport
from insight_dash.utils.exceptions import ColumnNotFoundError, InvalidChartConfigError
from insight_dash.utils.logger import get_logger

logger = get_logger(__name__)

RANKED_ROWS = 5
VIEW_MODES = ("all", "top5", "bottom5")


def validate_entry_count(entries: int) -> int:
    if entries not in settings.ENTRY_COUNT_CHOICES:
        choices = ", ".join(str(c) for c in settings.ENTRY_COUNT_CHOICES)
        raise InvalidChartConfigError(f"Entry count must be one of: {choices}.")
    return entries


def apply_range_filters(df: pd.DataFrame, filters: Optional[Mapping[str, RangeFilter]]) -> pd.DataFrame:
    """Keep rows whose value lies inside every active [min, max] range."""
    active = {c: f for c, f in (filters or {}).items() if f.is_active}
    if not active:
        return reindex(df)

    mask = pd.Series(True, index=df.index)
    for column, bounds in active.items():
        if column not in df.columns:
            raise ColumnNotFoundError(column)
        values = pd.to_numeric(df[column], errors="coerce")
        if bounds.min is not None:
            mask &= values >= bounds.min
        if bounds.max is not None:
            mask &= values <= bounds.max

    result = df[mask.fillna(False)]
    logger.info(f"Range filters kept {len(result)} of {len(df)} rows")
    return reindex(result)


def apply_view_mode(df: pd.DataFrame, view_mode: str = "all", entries: Optional[int] = None) -> pd.DataFrame:
    """
    Truncate or rank. Ranking sorts by the first numeric column; without one
    the rows keep their order and the first five are taken.
    """
    if view_mode not in VIEW_MODES:
        raise InvalidChartConfigError(f"Unknown view mode '{view_mode}'.")

    if view_mode == "all":
        limit = validate_entry_count(entries or settings.DEFAULT_ENTRY_COUNT)
        return reindex(df.head(limit))

    num_cols = numeric_columns(df)
    if num_cols:
        ranked = df.sort_values(
            by=num_cols[0],
            ascending=(view_mode == "bottom5"),
            kind="mergesort",  # stable for ties
        )
    else:
        logger.warning(f"No numeric column to rank by; '{view_mode}' keeps the original order.")
        ranked = df
    return reindex(ranked.head(RANKED_ROWS))


def clamp_viewport(viewport: Viewport, size: int) -> Optional[Viewport]:
    """Fit a brush range inside [0, size - 1]; None when there is nothing to show."""
    if size == 0:
        return None
    start, end = sorted((viewport.start, viewport.end))
    last = size - 1
    return Viewport(start=min(start, last), end=min(end, last))


def apply_viewport(df: pd.DataFrame, viewport: Optional[Viewport]) -> pd.DataFrame:
    """Restrict to the brushed positions. Indices are left as the view stage set them."""
    if viewport is None:
        return df
    bounds = clamp_viewport(viewport, len(df))
    if bounds is None:
        return df
    return df.iloc[bounds.start:bounds.end + 1]
