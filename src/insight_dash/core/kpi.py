import math
import re
from typing import List, Optional, Sequence, Tuple

from insight_dash.config import settings
from insight_dash.models import KPI, NormalizedTable
from insight_dash.utils.logger import get_logger

logger = get_logger(__name__)

CURRENCY_KEYWORDS = ("revenue", "sales", "price", "cost")


def round2(value: float) -> float:
    """Round half up to 2 decimals."""
    return math.floor(value * 100 + 0.5) / 100


def humanize(column: str) -> str:
    """'avgOrderValue' -> 'Avg Order Value'."""
    if not column:
        return column
    spaced = re.sub(r"([A-Z])", r" \1", column[1:])
    return column[0].upper() + spaced


def currency_unit(column: str) -> str:
    lowered = column.lower()
    return "$" if any(k in lowered for k in CURRENCY_KEYWORDS) else ""


def _mean(values: Sequence[float]) -> Optional[float]:
    return sum(values) / len(values) if values else None


def trend_of(values: Sequence[float]) -> Tuple[str, float]:
    """
    Split the series at its midpoint and compare the two halves' means.
    A missing half or a zero first-half mean gives ('stable', 0.0) when the
    comparison is undefined.
    """
    mid = len(values) // 2
    first_avg = _mean(values[:mid])
    second_avg = _mean(values[mid:])
    if first_avg is None or second_avg is None:
        return "stable", 0.0

    if second_avg > first_avg:
        trend = "up"
    elif second_avg < first_avg:
        trend = "down"
    else:
        trend = "stable"

    change = (second_avg - first_avg) / first_avg * 100 if first_avg != 0 else 0.0
    return trend, round2(change)


def kpi_for_column(column: str, values: Sequence[float], kpi_id: str) -> Optional[KPI]:
    """Zero values count as absent data. Returns None when nothing is left."""
    present = [float(v) for v in values if v != 0 and not math.isnan(v)]
    if not present:
        return None

    trend, change = trend_of(present)
    return KPI(
        id=kpi_id,
        column=column,
        name=humanize(column),
        value=round2(sum(present) / len(present)),
        target=round2(max(present)),
        unit=currency_unit(column),
        trend=trend,
        change_percent=change,
    )


def derive_kpis(table: NormalizedTable, limit: Optional[int] = None) -> List[KPI]:
    """
    One KPI per numeric column, taken from the first `limit` numeric columns
    in column order. Columns without non-zero values are dropped.
    """
    limit = limit or settings.KPI_LIMIT
    df = table.dataframe
    if df.empty:
        return []

    kpis = []
    for position, column in enumerate(table.numeric_columns[:limit], start=1):
        kpi = kpi_for_column(column, df[column].tolist(), str(position))
        if kpi is None:
            logger.info(f"Column '{column}' has no non-zero values; skipping KPI.")
            continue
        kpis.append(kpi)
    return kpis
