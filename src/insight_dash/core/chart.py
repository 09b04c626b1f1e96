from typing import List, Optional, Tuple

from insight_dash.core.aggregation import downsample, group_by_date
from insight_dash.core.filters import apply_range_filters, apply_view_mode, apply_viewport
from insight_dash.core.normalizer import normalize_dataset
from insight_dash.models import INDEX_FIELD, ChartFrame, ChartRequest, ColumnType, Dataset, NormalizedTable
from insight_dash.utils.exceptions import ColumnNotFoundError
from insight_dash.utils.logger import get_logger

logger = get_logger(__name__)


def resolve_axes(dataset: Dataset, request: ChartRequest) -> Tuple[str, List[str]]:
    """Default x is the first column, default y the second one."""
    x_axis = request.x_axis or (dataset.columns[0] if dataset.columns else INDEX_FIELD)
    y_axis = list(request.y_axis) if request.y_axis else dataset.columns[1:2]

    for column in [x_axis, *y_axis]:
        if column != INDEX_FIELD and column not in dataset.columns:
            raise ColumnNotFoundError(column)
    return x_axis, y_axis


def aggregate_table(table: NormalizedTable, x_axis: str, request: ChartRequest, max_points: Optional[int] = None):
    """Time-bucket on a date x-axis when grouping is on, then bound the point count."""
    df = table.dataframe
    if request.date_grouping != "none":
        if table.column_types.get(x_axis) == ColumnType.DATE.value:
            df = group_by_date(df, x_axis, request.date_grouping, request.aggregation)
        else:
            logger.info(f"Date grouping ignored: x-axis '{x_axis}' is not a date column.")
    return downsample(df, max_points)


def build_chart_frame(dataset: Dataset, request: ChartRequest, max_points: Optional[int] = None) -> ChartFrame:
    """
    Full chart pipeline: normalize, aggregate, filter, rank/truncate, brush.
    Pure function of its inputs; call it again whenever any setting changes.
    """
    x_axis, y_axis = resolve_axes(dataset, request)
    table = normalize_dataset(dataset)

    df = aggregate_table(table, x_axis, request, max_points)
    df = apply_range_filters(df, request.filters)
    df = apply_view_mode(df, request.view_mode, request.entries)
    df = apply_viewport(df, request.brush)

    logger.info(f"Chart frame for '{dataset.name}': {len(df)} point(s), x={x_axis}, y={y_axis}")
    return ChartFrame(dataframe=df, x_axis=x_axis, y_axis=y_axis, chart_type=request.chart_type)
