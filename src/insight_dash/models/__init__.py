import uuid
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

import pandas as pd
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

INDEX_FIELD = "index"
DESCRIPTION_MAX_LENGTH = 60


class ColumnType(str, Enum):
    """Semantic column types a user can assign."""
    STRING = "string"
    NUMBER = "number"
    DATE = "date"
    BOOLEAN = "boolean"
    UNKNOWN = "unknown"


class ColumnMeta(BaseModel):
    """
    Per-column metadata. `type` is usually a ColumnType value, but inference may
    report other runtime type names (e.g. 'dict' for nested JSON values).
    """
    type: str = ColumnType.STRING.value
    description: str = Field("", max_length=DESCRIPTION_MAX_LENGTH)


def _new_dataset_id() -> str:
    # uuid1 embeds the creation time
    return uuid.uuid1().hex


class Dataset(BaseModel):
    """
    One imported tabular source. Immutable once created; every row carries a
    value for every column (absent keys become empty strings).
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_new_dataset_id)
    name: str
    created_at: datetime = Field(default_factory=datetime.now)
    columns: List[str]
    rows: List[Dict[str, Any]] = Field(default_factory=list)
    column_meta: Dict[str, ColumnMeta] = Field(default_factory=dict)

    @field_validator("columns")
    @classmethod
    def validate_columns(cls, v: List[str]) -> List[str]:
        if len(set(v)) != len(v):
            raise ValueError("Column names must be unique.")
        return v

    @model_validator(mode="after")
    def fill_missing_cells(self) -> "Dataset":
        for i, row in enumerate(self.rows):
            self.rows[i] = {c: (row[c] if c in row else "") for c in self.columns}
        return self

    @property
    def row_count(self) -> int:
        return len(self.rows)

    @property
    def is_empty(self) -> bool:
        return not self.columns or not self.rows

    def column_type(self, column: str) -> str:
        meta = self.column_meta.get(column)
        return meta.type if meta else ColumnType.STRING.value

    def summary(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "created_at": self.created_at.isoformat(),
            "rows": self.row_count,
            "columns": [
                {"name": c, **self.column_meta.get(c, ColumnMeta()).model_dump()}
                for c in self.columns
            ],
        }


class NormalizedTable(BaseModel):
    """
    The uniform in-memory table produced by the row normalizer.
    Each column's dtype is resolved once from its declared type; the synthetic
    `index` column holds 1-based positions.
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    dataframe: pd.DataFrame
    column_types: Dict[str, str]

    @property
    def numeric_columns(self) -> List[str]:
        return [c for c, t in self.column_types.items() if t == ColumnType.NUMBER.value]


class KPI(BaseModel):
    """A derived summary statistic for one numeric column."""
    id: str
    column: str
    name: str
    value: float
    target: float
    unit: str = ""
    trend: Literal["up", "down", "stable"] = "stable"
    change_percent: float = 0.0


class RangeFilter(BaseModel):
    """Inclusive min/max bounds for one column. Either side may be open."""
    min: Optional[float] = None
    max: Optional[float] = None

    @property
    def is_active(self) -> bool:
        return self.min is not None or self.max is not None


class Viewport(BaseModel):
    """Inclusive 0-based position range selected with the chart brush."""
    start: int = Field(0, ge=0)
    end: int = Field(0, ge=0)


ChartType = Literal["line", "bar", "pie", "area", "scatter"]
DateGrouping = Literal["none", "day", "week", "month"]
AggregationMethod = Literal["sum", "min", "max", "median", "average", "none"]
ViewMode = Literal["all", "top5", "bottom5"]


class ChartRequest(BaseModel):
    """Every setting that shapes a chart frame."""
    chart_type: ChartType = "line"
    x_axis: Optional[str] = None
    y_axis: List[str] = Field(default_factory=list)
    date_grouping: DateGrouping = "none"
    aggregation: AggregationMethod = "average"
    view_mode: ViewMode = "all"
    entries: int = 50
    filters: Dict[str, RangeFilter] = Field(default_factory=dict)
    brush: Optional[Viewport] = None


class ChartFrame(BaseModel):
    """Bounded, possibly aggregated rows prepared for a chart."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    dataframe: pd.DataFrame
    x_axis: str = INDEX_FIELD
    y_axis: List[str] = Field(default_factory=list)
    chart_type: ChartType = "line"

    @property
    def size(self) -> int:
        return len(self.dataframe)

    @property
    def points(self) -> List[Dict[str, Any]]:
        fields = [INDEX_FIELD]
        for column in [self.x_axis, *self.y_axis]:
            if column not in fields and column in self.dataframe.columns:
                fields.append(column)
        return [
            {k: to_native(v) for k, v in row.items()}
            for row in self.dataframe[fields].to_dict(orient="records")
        ]


class Goal(BaseModel):
    """A business objective tracked against a KPI."""
    id: str = Field(default_factory=_new_dataset_id)
    title: str = Field(..., min_length=1)
    description: str = ""
    target: float = Field(..., gt=0)
    current: float = 0.0
    deadline: date
    status: Literal["on-track", "at-risk", "off-track"] = "on-track"
    insight: Optional[str] = None


def to_native(value: Any) -> Any:
    """Convert numpy scalars to plain Python values for JSON responses."""
    if hasattr(value, "item") and not isinstance(value, (str, bytes)):
        try:
            return value.item()
        except (ValueError, AttributeError):
            return value
    return value
