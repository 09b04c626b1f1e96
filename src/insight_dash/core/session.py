"""
In-memory session state: pending imports, committed datasets, chart view
settings and goals. Nothing here is persisted; everything lives for the
lifetime of the process that owns the store.
"""
import uuid
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from insight_dash.config import settings
from insight_dash.core.chart import build_chart_frame
from insight_dash.core.filters import clamp_viewport, validate_entry_count
from insight_dash.core.normalizer import normalize_dataset, table_records
from insight_dash.core.type_inference import validate_column_type
from insight_dash.models import (
    DESCRIPTION_MAX_LENGTH,
    ChartFrame,
    ChartRequest,
    ColumnMeta,
    Dataset,
    Goal,
    Viewport,
)
from insight_dash.utils.exceptions import (
    ColumnNotFoundError,
    DatasetNotFoundError,
    GoalNotFoundError,
    InvalidChartConfigError,
    MetadataValidationError,
)
from insight_dash.utils.logger import get_logger

logger = get_logger(__name__)


class ImportSession:
    """
    A parsed file waiting for confirmation. Column types and descriptions can
    be edited until `commit()`; the preview always reflects the current edits.
    """

    def __init__(self, dataset: Dataset):
        self.id = uuid.uuid4().hex
        self.dataset = dataset
        self.column_meta: Dict[str, ColumnMeta] = {
            c: dataset.column_meta.get(c, ColumnMeta()).model_copy() for c in dataset.columns
        }
        self.committed = False

    def _check_column(self, column: str) -> None:
        if column not in self.column_meta:
            raise ColumnNotFoundError(column)
        if self.committed:
            raise MetadataValidationError("Column metadata cannot change after the import is committed.")

    def set_column_type(self, column: str, type_name: str) -> ColumnMeta:
        self._check_column(column)
        meta = self.column_meta[column]
        meta.type = validate_column_type(type_name)
        return meta

    def set_column_description(self, column: str, description: str) -> ColumnMeta:
        self._check_column(column)
        if len(description) > DESCRIPTION_MAX_LENGTH:
            raise MetadataValidationError(
                f"Description must be at most {DESCRIPTION_MAX_LENGTH} characters."
            )
        self.column_meta[column].description = description
        return self.column_meta[column]

    def current_dataset(self) -> Dataset:
        return self.dataset.model_copy(
            update={"column_meta": {c: m.model_copy() for c, m in self.column_meta.items()}}
        )

    def preview(self, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        limit = limit or settings.PREVIEW_ROWS
        head = self.current_dataset().model_copy(update={"rows": self.dataset.rows[:limit]})
        return table_records(normalize_dataset(head))

    def commit(self) -> Dataset:
        dataset = self.current_dataset()
        self.committed = True
        return dataset


# Settings whose change invalidates the brush
UPSTREAM_FIELDS = (
    "chart_type", "x_axis", "y_axis", "date_grouping",
    "aggregation", "view_mode", "entries", "filters",
)


class ChartViewState:
    """Interactive chart settings for one dataset, including the brush."""

    def __init__(self, dataset: Dataset, request: Optional[ChartRequest] = None):
        self.dataset = dataset
        self.request = (request or ChartRequest(entries=settings.DEFAULT_ENTRY_COUNT)).model_copy(
            update={"brush": None}
        )

    @property
    def brush(self) -> Optional[Viewport]:
        return self.request.brush

    def update(self, **changes) -> ChartRequest:
        """Apply setting changes; any upstream change resets the brush to the full range."""
        changes.pop("brush", None)
        if "entries" in changes:
            validate_entry_count(changes["entries"])

        try:
            candidate = ChartRequest.model_validate({**self.request.model_dump(), **changes})
        except ValidationError as e:
            raise InvalidChartConfigError(f"Invalid chart settings: {e.errors()[0]['msg']}")
        upstream_changed = any(
            getattr(candidate, f) != getattr(self.request, f) for f in UPSTREAM_FIELDS
        )
        if upstream_changed:
            candidate = candidate.model_copy(update={"brush": None})
            logger.info(f"Chart settings changed for '{self.dataset.name}'; brush reset.")
        self.request = candidate
        return self.request

    def set_brush(self, start: int, end: int) -> Optional[Viewport]:
        size = self.frame(with_brush=False).size
        viewport = clamp_viewport(Viewport(start=start, end=end), size)
        self.request = self.request.model_copy(update={"brush": viewport})
        return viewport

    def reset_brush(self) -> None:
        self.request = self.request.model_copy(update={"brush": None})

    def frame(self, with_brush: bool = True) -> ChartFrame:
        request = self.request if with_brush else self.request.model_copy(update={"brush": None})
        return build_chart_frame(self.dataset, request)


class SessionStore:
    """Process-lifetime store for everything the dashboard works with."""

    def __init__(self):
        self._datasets: List[Dataset] = []
        self._imports: Dict[str, ImportSession] = {}
        self._views: Dict[str, ChartViewState] = {}
        self._goals: Dict[str, List[Goal]] = {}

    # --- imports ---
    def start_import(self, dataset: Dataset) -> ImportSession:
        session = ImportSession(dataset)
        self._imports[session.id] = session
        return session

    def get_import(self, import_id: str) -> ImportSession:
        try:
            return self._imports[import_id]
        except KeyError:
            raise DatasetNotFoundError(import_id)

    def commit_import(self, import_id: str) -> Dataset:
        session = self.get_import(import_id)
        dataset = session.commit()
        del self._imports[import_id]
        self.add(dataset)
        return dataset

    # --- datasets ---
    def add(self, dataset: Dataset) -> Dataset:
        self._datasets.append(dataset)
        logger.info(f"Dataset '{dataset.name}' added ({dataset.row_count} rows).")
        return dataset

    def list(self) -> List[Dataset]:
        return list(self._datasets)

    def get(self, dataset_id: str) -> Dataset:
        for dataset in self._datasets:
            if dataset.id == dataset_id:
                return dataset
        raise DatasetNotFoundError(dataset_id)

    def remove(self, dataset_id: str) -> Dataset:
        dataset = self.get(dataset_id)
        self._datasets.remove(dataset)
        self._views.pop(dataset_id, None)
        self._goals.pop(dataset_id, None)
        return dataset

    # --- chart views ---
    def view(self, dataset_id: str) -> ChartViewState:
        if dataset_id not in self._views:
            self._views[dataset_id] = ChartViewState(self.get(dataset_id))
        return self._views[dataset_id]

    # --- goals ---
    def goals(self, dataset_id: str) -> List[Goal]:
        self.get(dataset_id)
        return list(self._goals.get(dataset_id, []))

    def set_goals(self, dataset_id: str, goals: List[Goal]) -> List[Goal]:
        self.get(dataset_id)
        self._goals[dataset_id] = list(goals)
        return self.goals(dataset_id)

    def add_goal(self, dataset_id: str, goal: Goal) -> Goal:
        self.set_goals(dataset_id, [*self.goals(dataset_id), goal])
        return goal

    def get_goal(self, dataset_id: str, goal_id: str) -> Goal:
        for goal in self.goals(dataset_id):
            if goal.id == goal_id:
                return goal
        raise GoalNotFoundError(goal_id)

    def update_goal(self, dataset_id: str, goal: Goal) -> Goal:
        goals = [goal if g.id == goal.id else g for g in self.goals(dataset_id)]
        self.set_goals(dataset_id, goals)
        return goal
