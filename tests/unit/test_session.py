import pytest

from insight_dash.core.session import ChartViewState, ImportSession, SessionStore
from insight_dash.models import ChartRequest, Goal
from insight_dash.utils.exceptions import (
    ColumnNotFoundError,
    DatasetNotFoundError,
    GoalNotFoundError,
    InvalidChartConfigError,
    MetadataValidationError,
)

# --- Tests for ImportSession ---

def test_preview_uses_inferred_types(sample_dataset):
    preview = ImportSession(sample_dataset).preview()
    assert len(preview) == 5
    assert preview[0] == {"index": 1, "date": "2024-01-01", "revenue": 50000.0, "customers": 120.0, "orders": 95.0}

def test_preview_reflects_type_override(sample_dataset):
    pending = ImportSession(sample_dataset)
    pending.set_column_type("revenue", "string")
    assert pending.preview(limit=2)[0]["revenue"] == "50000"

    pending.set_column_type("revenue", "number")
    assert pending.preview(limit=2)[0]["revenue"] == 50000.0

def test_edits_do_not_touch_source_dataset(sample_dataset):
    pending = ImportSession(sample_dataset)
    pending.set_column_type("revenue", "string")
    assert sample_dataset.column_type("revenue") == "number"

def test_description_length_limit(sample_dataset):
    pending = ImportSession(sample_dataset)
    pending.set_column_description("revenue", "x" * 60)
    with pytest.raises(MetadataValidationError):
        pending.set_column_description("revenue", "x" * 61)
    assert pending.column_meta["revenue"].description == "x" * 60

def test_invalid_column_type(sample_dataset):
    with pytest.raises(MetadataValidationError):
        ImportSession(sample_dataset).set_column_type("revenue", "currency")

def test_unknown_column(sample_dataset):
    with pytest.raises(ColumnNotFoundError):
        ImportSession(sample_dataset).set_column_description("profit", "Net profit")

def test_commit_applies_edits_and_freezes(sample_dataset):
    pending = ImportSession(sample_dataset)
    pending.set_column_description("revenue", "Daily revenue in USD")
    dataset = pending.commit()

    assert dataset.column_meta["revenue"].description == "Daily revenue in USD"
    assert dataset.id == sample_dataset.id
    with pytest.raises(MetadataValidationError):
        pending.set_column_type("revenue", "string")

# --- Tests for ChartViewState ---

def test_upstream_change_resets_brush(sample_dataset):
    view = ChartViewState(sample_dataset)
    view.set_brush(1, 2)
    assert view.brush is not None

    view.update(view_mode="top5")
    assert view.brush is None
    assert view.frame().size == 5

def test_unchanged_settings_keep_brush(sample_dataset):
    view = ChartViewState(sample_dataset)
    view.set_brush(1, 2)
    view.update(entries=view.request.entries)
    assert view.brush is not None
    assert view.frame().size == 2

def test_brush_is_clamped_to_frame(sample_dataset):
    view = ChartViewState(sample_dataset)
    viewport = view.set_brush(3, 100)
    assert (viewport.start, viewport.end) == (3, 4)
    assert [p["index"] for p in view.frame().points] == [4, 5]

def test_reset_brush_shows_full_range(sample_dataset):
    view = ChartViewState(sample_dataset)
    view.set_brush(0, 0)
    view.reset_brush()
    assert view.frame().size == 5

def test_invalid_settings_are_rejected(sample_dataset):
    view = ChartViewState(sample_dataset)
    with pytest.raises(InvalidChartConfigError):
        view.update(entries=7)
    with pytest.raises(InvalidChartConfigError):
        view.update(chart_type="radar")
    assert view.request == ChartRequest(entries=50)

# --- Tests for SessionStore ---

def test_import_commit_flow(sample_dataset):
    store = SessionStore()
    pending = store.start_import(sample_dataset)
    dataset = store.commit_import(pending.id)

    assert store.list() == [dataset]
    assert store.get(dataset.id) is dataset
    with pytest.raises(DatasetNotFoundError):
        store.get_import(pending.id)

def test_unknown_dataset():
    with pytest.raises(DatasetNotFoundError):
        SessionStore().get("missing")

def test_remove_drops_view_and_goals(sample_dataset):
    store = SessionStore()
    store.add(sample_dataset)
    store.view(sample_dataset.id)
    store.add_goal(sample_dataset.id, Goal(title="Grow revenue", target=1000, deadline="2024-12-31"))

    store.remove(sample_dataset.id)
    assert store.list() == []
    with pytest.raises(DatasetNotFoundError):
        store.goals(sample_dataset.id)

def test_goal_lookup(sample_dataset):
    store = SessionStore()
    store.add(sample_dataset)
    goal = store.add_goal(sample_dataset.id, Goal(title="Grow revenue", target=1000, deadline="2024-12-31"))

    assert store.get_goal(sample_dataset.id, goal.id) == goal
    with pytest.raises(GoalNotFoundError):
        store.get_goal(sample_dataset.id, "nope")
