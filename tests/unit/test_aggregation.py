import pandas as pd
import pytest

from insight_dash.core import aggregation
from insight_dash.core.aggregation import (
    aggregate_chunks,
    bucket_key,
    bucket_keys,
    chunk_size_for,
    downsample,
    group_by_date,
    reduce_groups,
)
from insight_dash.core.normalizer import normalize_rows


def _frame(n: int) -> pd.DataFrame:
    rows = [{"label": f"row{i}", "value": i} for i in range(n)]
    return normalize_rows(rows, ["label", "value"], {"label": "string", "value": "number"}).dataframe

# --- Tests for Chunked Aggregation ---

def test_chunk_average(number_table):
    df = number_table(value=[10, 20, 30, 40]).dataframe
    assert aggregate_chunks(df, 2, "average")["value"].tolist() == [15.0, 35.0]

def test_chunk_sum(number_table):
    df = number_table(value=[10, 20, 30, 40]).dataframe
    assert aggregate_chunks(df, 2, "sum")["value"].tolist() == [30.0, 70.0]

def test_median_of_single_group(number_table):
    df = number_table(value=[10, 20, 30, 40]).dataframe
    assert reduce_groups(df, [0, 0, 0, 0], "median")["value"].tolist() == [25.0]

def test_min_max(number_table):
    df = number_table(value=[3, 1, 9, 4]).dataframe
    assert aggregate_chunks(df, 2, "min")["value"].tolist() == [1.0, 4.0]
    assert aggregate_chunks(df, 2, "max")["value"].tolist() == [3.0, 9.0]

def test_non_numeric_columns_keep_first_value():
    result = aggregate_chunks(_frame(4), 2)
    assert result["label"].tolist() == ["row0", "row2"]
    assert result["index"].tolist() == [1, 2]

def test_unknown_method_is_rejected(number_table):
    with pytest.raises(ValueError):
        reduce_groups(number_table(value=[1]).dataframe, [0], "mode")

# --- Tests for Downsampling ---

@pytest.mark.parametrize("count", [0, 1, 499, 500])
def test_small_tables_pass_through(count):
    assert len(downsample(_frame(count))) == count

@pytest.mark.parametrize("count, expected", [(501, 251), (1200, 400), (10_000, 500), (12_345, 494)])
def test_large_tables_are_bounded(count, expected):
    result = downsample(_frame(count))
    assert len(result) == expected
    assert len(result) <= 500
    assert result["index"].tolist() == list(range(1, expected + 1))

def test_downsample_preserves_order():
    result = downsample(_frame(1200))
    values = result["value"].tolist()
    assert values[0] == 1.0  # mean of 0, 1, 2
    assert values == sorted(values)

def test_chunk_size():
    assert chunk_size_for(500) == 1
    assert chunk_size_for(501) == 2
    assert chunk_size_for(100, max_points=10) == 10

# --- Tests for Time Bucketing ---

def _dated(dates, values):
    rows = [{"date": d, "sales": v} for d, v in zip(dates, values)]
    return normalize_rows(rows, ["date", "sales"], {"date": "date", "sales": "number"}).dataframe

def test_month_buckets_sum():
    df = _dated(["2024-01-05", "2024-01-20", "2024-02-01"], [10, 20, 30])
    result = group_by_date(df, "date", "month", "sum")
    assert result["date"].tolist() == ["2024-01", "2024-02"]
    assert result["sales"].tolist() == [30.0, 30.0]

def test_day_buckets_average():
    df = _dated(["2024-03-01", "2024-03-01", "2024-03-02"], [10, 30, 5])
    result = group_by_date(df, "date", "day", "average")
    assert result["date"].tolist() == ["2024-03-01", "2024-03-02"]
    assert result["sales"].tolist() == [20.0, 5.0]

def test_week_keys_use_iso_weeks():
    assert bucket_key("2024-01-01", "week") == "2024-W1"
    assert bucket_key("2024-01-08", "week") == "2024-W2"
    assert bucket_key("2024-12-30", "week") == "2025-W1"

def test_unparseable_dates_keep_their_text():
    assert bucket_key("n/a", "month") == "n/a"

def test_none_method_passes_rows_through():
    df = _dated(["2024-01-05", "2024-01-20"], [10, 20])
    result = group_by_date(df, "date", "month", "none")
    assert result["sales"].tolist() == [10.0, 20.0]
    assert result["index"].tolist() == [1, 2]

def test_bucket_order_follows_first_appearance():
    df = _dated(["2024-02-01", "2024-01-01", "2024-02-15"], [1, 2, 3])
    result = group_by_date(df, "date", "month", "max")
    assert result["date"].tolist() == ["2024-02", "2024-01"]
    assert result["sales"].tolist() == [3.0, 2.0]

@pytest.mark.parametrize("grouping", ["day", "week", "month"])
def test_column_keys_match_single_value_keys(grouping):
    values = pd.Series(["2024-01-01", "2024-12-30", "March 5, 2024", "n/a", "", "2024-02-29"], dtype=object)
    assert bucket_keys(values, grouping) == [bucket_key(v, grouping) for v in values]

def test_large_column_is_parsed_in_one_pass(monkeypatch):
    def fail(value, grouping):
        raise AssertionError("dates were parsed one row at a time")

    monkeypatch.setattr(aggregation, "bucket_key", fail)
    dates = pd.date_range("2023-01-01", periods=50_000, freq="h").strftime("%Y-%m-%d %H:%M").tolist()
    df = pd.DataFrame({"index": range(1, 50_001), "date": dates, "sales": [1.0] * 50_000})

    result = group_by_date(df, "date", "month", "sum")
    assert result["date"].tolist()[:2] == ["2023-01", "2023-02"]
    assert result["sales"].sum() == 50_000
    assert result["sales"].iloc[0] == 31 * 24

def test_unknown_grouping_is_rejected():
    with pytest.raises(ValueError):
        bucket_keys(pd.Series(["2024-01-01"]), "year")
