import pytest

from insight_dash.core.ingestion import ingest_file
from insight_dash.core.normalizer import normalize_rows

SAMPLE_CSV = (
    "date,revenue,customers,orders\n"
    "2024-01-01,50000,120,95\n"
    "2024-01-02,52000,125,98\n"
    "2024-01-03,48000,118,92\n"
    "2024-01-04,55000,132,105\n"
    "2024-01-05,51000,128,99\n"
)


@pytest.fixture
def sample_csv() -> bytes:
    return SAMPLE_CSV.encode("utf-8")


@pytest.fixture
def sample_dataset(sample_csv):
    return ingest_file(sample_csv, "sample-business-data.csv", "text/csv")


@pytest.fixture
def number_table():
    """Build a normalized table from {column: values}, every column numeric."""
    def _build(**columns):
        names = list(columns)
        length = len(next(iter(columns.values()))) if columns else 0
        rows = [{c: columns[c][i] for c in names} for i in range(length)]
        return normalize_rows(rows, names, {c: "number" for c in names})
    return _build
