from types import SimpleNamespace

import pytest

from insight_dash.config.credentials import CredentialStore
from insight_dash.core import insights
from insight_dash.core.kpi import derive_kpis
from insight_dash.core.normalizer import normalize_dataset
from insight_dash.models import Dataset, Goal


class FakeGroq:
    """Stands in for the Groq client and records every request."""
    reply = "ok"
    calls = []

    def __init__(self, api_key=None, base_url=None):
        self.api_key = api_key
        self.chat = SimpleNamespace(completions=SimpleNamespace(create=self._create))

    def _create(self, **kwargs):
        FakeGroq.calls.append(kwargs)
        if isinstance(FakeGroq.reply, Exception):
            raise FakeGroq.reply
        message = SimpleNamespace(content=FakeGroq.reply)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


@pytest.fixture
def fake_groq(monkeypatch):
    FakeGroq.reply = "ok"
    FakeGroq.calls = []
    monkeypatch.setattr(insights, "Groq", FakeGroq)
    return FakeGroq


@pytest.fixture
def credentials(tmp_path):
    return CredentialStore(path=str(tmp_path / "creds.json"), fallback_key="test-key")


@pytest.fixture
def no_credentials(tmp_path):
    return CredentialStore(path=str(tmp_path / "creds.json"), fallback_key="")

# --- Tests for the Dataset Context ---

def test_context_contents(sample_dataset):
    kpis = derive_kpis(normalize_dataset(sample_dataset))
    context = insights.build_dataset_context(sample_dataset, kpis, question="Which day was best?")

    assert 'User Question: "Which day was best?"' in context
    assert "- Name: sample-business-data" in context
    assert "- Total Records: 5" in context
    assert "- Columns: date, revenue, customers, orders" in context
    assert "  - revenue (number)" in context
    assert "revenue: Avg=51200.00, Total=256000.00" in context
    assert "Current KPIs:" in context

def test_sample_is_bounded():
    rows = [{"n": str(i)} for i in range(30)]
    dataset = Dataset(name="many", columns=["n"], rows=rows, column_meta={"n": {"type": "number"}})
    assert len(insights.sample_rows(dataset)) == 10
    assert "Sample Data (first 10 records)" in insights.build_dataset_context(dataset)

# --- Tests for the AI Entry Points ---

def test_insights_returns_model_text(sample_dataset, credentials, fake_groq):
    fake_groq.reply = "  Revenue peaked on 2024-01-04.  "
    assert insights.generate_insights(sample_dataset, [], credentials) == "Revenue peaked on 2024-01-04."
    assert fake_groq.calls[0]["messages"][0]["role"] == "system"

def test_missing_key_gives_fallback(sample_dataset, no_credentials, fake_groq):
    assert insights.generate_insights(sample_dataset, [], no_credentials) == insights.INSIGHTS_FALLBACK
    assert fake_groq.calls == []

def test_transport_failure_gives_fallback(sample_dataset, credentials, fake_groq):
    fake_groq.reply = ConnectionError("network down")
    assert insights.answer_question(sample_dataset, [], "Why?", credentials) == insights.CHAT_FALLBACK
    assert insights.generate_kpi_recommendations([], credentials) == insights.RECOMMENDATIONS_FALLBACK

def test_empty_reply_gives_fallback(sample_dataset, credentials, fake_groq):
    fake_groq.reply = "   "
    goal = Goal(title="Grow revenue", target=60000, deadline="2024-12-31")
    assert insights.generate_goal_insight(goal, sample_dataset, credentials) == insights.GOAL_FALLBACK

@pytest.mark.parametrize("reply, expected", [
    ("Line", "line"),
    ("  pie. ", "pie"),
    ('"scatter"', "scatter"),
    ("histogram", "bar"),
    ("I would use a line chart", "bar"),
])
def test_chart_prediction(sample_dataset, credentials, fake_groq, reply, expected):
    fake_groq.reply = reply
    assert insights.predict_chart_type(sample_dataset, credentials) == expected

def test_chart_prediction_failure_defaults_to_bar(sample_dataset, credentials, fake_groq):
    fake_groq.reply = RuntimeError("boom")
    assert insights.predict_chart_type(sample_dataset, credentials) == "bar"

def test_chart_prediction_skips_empty_dataset(credentials, fake_groq):
    assert insights.predict_chart_type(Dataset(name="empty", columns=[]), credentials) == "bar"
    assert fake_groq.calls == []
