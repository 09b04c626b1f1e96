"""
insights.py
─────────────────────────────────────────────────────────────────────────────
Boundary to the hosted chat-completion service.

The pipeline hands over a text context (dataset name, row count, columns with
type/description, per-column statistics, KPIs) and a 5-10 row sample, and
gets free-form text back. Every transport or auth failure is caught here and
turned into a fallback string or a safe default; nothing is retried and
nothing propagates into ingestion or charting.
─────────────────────────────────────────────────────────────────────────────
"""

import json
from typing import Dict, List, Optional, Sequence

from groq import Groq

from insight_dash.config import settings
from insight_dash.config.credentials import CredentialStore
from insight_dash.core.normalizer import normalize_dataset
from insight_dash.models import KPI, Dataset, Goal
from insight_dash.utils.exceptions import CollaboratorError
from insight_dash.utils.logger import get_logger

logger = get_logger(__name__)

CHART_TYPES = ("line", "bar", "pie", "area", "scatter")
DEFAULT_CHART_TYPE = "bar"

INSIGHTS_FALLBACK = "Failed to generate insights. Please check your connection and try again."
CHAT_FALLBACK = "Sorry, I encountered an error processing your request. Please try again."
RECOMMENDATIONS_FALLBACK = "Failed to generate recommendations. Please try again."
GOAL_FALLBACK = "Failed to generate insight. Please try again."


# ── lazy client ───────────────────────────────────────────────────────────────
def _get_client(credentials: CredentialStore) -> Groq:
    """Build the client per call so a key saved through the store takes effect."""
    api_key = credentials.get_api_key()
    if not api_key:
        raise CollaboratorError("No API key configured for the AI service.")
    return Groq(api_key=api_key, base_url=settings.LLM_BASE_URL)


def _chat(
    credentials: CredentialStore,
    system: str,
    user: str,
    temperature: Optional[float] = None,
    max_tokens: Optional[int] = None,
) -> str:
    try:
        client = _get_client(credentials)
        response = client.chat.completions.create(
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
            model=settings.DEFAULT_MODEL,
            temperature=settings.TEMPERATURE if temperature is None else temperature,
            max_tokens=max_tokens or settings.MAX_TOKENS,
        )
        content = response.choices[0].message.content
    except CollaboratorError:
        raise
    except Exception as e:
        raise CollaboratorError(f"AI request failed: {e}") from e

    if not content or not content.strip():
        raise CollaboratorError("AI service returned an empty response.")
    return content.strip()


# ── data context builder ──────────────────────────────────────────────────────
def column_statistics(dataset: Dataset) -> List[Dict[str, float]]:
    """Avg / Total / Max / Min / Count for every numeric column."""
    table = normalize_dataset(dataset)
    stats = []
    for column in table.numeric_columns:
        values = table.dataframe[column]
        if values.empty:
            continue
        stats.append({
            "column": column,
            "average": float(values.mean()),
            "total": float(values.sum()),
            "max": float(values.max()),
            "min": float(values.min()),
            "count": int(values.count()),
        })
    return stats


def sample_rows(dataset: Dataset, limit: Optional[int] = None) -> List[dict]:
    return dataset.rows[: limit or settings.AI_SAMPLE_ROWS]


def build_dataset_context(
    dataset: Dataset,
    kpis: Optional[Sequence[KPI]] = None,
    question: Optional[str] = None,
) -> str:
    """Plain-text summary of a dataset for the LLM prompt."""
    parts = []
    if question:
        parts.append(f'User Question: "{question}"\n')

    parts.append("Dataset Context:")
    parts.append(f"- Name: {dataset.name}")
    parts.append(f"- Total Records: {dataset.row_count}")
    parts.append(f"- Columns: {', '.join(dataset.columns)}")

    described = []
    for column in dataset.columns:
        meta = dataset.column_meta.get(column)
        if meta is None:
            continue
        line = f"  - {column} ({meta.type})"
        if meta.description:
            line += f": {meta.description}"
        described.append(line)
    if described:
        parts.append("- Column Details:")
        parts.extend(described)

    stats = column_statistics(dataset)
    if stats:
        parts.append("\nStatistical Summary:")
        for s in stats:
            parts.append(
                f"{s['column']}: Avg={s['average']:.2f}, Total={s['total']:.2f}, "
                f"Max={s['max']:g}, Min={s['min']:g}, Count={s['count']}"
            )

    if kpis:
        parts.append("\nCurrent KPIs:")
        for kpi in kpis:
            parts.append(f"{kpi.name}: {kpi.value} ({kpi.trend} {kpi.change_percent}%)")

    sample = sample_rows(dataset)
    parts.append(f"\nSample Data (first {len(sample)} records):")
    parts.append(json.dumps(sample, indent=2, default=str))
    return "\n".join(parts)


# ── system prompts ────────────────────────────────────────────────────────────
_SYSTEM_PROMPTS = {
    "insights": (
        "You are an expert business analyst. Analyze the provided data and generate actionable "
        "insights, trends, and recommendations. Focus on key patterns, anomalies, and business "
        "implications. Provide specific, data-driven insights."
    ),
    "chat": (
        "You are an expert business analyst answering questions about a dataset. "
        "Give a specific, data-driven answer based only on the context provided. "
        "Use concise bullet points and suggest further analysis if relevant."
    ),
    "kpi": (
        "You are a business intelligence expert. Analyze KPIs and provide strategic "
        "recommendations for improvement."
    ),
    "goal": (
        "You are a business coach. In 1-3 sentences, assess progress toward the goal using the "
        "dataset context and suggest one concrete next step."
    ),
    "chart": (
        "You are a data visualization expert. Analyze the provided data structure and recommend "
        "the most suitable chart type. Respond with only one word: "
        '"line", "bar", "pie", "area", or "scatter".'
    ),
}

_INSIGHT_INSTRUCTIONS = """
Instructions:
- For large datasets, focus on summarizing key trends, correlations, and anomalies.
- Identify and explain outliers, sudden changes, or unusual patterns.
- Prioritize actionable business insights and strategic recommendations.
- Use concise bullet points for clarity.

Please provide:
1. Key business insights and trends
2. Notable patterns or anomalies
3. Strategic recommendations
4. Performance indicators analysis
5. Actionable next steps
"""


# ── PUBLIC ENTRY POINTS ───────────────────────────────────────────────────────
def generate_insights(dataset: Dataset, kpis: Sequence[KPI], credentials: CredentialStore) -> str:
    logger.info(f"Generating insights for dataset '{dataset.name}'")
    context = build_dataset_context(dataset, kpis)
    try:
        return _chat(credentials, _SYSTEM_PROMPTS["insights"], context + "\n" + _INSIGHT_INSTRUCTIONS)
    except CollaboratorError as e:
        logger.error(f"Insight generation failed: {e}")
        return INSIGHTS_FALLBACK


def answer_question(dataset: Dataset, kpis: Sequence[KPI], question: str, credentials: CredentialStore) -> str:
    logger.info(f"Answering question: '{question[:80]}'")
    context = build_dataset_context(dataset, kpis, question=question)
    try:
        return _chat(credentials, _SYSTEM_PROMPTS["chat"], context)
    except CollaboratorError as e:
        logger.error(f"Chat request failed: {e}")
        return CHAT_FALLBACK


def generate_kpi_recommendations(kpis: Sequence[KPI], credentials: CredentialStore) -> str:
    payload = json.dumps([k.model_dump() for k in kpis], indent=2)
    try:
        return _chat(
            credentials,
            _SYSTEM_PROMPTS["kpi"],
            f"Analyze these KPIs and provide recommendations: {payload}",
            max_tokens=800,
        )
    except CollaboratorError as e:
        logger.error(f"KPI recommendations failed: {e}")
        return RECOMMENDATIONS_FALLBACK


def generate_goal_insight(goal: Goal, dataset: Dataset, credentials: CredentialStore) -> str:
    prompt = (
        f"Goal: {goal.title}\n"
        f"Description: {goal.description or '-'}\n"
        f"Target: {goal.target}  Current: {goal.current}  Status: {goal.status}\n"
        f"Deadline: {goal.deadline.isoformat()}\n\n"
        f"{build_dataset_context(dataset)}"
    )
    try:
        return _chat(credentials, _SYSTEM_PROMPTS["goal"], prompt, max_tokens=200)
    except CollaboratorError as e:
        logger.error(f"Goal insight failed: {e}")
        return GOAL_FALLBACK


def predict_chart_type(dataset: Dataset, credentials: CredentialStore) -> str:
    """Ask for a chart type; anything outside CHART_TYPES, or a failure, gives 'bar'."""
    if dataset.is_empty:
        return DEFAULT_CHART_TYPE

    types = ", ".join(f"{c}: {dataset.column_type(c)}" for c in dataset.columns)
    prompt = (
        "Analyze this data and recommend the best chart type:\n\n"
        f"Columns: {', '.join(dataset.columns)}\n\n"
        f"Sample data:\n{json.dumps(sample_rows(dataset, 5), indent=2, default=str)}\n\n"
        f"Total columns: {len(dataset.columns)}\n"
        f"Data types: {types}\n\n"
        "Recommend the most suitable chart type for this data structure."
    )
    try:
        answer = _chat(credentials, _SYSTEM_PROMPTS["chart"], prompt, temperature=0.3, max_tokens=50)
    except CollaboratorError as e:
        logger.error(f"Chart prediction failed: {e}")
        return DEFAULT_CHART_TYPE

    prediction = answer.lower().strip().strip('."\'')
    return prediction if prediction in CHART_TYPES else DEFAULT_CHART_TYPE
