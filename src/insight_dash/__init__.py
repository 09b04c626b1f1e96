"""Insight Dash: tabular ingestion, KPI and chart-shaping engine."""

__version__ = "1.0.0"
