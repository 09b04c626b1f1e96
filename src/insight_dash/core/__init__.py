"""Tabular ingestion, type inference, aggregation, KPI and filter pipeline."""
