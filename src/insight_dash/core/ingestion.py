import csv
import io
import json
import os
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Optional

import numpy as np
import pandas as pd

from insight_dash.core.type_inference import infer_column_meta
from insight_dash.models import Dataset
from insight_dash.utils.exceptions import FormatError, ParseError, ParseIssue
from insight_dash.utils.logger import get_logger

logger = get_logger(__name__)

CSV, JSON, EXCEL = "csv", "json", "excel"

EXCEL_MIME_TYPES = {
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
}
JSON_MIME_TYPES = {"application/json", "text/json"}
CSV_DELIMITERS = ",;\t|"


@dataclass
class ParsedTable:
    """Raw parse output: ordered unique column names plus loosely typed rows."""
    columns: List[str] = field(default_factory=list)
    rows: List[Dict[str, Any]] = field(default_factory=list)


def detect_format(filename: str, content_type: Optional[str] = None) -> str:
    """Pick a parser from the MIME type or extension. Anything unrecognized is CSV."""
    mime = (content_type or "").split(";")[0].strip().lower()
    ext = os.path.splitext(filename or "")[1].lower()

    if mime in JSON_MIME_TYPES or ext == ".json":
        return JSON
    if mime in EXCEL_MIME_TYPES or ext in (".xls", ".xlsx"):
        return EXCEL
    return CSV


def _decode(content: bytes, file_format: str) -> str:
    try:
        return content.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise ParseError(file_format, f"File is not valid UTF-8 text: {e}")


def _sniff_delimiter(text: str) -> str:
    try:
        return csv.Sniffer().sniff(text[:1024], delimiters=CSV_DELIMITERS).delimiter
    except csv.Error:
        return ","  # Fallback to comma


# ── CSV ───────────────────────────────────────────────────────────────────────
def parse_csv(content: bytes) -> ParsedTable:
    """
    Parse delimited text with a header row. Blank lines are skipped.
    Any row-level problem fails the whole parse with the full list of issues.
    """
    text = _decode(content, CSV)
    if not text.strip():
        return ParsedTable()

    delimiter = _sniff_delimiter(text)
    logger.info(f"Detected delimiter: '{delimiter}'")

    issues = _check_field_counts(text, delimiter)
    if issues:
        logger.error(f"CSV parsing failed with {len(issues)} row error(s).")
        raise ParseError(CSV, "CSV parsing errors detected", issues)

    try:
        df = pd.read_csv(
            io.StringIO(text),
            sep=delimiter,
            dtype=str,
            na_filter=False,
            skip_blank_lines=True,
            engine="python",
        )
    except (pd.errors.ParserError, csv.Error, ValueError) as e:
        raise ParseError(CSV, "CSV parsing errors detected", [ParseIssue("MalformedInput", str(e))])

    df.columns = [str(c).strip() for c in df.columns]
    return ParsedTable(columns=list(df.columns), rows=df.to_dict(orient="records"))


def _check_field_counts(text: str, delimiter: str) -> List[ParseIssue]:
    """Compare every data row's field count against the header."""
    issues: List[ParseIssue] = []
    expected = None
    row_number = 0

    try:
        for fields in csv.reader(io.StringIO(text), delimiter=delimiter):
            if not fields:
                continue
            if expected is None:
                expected = len(fields)
                continue
            row_number += 1
            if len(fields) > expected:
                issues.append(ParseIssue(
                    "TooManyFields",
                    f"Too many fields: expected {expected} fields but parsed {len(fields)}",
                    row=row_number,
                ))
            elif len(fields) < expected:
                issues.append(ParseIssue(
                    "TooFewFields",
                    f"Too few fields: expected {expected} fields but parsed {len(fields)}",
                    row=row_number,
                ))
    except csv.Error as e:
        issues.append(ParseIssue("MalformedInput", str(e), row=row_number + 1))

    return issues


# ── JSON ──────────────────────────────────────────────────────────────────────
def _reject_constant(name: str):
    raise ParseError(JSON, "Invalid JSON format", [ParseIssue("InvalidJSON", f"Unexpected token {name}")])


def parse_json(content: bytes) -> ParsedTable:
    """Accept a single object (one row) or an array of objects. NaN and Infinity are not JSON."""
    text = _decode(content, JSON)
    try:
        payload = json.loads(text, parse_constant=_reject_constant)
    except json.JSONDecodeError as e:
        raise ParseError(JSON, "Invalid JSON format", [ParseIssue("InvalidJSON", e.msg, row=e.lineno)])

    if isinstance(payload, dict):
        records = [payload]
    elif isinstance(payload, list):
        records = payload
    else:
        raise FormatError(JSON, "JSON root must be an object or an array of objects")

    for pos, record in enumerate(records, start=1):
        if not isinstance(record, dict):
            raise FormatError(
                JSON,
                "JSON array elements must be objects",
                [ParseIssue("NotAnObject", f"Found {type(record).__name__}", row=pos)],
            )

    columns = [str(k) for k in records[0].keys()] if records else []
    rows = [{str(k): v for k, v in record.items()} for record in records]
    return ParsedTable(columns=columns, rows=rows)


# ── EXCEL ─────────────────────────────────────────────────────────────────────
def _excel_cell(value: Any) -> Any:
    if isinstance(value, (pd.Timestamp, datetime, date)):
        return value.isoformat()
    if isinstance(value, np.generic):
        value = value.item()
    # integer columns with blank cells come back as float
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def parse_excel(content: bytes) -> ParsedTable:
    """Read the first sheet only. Empty cells become empty strings."""
    try:
        df = pd.read_excel(io.BytesIO(content), sheet_name=0)
    except Exception as e:
        logger.error(f"Spreadsheet read failed: {e}")
        raise ParseError(EXCEL, "Invalid Excel file format", [ParseIssue("UnreadableWorkbook", str(e))])

    if df.empty:
        return ParsedTable()

    df = df.astype(object).where(pd.notna(df), "")
    df.columns = [str(c) for c in df.columns]
    rows = [
        {k: _excel_cell(v) for k, v in record.items()}
        for record in df.to_dict(orient="records")
    ]
    return ParsedTable(columns=list(rows[0].keys()), rows=rows)


_PARSERS = {CSV: parse_csv, JSON: parse_json, EXCEL: parse_excel}


def parse_content(content: bytes, filename: str, content_type: Optional[str] = None) -> ParsedTable:
    file_format = detect_format(filename, content_type)
    logger.info(f"Parsing '{filename}' as {file_format.upper()}")
    return _PARSERS[file_format](content)


def dataset_name(filename: str) -> str:
    base = os.path.basename(filename or "")
    name, _ = os.path.splitext(base)
    return name or base or "dataset"


def ingest_file(file_content: bytes, filename: str, content_type: Optional[str] = None) -> Dataset:
    """
    Parse an uploaded file into a Dataset with inferred column metadata.
    Raises ParseError when the file cannot be parsed; empty input yields an
    empty Dataset rather than an error.
    """
    logger.info(f"Starting ingestion for file: {filename}")

    table = parse_content(file_content, filename, content_type)
    sample = table.rows[0] if table.rows else {}
    column_meta = infer_column_meta(table.columns, sample)

    dataset = Dataset(
        name=dataset_name(filename),
        columns=table.columns,
        rows=table.rows,
        column_meta=column_meta,
    )

    if dataset.is_empty:
        logger.warning(f"'{filename}' has {len(table.columns)} column(s) and {len(table.rows)} row(s).")
    else:
        logger.info(f"Ingestion successful. Shape: ({dataset.row_count}, {len(dataset.columns)})")
    return dataset
