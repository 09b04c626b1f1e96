"""
Custom exception classes for the Insight Dash application.
These allow us to differentiate between user errors (4xx) and system errors (5xx).
"""
from dataclasses import dataclass
from typing import List, Optional


class AppException(Exception):
    """Base class for all application exceptions."""
    def __init__(self, message: str, status_code: int = 500):
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


@dataclass
class ParseIssue:
    """A single row-level problem found while parsing a file."""
    code: str
    message: str
    row: Optional[int] = None

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message, "row": self.row}


class ParseError(AppException):
    """Raised when a file cannot be parsed. No partial dataset is produced."""
    def __init__(self, file_format: str, message: str = "", issues: Optional[List[ParseIssue]] = None):
        self.file_format = file_format
        self.issues = list(issues or [])
        super().__init__(message or f"Invalid {file_format.upper()} format", status_code=400)


class FormatError(ParseError):
    """Raised when the content parses but its structure is not tabular."""


class DatasetNotFoundError(AppException):
    """Raised when a dataset or pending import id is unknown."""
    def __init__(self, dataset_id: str):
        super().__init__(f"Dataset '{dataset_id}' not found.", status_code=404)


class ColumnNotFoundError(AppException):
    """Raised when a request references a column the dataset does not have."""
    def __init__(self, column: str):
        super().__init__(f"Column '{column}' does not exist in the dataset.", status_code=400)


class MetadataValidationError(AppException):
    """Raised when a column type or description edit is rejected."""
    def __init__(self, message: str = "Invalid column metadata."):
        super().__init__(message, status_code=400)


class InvalidChartConfigError(AppException):
    """Raised when chart settings are inconsistent with the dataset."""
    def __init__(self, message: str = "Invalid chart configuration."):
        super().__init__(message, status_code=400)


class CollaboratorError(AppException):
    """Raised inside the AI boundary when the hosted service fails."""
    def __init__(self, message: str = "The AI service is unavailable."):
        super().__init__(message, status_code=502)


class GoalNotFoundError(AppException):
    """Raised when a goal id is unknown for the dataset."""
    def __init__(self, goal_id: str):
        super().__init__(f"Goal '{goal_id}' not found.", status_code=404)


class FileTooLargeError(AppException):
    """Raised when an upload exceeds MAX_UPLOAD_SIZE_MB."""
    def __init__(self, size_mb: float, limit_mb: int):
        super().__init__(f"File is {size_mb:.1f} MB; the limit is {limit_mb} MB.", status_code=413)
